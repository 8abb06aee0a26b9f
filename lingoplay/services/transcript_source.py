import re
import time
import logging
import threading
from typing import Dict, Any, List, Optional, Tuple

import requests
import yt_dlp

from lingoplay.config import CAPTION_DOWNLOAD_TIMEOUT, COOKIES_FILE
from lingoplay.utils.errors import (
    VideoUnavailableError, NoTranscriptError, MalformedResponseError,
    UpstreamNetworkError, classify_message, ErrorKind,
)
from lingoplay.utils.retry import retry

logger = logging.getLogger('lingoplay')

USER_AGENT = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
              '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36')

# Listing memo so a probe sweep costs one metadata extraction per video
TRACK_LISTING_TTL = 300

PREFERRED_FORMATS = ('json3', 'vtt', 'srv1', 'ttml')


class RateLimitedError(UpstreamNetworkError):
    """Caption host answered 429."""


def parse_vtt_to_json3(vtt_content: str) -> Dict[str, Any]:
    """Parse VTT subtitle format to JSON3-like structure."""
    events = []
    pattern = r'(\d{2}:\d{2}:\d{2}\.\d{3}) --> (\d{2}:\d{2}:\d{2}\.\d{3})[^\n]*\n(.+?)(?=\n\n|\Z)'

    def ts_to_ms(ts):
        h, m, s = ts.split(':')
        s, ms = s.split('.')
        return int(h) * 3600000 + int(m) * 60000 + int(s) * 1000 + int(ms)

    for match in re.finditer(pattern, vtt_content, re.DOTALL):
        start_str, end_str, text = match.groups()
        events.append({
            'tStartMs': ts_to_ms(start_str),
            'dDurationMs': ts_to_ms(end_str) - ts_to_ms(start_str),
            'segs': [{'utf8': text.strip()}]
        })

    return {'events': events}


def json3_to_segments(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Flatten json3 events into raw segments {text, offset, duration} in milliseconds.
    """
    if not isinstance(data, dict) or not isinstance(data.get('events', []), list):
        raise MalformedResponseError('Caption payload has no events list')

    segments = []
    for event in data.get('events', []):
        if not event.get('segs'):
            continue
        text = ''.join(s.get('utf8', '') for s in event['segs'])
        if not text.strip():
            continue
        offset = event.get('tStartMs', 0)
        duration = event.get('dDurationMs', 0)
        # Average speech is ~150ms per character, clamped to 1.5s..5s
        if not duration:
            duration = max(1500, min(5000, len(text.strip()) * 150))
        segments.append({'text': text, 'offset': offset, 'duration': duration})
    return segments


def _native_tracks(source: Dict[str, list]) -> Dict[str, list]:
    """Drop YouTube's machine-translated variants (their URLs carry tlang=)."""
    native = {}
    for lang, tracks in (source or {}).items():
        kept = [t for t in tracks or [] if 'tlang=' not in (t.get('url') or '')]
        if kept:
            native[lang] = kept
    return native


class YtDlpTranscriptSource:
    """
    Caption-scraping transcript source keyed by (video_id, language_tag).

    Blocking; callers run it off the event loop.
    """

    def __init__(self, cookies_file: Optional[str] = COOKIES_FILE):
        self.cookies_file = cookies_file
        self._listings: Dict[str, Tuple[float, Dict[str, list], Dict[str, list]]] = {}
        self._lock = threading.Lock()

    def _ydl_opts(self) -> Dict[str, Any]:
        opts = {
            'skip_download': True,
            'writesubtitles': True,
            'writeautomaticsub': True,
            'quiet': True,
            'no_warnings': True,
            'format': None,
            'ignore_no_formats_error': True,
        }
        if self.cookies_file:
            opts['cookiefile'] = self.cookies_file
        return opts

    def list_tracks(self, video_id: str) -> Tuple[Dict[str, list], Dict[str, list]]:
        """Return (manual, automatic) native caption tracks for a video."""
        with self._lock:
            cached = self._listings.get(video_id)
        if cached and time.time() - cached[0] < TRACK_LISTING_TTL:
            return cached[1], cached[2]

        url = f"https://www.youtube.com/watch?v={video_id}"
        try:
            with yt_dlp.YoutubeDL(self._ydl_opts()) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            message = str(e)
            if classify_message(message) == ErrorKind.UNAVAILABLE_VIDEO:
                raise VideoUnavailableError(f"Video unavailable: {video_id}") from e
            raise UpstreamNetworkError(message) from e

        manual = _native_tracks(info.get('subtitles'))
        automatic = _native_tracks(info.get('automatic_captions'))
        logger.debug(f"[FETCH] {video_id} tracks: manual={list(manual)[:10]}, auto={list(automatic)[:10]}")

        with self._lock:
            self._listings[video_id] = (time.time(), manual, automatic)
        return manual, automatic

    def describe(self, video_id: str) -> Dict[str, Any]:
        """Raw listing for diagnostics, keeping the manual/generated split."""
        manual, automatic = self.list_tracks(video_id)

        def summarize(tracks):
            return {lang: sorted({t.get('ext') for t in items if t.get('ext')}) for lang, items in tracks.items()}

        return {
            'manual': summarize(manual),
            'generated': summarize(automatic),
            'manualLanguages': list(manual),
            'generatedLanguages': list(automatic),
            'allAvailableLanguages': list(dict.fromkeys([*manual, *automatic])),
        }

    def fetch(self, video_id: str, lang: str) -> List[Dict[str, Any]]:
        """
        Download the transcript for the literal language tag.

        Raises:
            NoTranscriptError: tag not offered; message lists the available tags
            VideoUnavailableError: private, deleted or region-locked video
        """
        manual, automatic = self.list_tracks(video_id)
        tracks = manual.get(lang) or automatic.get(lang)
        if not tracks:
            available = list(dict.fromkeys([*manual, *automatic]))
            if not available:
                raise NoTranscriptError(f"No transcripts are available for this video ({video_id}).")
            raise NoTranscriptError(
                f"No transcripts are available in {lang} for this video ({video_id}). "
                f"Available languages: {', '.join(available)}",
                available_languages=available,
            )

        selected = None
        for fmt in PREFERRED_FORMATS:
            selected = next((t for t in tracks if t.get('ext') == fmt), None)
            if selected:
                break
        if not selected:
            selected = tracks[0]

        res = self._download(selected.get('url'))

        if selected.get('ext') == 'json3':
            try:
                data = res.json()
            except ValueError as e:
                raise MalformedResponseError(f"Caption track for {lang} is not valid JSON") from e
        else:
            data = parse_vtt_to_json3(res.text)
        return json3_to_segments(data)

    @retry(max_attempts=3, delay=2.0, exceptions=(RateLimitedError,))
    def _download(self, url: str) -> requests.Response:
        if not url:
            raise MalformedResponseError('Caption track has no URL')
        res = requests.get(url, headers={'User-Agent': USER_AGENT}, timeout=CAPTION_DOWNLOAD_TIMEOUT)
        if res.status_code == 429:
            raise RateLimitedError('Rate limited by YouTube (429)')
        if res.status_code != 200:
            raise UpstreamNetworkError(f'YouTube returned status {res.status_code}')
        return res
