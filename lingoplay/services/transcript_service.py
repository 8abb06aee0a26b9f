import re
import html
import asyncio
import logging
from typing import List, Dict, Any, Optional

from lingoplay.config import TRANSCRIPT_TIMEOUT
from lingoplay.models import Cue, TranscriptResult, cues_from_payload, cues_to_payload
from lingoplay.services.cache_service import SubtitleCache
from lingoplay.utils.cancellation import CancellationToken, check
from lingoplay.utils.errors import (
    ErrorKind, OperationCancelled, UpstreamTimeoutError, classify_error,
)
from lingoplay.utils.logging_utils import log_with_context

logger = logging.getLogger('lingoplay')

# [Music], (laughs), and their full-width forms
_ANNOTATION_PATTERN = re.compile(r'\[.*?\]|\(.*?\)|［.*?］|（.*?）')
_WHITESPACE_PATTERN = re.compile(r'\s+')


def clean_text(text: str) -> str:
    """Unescape entities, flatten newlines, strip annotations, trim."""
    text = html.unescape(text or '')
    text = text.replace('\n', ' ')
    text = _ANNOTATION_PATTERN.sub('', text)
    return _WHITESPACE_PATTERN.sub(' ', text).strip()


def format_cues(segments: List[Dict[str, Any]]) -> List[Cue]:
    """
    Convert raw {text, offset, duration} millisecond segments to cues in seconds.

    Source order is preserved. Cues that are empty after cleaning, or that
    would not end after they start, are dropped.
    """
    cues = []
    for segment in segments:
        text = clean_text(segment.get('text', ''))
        if not text:
            continue
        start = float(segment.get('offset', 0)) / 1000
        end = (float(segment.get('offset', 0)) + float(segment.get('duration', 0))) / 1000
        if end <= start:
            continue
        cues.append(Cue(start=start, end=end, text=text))
    return cues


class TranscriptFetcher:
    """
    Retrieves (video, language) transcripts with caching and a hard timeout.

    No fuzzy tag matching happens here; the caller passes the literal tag.
    """

    def __init__(self, source, cache: SubtitleCache, timeout: float = TRANSCRIPT_TIMEOUT):
        self.source = source
        self.cache = cache
        self.timeout = timeout

    async def fetch(self, video_id: str, lang: str,
                    token: Optional[CancellationToken] = None) -> TranscriptResult:
        """Never raises for upstream failures; cancellation propagates."""
        cached = self.cache.get(video_id, lang)
        if cached is not None:
            log_with_context(logger, 'INFO', f"[FETCH] Cache hit: {lang} ({len(cached)} cues)", video_id=video_id)
            return TranscriptResult(cues=cues_from_payload(cached), from_cache=True)

        log_with_context(logger, 'INFO', f"[FETCH] Fetching transcript: {lang}", video_id=video_id)
        try:
            call = asyncio.wait_for(asyncio.to_thread(self.source.fetch, video_id, lang), timeout=self.timeout)
            segments = await (token.guard(call) if token else call)
        except OperationCancelled:
            raise
        except asyncio.TimeoutError:
            error = UpstreamTimeoutError(f"Transcript fetch for {lang} exceeded {self.timeout:g}s")
            logger.error(f"[FETCH] Timeout: {video_id} ({lang}) after {self.timeout:g}s")
            return TranscriptResult(error=classify_error(error), raw_error=str(error))
        except Exception as e:
            reason = classify_error(e)
            if reason.kind == ErrorKind.NO_TRANSCRIPT:
                logger.info(f"[FETCH] No transcript: {video_id} ({lang})")
            elif reason.kind == ErrorKind.UNAVAILABLE_VIDEO:
                logger.warning(f"[FETCH] Video unavailable: {video_id}")
            else:
                logger.warning(f"[FETCH] Failed: {video_id} ({lang}): {e}")
            return TranscriptResult(error=reason, raw_error=str(e))

        cues = format_cues(segments)
        check(token)
        if cues:
            self.cache.put(video_id, lang, cues_to_payload(cues))
        log_with_context(logger, 'INFO', f"[FETCH] Got {len(cues)} cues ({lang})", video_id=video_id)
        return TranscriptResult(cues=cues)

    async def fetch_transcript(self, video_id: str, lang: str,
                               token: Optional[CancellationToken] = None) -> List[Cue]:
        """Cue-only view of fetch(): empty on any failure."""
        return (await self.fetch(video_id, lang, token)).cues
