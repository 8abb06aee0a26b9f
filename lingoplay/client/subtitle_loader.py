"""
Client-side consumer of the subtitle API.

A SubtitleLoader belongs to one player view. Closing it aborts any
in-flight request, and a response arriving after close() is dropped
instead of being applied to the dead view.
"""

import asyncio
import logging
from typing import Optional, Dict, Any

import requests

from lingoplay.config import TRANSCRIPT_TIMEOUT
from lingoplay.models import cues_from_payload
from lingoplay.utils.cancellation import CancellationToken
from lingoplay.utils.errors import OperationCancelled

logger = logging.getLogger('lingoplay')

MESSAGE_TIMEOUT = 'The request timed out. Subtitles may not be available for this video.'
MESSAGE_SLOW_UPSTREAM = 'The subtitle service is responding slowly. Please wait a moment and try again.'
MESSAGE_UNAVAILABLE = 'This video is unavailable (private, deleted, or region-locked).'
MESSAGE_NO_TRANSCRIPT = 'This video has no subtitles.'
MESSAGE_NOT_FOUND = 'Video not found. Please check the video ID.'
MESSAGE_NETWORK = 'There was a problem with the network connection. Please check your connection.'
MESSAGE_GENERIC = 'Failed to load subtitles.'


class SubtitleLoadError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def describe_load_error(exc: BaseException) -> str:
    """Turn a load failure into a message for the learner."""
    if isinstance(exc, (asyncio.TimeoutError, requests.Timeout)):
        return MESSAGE_TIMEOUT
    if isinstance(exc, requests.ConnectionError):
        return MESSAGE_NETWORK
    if isinstance(exc, SubtitleLoadError) and exc.status_code == 404:
        return MESSAGE_NOT_FOUND

    message = str(exc)
    lowered = message.lower()
    if 'timeout' in lowered or 'timed out' in lowered:
        return MESSAGE_SLOW_UPSTREAM
    if 'video unavailable' in lowered or 'video is unavailable' in lowered:
        return MESSAGE_UNAVAILABLE
    if 'no transcript' in lowered:
        return MESSAGE_NO_TRANSCRIPT
    return message or MESSAGE_GENERIC


class SubtitleLoader:
    def __init__(self, base_url: str, video_id: str, timeout: float = TRANSCRIPT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.video_id = video_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token = CancellationToken()

        self.data: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.loading = False

    @property
    def url(self) -> str:
        return f"{self.base_url}/api/subtitles/{self.video_id}"

    @property
    def english(self) -> list:
        return cues_from_payload((self.data or {}).get('english'))

    @property
    def japanese(self) -> list:
        return cues_from_payload((self.data or {}).get('japanese'))

    def _get(self) -> Dict[str, Any]:
        res = self.session.get(self.url, params={'lang': 'all'}, timeout=self.timeout)
        if res.status_code != 200:
            try:
                body = res.json()
            except ValueError:
                body = {}
            detail = body.get('error') if isinstance(body, dict) else None
            raise SubtitleLoadError(detail or f"Failed to load subtitles: {res.status_code}", res.status_code)
        return res.json()

    async def load(self) -> Optional[Dict[str, Any]]:
        """
        Fetch the dual-language bundle. Returns None when the loader was
        closed before the response arrived; state is left untouched then.
        """
        if self.loading or self.token.cancelled:
            return None
        self.loading = True
        self.error = None
        try:
            data = await self.token.guard(
                asyncio.wait_for(asyncio.to_thread(self._get), timeout=self.timeout)
            )
        except OperationCancelled:
            logger.info(f"Loader for {self.video_id} closed, discarding response")
            return None
        except Exception as e:
            if self.token.cancelled:
                return None
            self.error = describe_load_error(e)
            logger.warning(f"Subtitle load failed for {self.video_id}: {e}")
            return None
        finally:
            if not self.token.cancelled:
                self.loading = False

        self.data = data
        if data.get('speechToTextAvailable') and data.get('suggestions'):
            logger.info(f"Speech recognition suggested: {data['suggestions'].get('speechToText')}")
        return data

    def clear_cache(self, lang: Optional[str] = None) -> bool:
        """Ask the server to forget this video, then drop local state."""
        params = {'lang': lang} if lang else None
        try:
            res = self.session.delete(self.url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Cache clear failed for {self.video_id}: {e}")
            return False
        if res.status_code != 200:
            return False
        self.data = None
        return True

    def close(self):
        """Tear down: abort in-flight work and ignore anything that arrives later."""
        self.token.cancel()
        self.loading = False
        self.session.close()
