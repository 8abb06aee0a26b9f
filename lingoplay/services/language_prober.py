import logging
from dataclasses import dataclass, field
from typing import List, Optional

from lingoplay.config import PROBE_MIN_LANGUAGES
from lingoplay.models import LanguageAvailability
from lingoplay.services.cache_service import SubtitleCache, LANGUAGES_KEY
from lingoplay.services.transcript_service import TranscriptFetcher
from lingoplay.utils.cancellation import CancellationToken, check
from lingoplay.utils.errors import ErrorKind, FailureReason, UpstreamTimeoutError, classify_error
from lingoplay.utils.language_tags import parse_language_hint

logger = logging.getLogger('lingoplay')

# Major languages first, then regional variants
CANDIDATE_LANGUAGES = [
    'en', 'en-US', 'en-GB', 'en-CA', 'en-AU',
    'ja', 'ja-JP',
    'ko', 'ko-KR',
    'zh', 'zh-CN', 'zh-TW', 'zh-HK',
    'es', 'es-ES', 'es-MX',
    'fr', 'fr-FR', 'fr-CA',
    'de', 'de-DE',
    'it', 'it-IT',
    'pt', 'pt-BR', 'pt-PT',
    'ru', 'ru-RU',
    'ar', 'hi', 'th', 'vi',
]


@dataclass
class ProbeResult:
    languages: List[LanguageAvailability] = field(default_factory=list)
    # Set when the video is unavailable or discovery timed out, so callers can explain why
    error: Optional[FailureReason] = None
    from_cache: bool = False


class LanguageProber:
    """
    Discovers caption languages by speculatively fetching transcripts.

    The fetch API cannot tell manual from generated captions, so every hit
    is reported with is_auto_generated=True.
    """

    def __init__(self, fetcher: TranscriptFetcher, cache: SubtitleCache,
                 candidates: Optional[List[str]] = None, min_languages: int = PROBE_MIN_LANGUAGES):
        self.fetcher = fetcher
        self.cache = cache
        self.candidates = list(candidates or CANDIDATE_LANGUAGES)
        self.min_languages = min_languages

    async def probe(self, video_id: str, token: Optional[CancellationToken] = None) -> ProbeResult:
        cached = self.cache.get(video_id, LANGUAGES_KEY)
        if cached is not None:
            logger.info(f"[PROBE] Cache hit for {video_id}: {len(cached)} languages")
            return ProbeResult(languages=[LanguageAvailability.from_dict(d) for d in cached], from_cache=True)

        found: List[LanguageAvailability] = []
        tried = set()
        saw_timeout = False
        unavailable: Optional[FailureReason] = None

        async def attempt(tag: str):
            nonlocal saw_timeout
            tried.add(tag)
            result = await self.fetcher.fetch(video_id, tag, token)
            if result.ok:
                logger.info(f"[PROBE] {tag} available ({len(result.cues)} cues)")
                found.append(LanguageAvailability(language_code=tag, is_auto_generated=True, is_translatable=True))
            elif result.error and result.error.kind == ErrorKind.TIMEOUT:
                saw_timeout = True
            return result

        logger.info(f"[PROBE] Probing up to {len(self.candidates)} languages for {video_id}")
        for tag in self.candidates:
            if tag in tried:
                continue
            result = await attempt(tag)

            if result.error and result.error.kind == ErrorKind.UNAVAILABLE_VIDEO:
                logger.warning(f"[PROBE] {video_id} is unavailable, stopping probe")
                unavailable = result.error
                break

            for hinted in parse_language_hint(result.raw_error or ''):
                if hinted in tried or any(lang.language_code == hinted for lang in found):
                    continue
                logger.debug(f"[PROBE] Trying hinted language {hinted}")
                await attempt(hinted)
                if len(found) >= self.min_languages:
                    break

            if len(found) >= self.min_languages:
                logger.info(f"[PROBE] Found {len(found)} languages, stopping early")
                break

        check(token)
        # Empty answers caused by timeouts or an unavailable video are not cached
        if found or (not saw_timeout and unavailable is None):
            self.cache.put(video_id, LANGUAGES_KEY, [lang.to_dict() for lang in found])

        error = unavailable
        if error is None and not found and saw_timeout:
            logger.warning(f"[PROBE] Discovery for {video_id} timed out without confirming any language")
            error = classify_error(UpstreamTimeoutError('Caption discovery timed out'))

        logger.info(f"[PROBE] Done for {video_id}: {[lang.language_code for lang in found]}")
        return ProbeResult(languages=found, error=error)

    async def discover_languages(self, video_id: str,
                                 token: Optional[CancellationToken] = None) -> List[LanguageAvailability]:
        return (await self.probe(video_id, token)).languages
