import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

from lingoplay.config import TRANSCRIPT_TIMEOUT
from lingoplay.models import (
    Cue, SubtitleBundle, TranscriptResult, cues_from_payload, cues_to_payload,
)
from lingoplay.services.cache_service import SubtitleCache, get_cache, translated_key
from lingoplay.services.language_prober import LanguageProber
from lingoplay.services.transcript_service import TranscriptFetcher
from lingoplay.services.transcript_source import YtDlpTranscriptSource
from lingoplay.services.translation_service import TranslationCascade, get_translation_cascade
from lingoplay.utils.cancellation import CancellationToken, check
from lingoplay.utils.errors import ErrorKind, FailureReason
from lingoplay.utils.language_tags import find_best_match, is_japanese, ENGLISH, JAPANESE
from lingoplay.utils.logging_utils import LogContext, log_with_context, log_timing

logger = logging.getLogger('lingoplay')

DEBUG_SAMPLE_SIZE = 3


@dataclass
class LanguageResult:
    """Outcome of a single-language request."""
    video_id: str
    language: str
    cues: List[Cue] = field(default_factory=list)
    resolved_language: Optional[str] = None
    translated_from: Optional[str] = None
    error: Optional[FailureReason] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'videoId': self.video_id,
            'language': self.language,
            'subtitles': cues_to_payload(self.cues),
            'hasSubtitles': bool(self.cues),
            'resolvedLanguage': self.resolved_language,
            'translatedFrom': self.translated_from,
            'error': self.error.to_dict() if self.error else None,
        }


def _reportable(result: TranscriptResult) -> Optional[FailureReason]:
    # A missing transcript is an empty track, not an error
    if result.error is None or result.error.kind == ErrorKind.NO_TRANSCRIPT:
        return None
    return result.error


class SubtitleResolver:
    """
    Per-video policy: discover languages, fetch English, fetch or derive
    Japanese, and assemble an immutable SubtitleBundle.

    One language failing never blocks the other.
    """

    def __init__(self, prober: LanguageProber, fetcher: TranscriptFetcher,
                 translator: TranslationCascade, cache: SubtitleCache):
        self.prober = prober
        self.fetcher = fetcher
        self.translator = translator
        self.cache = cache

    async def _translate_to_japanese(self, video_id: str, english: List[Cue], cache_key: str,
                                     token: Optional[CancellationToken]) -> List[Cue]:
        translated = await self.translator.translate_cues(english, ENGLISH, JAPANESE, token=token, video_id=video_id)
        check(token)
        # Only keep a derived track that actually differs from its source
        if any(a.text != b.text for a, b in zip(english, translated)):
            self.cache.put(video_id, cache_key, cues_to_payload(translated))
        return translated

    async def resolve(self, video_id: str, token: Optional[CancellationToken] = None) -> SubtitleBundle:
        with LogContext.bound(video_id=video_id), log_timing(logger, '[RESOLVE] Dual-language resolution'):
            probe = await self.prober.probe(video_id, token)
            tags = [lang.language_code for lang in probe.languages]
            english_tag = find_best_match(tags, ENGLISH)
            japanese_tag = find_best_match(tags, JAPANESE)
            log_with_context(
                logger, 'INFO',
                f"[RESOLVE] Available={tags} english={english_tag} japanese={japanese_tag}",
                video_id=video_id,
            )

            english: List[Cue] = []
            english_error = probe.error
            if english_tag:
                result = await self.fetcher.fetch(video_id, english_tag, token)
                english = result.cues
                english_error = _reportable(result)

            japanese: List[Cue] = []
            japanese_error = probe.error
            if japanese_tag:
                result = await self.fetcher.fetch(video_id, japanese_tag, token)
                japanese = result.cues
                japanese_error = _reportable(result)
            elif english:
                cached = self.cache.get(video_id, translated_key(JAPANESE))
                if cached is not None:
                    japanese = cues_from_payload(cached)
                else:
                    logger.info(f"[RESOLVE] No Japanese track for {video_id}, translating {len(english)} English cues")
                    japanese = await self._translate_to_japanese(video_id, english, translated_key(JAPANESE), token)
                japanese_error = None

            check(token)
            bundle = SubtitleBundle(
                video_id=video_id,
                english=tuple(english),
                japanese=tuple(japanese),
                available_languages=tuple(probe.languages),
                loading_japanese=False,
                english_error=english_error,
                japanese_error=japanese_error,
            )
            log_with_context(
                logger, 'INFO',
                f"[RESOLVE] english={len(english)} japanese={len(japanese)} "
                f"speechToText={bundle.speech_to_text_available}",
                video_id=video_id,
            )
            return bundle

    async def resolve_language(self, video_id: str, lang: str,
                               token: Optional[CancellationToken] = None) -> LanguageResult:
        """
        Single-language mode. A Japanese request that cannot be served
        directly falls back to fetching English and translating it.
        """
        result = LanguageResult(video_id=video_id, language=lang)

        cached = self.cache.get(video_id, lang)
        if cached is not None:
            result.cues = cues_from_payload(cached)
            result.resolved_language = lang
            return result

        probe = await self.prober.probe(video_id, token)
        match = find_best_match([l.language_code for l in probe.languages], lang)
        result.error = probe.error

        if match:
            fetched = await self.fetcher.fetch(video_id, match, token)
            result.cues = fetched.cues
            result.resolved_language = match if fetched.cues else None
            result.error = _reportable(fetched)
        else:
            logger.info(f"[RESOLVE] {lang} not available for {video_id} (available: "
                        f"{[l.language_code for l in probe.languages]})")

        if not result.cues and is_japanese(lang) and not (result.error and result.error.kind == ErrorKind.UNAVAILABLE_VIDEO):
            logger.info(f"[RESOLVE] Falling back to English translation for {video_id}")
            english = await self.resolve_language(video_id, ENGLISH, token)
            if english.cues:
                cached = self.cache.get(video_id, translated_key(lang))
                if cached is not None:
                    result.cues = cues_from_payload(cached)
                else:
                    result.cues = await self._translate_to_japanese(video_id, english.cues, translated_key(lang), token)
                result.resolved_language = english.resolved_language
                result.translated_from = ENGLISH
                result.error = None
            elif english.error:
                result.error = english.error

        check(token)
        return result

    def clear_cache(self, video_id: str, lang: Optional[str] = None) -> int:
        """Drop one language (native and translated tracks), or every entry for the video."""
        if lang:
            removed = self.cache.delete(video_id, lang) + self.cache.delete(video_id, translated_key(lang))
        else:
            removed = self.cache.delete_video(video_id)
        logger.info(f"[CACHE] Cleared {removed} entries for {video_id} (lang={lang or 'all'})")
        return removed

    async def debug(self, video_id: str) -> Dict[str, Any]:
        """Raw listing plus short samples straight from the source, bypassing caches."""
        source = self.fetcher.source
        info: Dict[str, Any] = {'videoId': video_id}
        try:
            info.update(await asyncio.wait_for(asyncio.to_thread(source.describe, video_id), timeout=TRANSCRIPT_TIMEOUT))
        except asyncio.TimeoutError:
            info['listingError'] = 'Timed out listing caption tracks'
        except Exception as e:
            info['listingError'] = str(e)

        for label, lang in (('english', ENGLISH), ('japanese', JAPANESE)):
            try:
                segments = await asyncio.wait_for(
                    asyncio.to_thread(source.fetch, video_id, lang), timeout=TRANSCRIPT_TIMEOUT
                )
            except asyncio.TimeoutError:
                info[f'{label}Error'] = 'Timed out fetching sample'
                continue
            except Exception as e:
                info[f'{label}Error'] = str(e)
                continue
            info[f'{label}SampleCount'] = len(segments)
            info[f'{label}Sample'] = [
                {
                    'start': s['offset'] / 1000,
                    'end': (s['offset'] + s['duration']) / 1000,
                    'text': s['text'],
                }
                for s in segments[:DEBUG_SAMPLE_SIZE]
            ]
        return info


_resolver: Optional[SubtitleResolver] = None


def build_resolver(cache: Optional[SubtitleCache] = None, source=None,
                   translator: Optional[TranslationCascade] = None) -> SubtitleResolver:
    cache = cache or get_cache()
    fetcher = TranscriptFetcher(source or YtDlpTranscriptSource(), cache)
    prober = LanguageProber(fetcher, cache)
    return SubtitleResolver(prober, fetcher, translator or get_translation_cascade(), cache)


def get_subtitle_resolver() -> SubtitleResolver:
    global _resolver
    if _resolver is None:
        _resolver = build_resolver()
    return _resolver
