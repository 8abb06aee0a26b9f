import time
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Callable, Awaitable

import requests

from lingoplay.config import TRANSLATION_TIMEOUT, TRANSLATION_BATCH_SIZE, TRANSLATION_BATCH_DELAY
from lingoplay.models import Cue
from lingoplay.services.translation_dictionary import translate_with_dictionary
from lingoplay.utils.cancellation import CancellationToken, check
from lingoplay.utils.errors import (
    MalformedResponseError, UpstreamNetworkError, UpstreamTimeoutError,
)
from lingoplay.utils.language_tags import tags_match, ENGLISH, JAPANESE
from lingoplay.utils.logging_utils import log_with_context

logger = logging.getLogger('lingoplay')

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'


class TranslationProvider(ABC):
    """One step of the translation cascade."""

    name = 'provider'

    def supports(self, source_lang: str, target_lang: str) -> bool:
        return True

    @abstractmethod
    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        """
        Translate text. Blocking.

        Raises on transport errors and on payloads that cannot be parsed;
        the cascade treats any exception as "try the next provider".
        """
        pass


class GoogleWebTranslator(TranslationProvider):
    """Public web endpoint of Google Translate (client=gtx)."""

    name = 'google'
    URL = 'https://translate.googleapis.com/translate_a/single'

    def __init__(self, timeout: float = TRANSLATION_TIMEOUT):
        self.timeout = timeout

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        params = {'client': 'gtx', 'sl': source_lang, 'tl': target_lang, 'dt': 't', 'q': text}
        try:
            res = requests.get(self.URL, params=params, headers={'User-Agent': USER_AGENT}, timeout=self.timeout)
        except requests.Timeout as e:
            raise UpstreamTimeoutError(f'Google Translate timed out after {self.timeout:g}s') from e
        if res.status_code != 200:
            raise UpstreamNetworkError(f'Google Translate API error: {res.status_code}')

        try:
            data = res.json()
        except ValueError as e:
            raise MalformedResponseError('Google Translate returned non-JSON payload') from e

        if data and isinstance(data, list) and isinstance(data[0], list):
            return ''.join(item[0] for item in data[0] if isinstance(item, list) and item and item[0])
        raise MalformedResponseError('Google Translate response has an unexpected shape')


class MyMemoryTranslator(TranslationProvider):
    """MyMemory community translation memory."""

    name = 'mymemory'
    URL = 'https://api.mymemory.translated.net/get'

    def __init__(self, timeout: float = TRANSLATION_TIMEOUT):
        self.timeout = timeout

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        source = ENGLISH if source_lang in (None, '', 'auto') else source_lang
        params = {'q': text, 'langpair': f'{source}|{target_lang}'}
        try:
            res = requests.get(self.URL, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise UpstreamTimeoutError(f'MyMemory timed out after {self.timeout:g}s') from e
        if res.status_code != 200:
            raise UpstreamNetworkError(f'MyMemory API error: {res.status_code}')

        try:
            data = res.json()
        except ValueError as e:
            raise MalformedResponseError('MyMemory returned non-JSON payload') from e

        if not isinstance(data, dict):
            raise MalformedResponseError('MyMemory response has an unexpected shape')
        translated = (data.get('responseData') or {}).get('translatedText')
        if str(data.get('responseStatus')) == '200' and translated:
            return translated
        raise MalformedResponseError(f"MyMemory translation failed: {data.get('responseDetails', 'no details')}")


class DictionaryTranslator(TranslationProvider):
    """Static English -> Japanese phrase table."""

    name = 'dictionary'

    def supports(self, source_lang: str, target_lang: str) -> bool:
        source_ok = source_lang in (None, '', 'auto') or tags_match(source_lang, ENGLISH)
        return source_ok and tags_match(target_lang or '', JAPANESE)

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        return translate_with_dictionary(text)


@dataclass
class TranslationResult:
    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    provider: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.translated_text != self.original_text

    def to_dict(self):
        return {
            'originalText': self.original_text,
            'translatedText': self.translated_text,
            'sourceLang': self.source_lang,
            'targetLang': self.target_lang,
            'success': self.success,
            'provider': self.provider,
        }


def default_providers() -> List[TranslationProvider]:
    return [GoogleWebTranslator(), MyMemoryTranslator(), DictionaryTranslator()]


class TranslationCascade:
    """
    Tries providers in order until one returns a changed, non-empty string.

    Never raises for provider failures: the worst case is the source text.
    """

    def __init__(self, providers: Optional[List[TranslationProvider]] = None,
                 batch_size: int = TRANSLATION_BATCH_SIZE,
                 batch_delay: float = TRANSLATION_BATCH_DELAY,
                 sleep: Callable[[float], Awaitable[None]] = None):
        self.providers = providers if providers is not None else default_providers()
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self._sleep = sleep or asyncio.sleep

    async def translate_detailed(self, text: str, source_lang: str = 'auto',
                                 target_lang: str = JAPANESE) -> TranslationResult:
        source_lang = source_lang or 'auto'
        result = TranslationResult(text, text, source_lang, target_lang)
        if not text or not text.strip():
            return result

        for provider in self.providers:
            if not provider.supports(source_lang, target_lang):
                continue
            try:
                translated = await asyncio.to_thread(provider.translate, text, source_lang, target_lang)
            except Exception as e:
                logger.info(f"[TRANSLATE] {provider.name} failed: {e}")
                continue
            if translated and translated != text:
                logger.debug(f"[TRANSLATE] {provider.name} succeeded")
                result.translated_text = translated
                result.provider = provider.name
                return result
            logger.debug(f"[TRANSLATE] {provider.name} returned unchanged text")

        logger.info("[TRANSLATE] All providers failed, returning original text")
        return result

    async def translate(self, text: str, source_lang: str = 'auto', target_lang: str = JAPANESE) -> str:
        return (await self.translate_detailed(text, source_lang, target_lang)).translated_text

    async def _translate_cue(self, cue: Cue, source_lang: str, target_lang: str) -> Cue:
        try:
            translated = await self.translate(cue.text, source_lang, target_lang)
        except Exception as e:
            logger.warning(f"[TRANSLATE] Cue at {cue.start:.1f}s kept original text: {e}")
            return cue
        return cue.with_text(translated or cue.text)

    async def translate_cues(self, cues: List[Cue], source_lang: str = ENGLISH, target_lang: str = JAPANESE,
                             token: Optional[CancellationToken] = None,
                             video_id: Optional[str] = None) -> List[Cue]:
        """
        Translate cues in fixed-size concurrent batches with a pause between
        batches. Timing is kept; a failed cue keeps its original text.
        """
        translated: List[Cue] = []
        total_batches = (len(cues) + self.batch_size - 1) // self.batch_size
        start_time = time.time()
        log_with_context(
            logger, 'INFO',
            f"[TRANSLATE] Translating {len(cues)} cues {source_lang}->{target_lang} in {total_batches} batches",
            video_id=video_id, total_batches=total_batches,
        )

        for batch_num, i in enumerate(range(0, len(cues), self.batch_size), start=1):
            check(token)
            batch = cues[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self._translate_cue(cue, source_lang, target_lang) for cue in batch),
                return_exceptions=True,
            )
            for original, outcome in zip(batch, results):
                translated.append(original if isinstance(outcome, BaseException) else outcome)

            if i + self.batch_size < len(cues):
                await self._sleep(self.batch_delay)

        check(token)
        changed = sum(1 for a, b in zip(cues, translated) if a.text != b.text)
        log_with_context(
            logger, 'INFO',
            f"[TRANSLATE] Done: {changed}/{len(cues)} cues translated",
            video_id=video_id, duration=time.time() - start_time,
        )
        return translated


_cascade: Optional[TranslationCascade] = None


def get_translation_cascade() -> TranslationCascade:
    global _cascade
    if _cascade is None:
        _cascade = TranslationCascade()
    return _cascade
