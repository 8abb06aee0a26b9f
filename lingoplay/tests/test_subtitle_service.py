import asyncio

import pytest

from lingoplay.services.cache_service import LANGUAGES_KEY, translated_key
from lingoplay.services.subtitle_service import build_resolver
from lingoplay.services.translation_service import TranslationCascade, TranslationProvider
from lingoplay.utils.cancellation import CancellationToken
from lingoplay.utils.errors import OperationCancelled


class CountingProvider(TranslationProvider):
    name = 'counting'

    def __init__(self):
        self.calls = 0

    def translate(self, text, source_lang, target_lang):
        self.calls += 1
        return f'[ja] {text}'


@pytest.fixture
def resolver_for(memory_cache, dictionary_cascade):
    def build(source, translator=None):
        return build_resolver(cache=memory_cache, source=source, translator=translator or dictionary_cascade)
    return build


class TestResolve:

    def test_english_only_video_gets_translated_japanese(self, resolver_for, fake_source, segments, memory_cache):
        resolver = resolver_for(fake_source({'en': segments('Hello')}))

        bundle = asyncio.run(resolver.resolve('vid1'))

        assert [c.text for c in bundle.english] == ['Hello']
        assert [c.text for c in bundle.japanese] == ['こんにちは']
        assert bundle.japanese[0].start == bundle.english[0].start
        assert bundle.japanese[0].end == bundle.english[0].end
        assert bundle.has_english_subtitles and bundle.has_japanese_subtitles
        assert not bundle.speech_to_text_available
        assert memory_cache.get('vid1', translated_key('ja')) == [{'start': 0.0, 'end': 2.0, 'text': 'こんにちは'}]
        # The native caption slot stays empty
        assert memory_cache.get('vid1', 'ja') is None

    def test_no_captions_suggests_speech_to_text(self, resolver_for, fake_source):
        bundle = asyncio.run(resolver_for(fake_source()).resolve('vid1'))

        data = bundle.to_dict()
        assert data['english'] == [] and data['japanese'] == []
        assert data['availableLanguages'] == []
        assert data['speechToTextAvailable'] is True
        assert data['suggestions']['apiEndpoint'] == '/api/speech-to-text'
        # A missing transcript is not an error
        assert data['errors'] == {'english': None, 'japanese': None}

    def test_native_japanese_is_not_translated(self, resolver_for, fake_source, segments):
        provider = CountingProvider()
        source = fake_source({'en': segments('Hello'), 'ja': segments('やあ')})
        resolver = resolver_for(source, TranslationCascade([provider]))

        bundle = asyncio.run(resolver.resolve('vid1'))

        assert [c.text for c in bundle.japanese] == ['やあ']
        assert provider.calls == 0

    def test_regional_tags_are_matched(self, resolver_for, fake_source, segments):
        source = fake_source({'en-GB': segments('Cheers'), 'ja-JP': segments('乾杯')})

        bundle = asyncio.run(resolver_for(source).resolve('vid1'))

        assert [c.text for c in bundle.english] == ['Cheers']
        assert [c.text for c in bundle.japanese] == ['乾杯']

    def test_cached_translation_reused(self, resolver_for, fake_source, segments):
        provider = CountingProvider()
        resolver = resolver_for(fake_source({'en': segments('Hello', 'World')}), TranslationCascade([provider]))

        first = asyncio.run(resolver.resolve('vid1'))
        second = asyncio.run(resolver.resolve('vid1'))

        assert provider.calls == 2
        assert [c.text for c in second.japanese] == [c.text for c in first.japanese]

    def test_untranslated_track_not_cached(self, resolver_for, fake_source, segments, memory_cache):
        resolver = resolver_for(fake_source({'en': segments('xylophone')}))

        bundle = asyncio.run(resolver.resolve('vid1'))

        # Degrades to the source text but is not remembered as Japanese
        assert [c.text for c in bundle.japanese] == ['xylophone']
        assert memory_cache.get('vid1', translated_key('ja')) is None

    def test_unavailable_video_reports_both_errors(self, resolver_for, fake_source):
        bundle = asyncio.run(resolver_for(fake_source(unavailable=True)).resolve('vid1'))

        data = bundle.to_dict()
        assert data['errors']['english']['kind'] == 'unavailable_video'
        assert data['errors']['japanese']['kind'] == 'unavailable_video'
        assert data['errors']['english']['retryable'] is False
        assert data['speechToTextAvailable'] is False

    def test_english_timeout_does_not_block_japanese(self, memory_cache, dictionary_cascade, fake_source, segments):
        source = fake_source({'en': segments('Hello'), 'ja': segments('やあ')})
        resolver = build_resolver(cache=memory_cache, source=source, translator=dictionary_cascade)
        # Languages already known; the English fetch then times out
        memory_cache.put('vid1', LANGUAGES_KEY, [{'languageCode': 'en'}, {'languageCode': 'ja'}])
        source.delay = 0.2
        resolver.fetcher.timeout = 0.02
        memory_cache.put('vid1', 'ja', [{'start': 0, 'end': 1, 'text': 'やあ'}])

        bundle = asyncio.run(resolver.resolve('vid1'))

        assert bundle.english == ()
        assert bundle.english_error.kind.value == 'timeout'
        assert bundle.english_error.retryable
        assert [c.text for c in bundle.japanese] == ['やあ']
        assert bundle.japanese_error is None

    def test_translated_track_not_rediscovered_as_native(self, resolver_for, fake_source, segments, memory_cache):
        source = fake_source({'en': segments('Hello')})
        resolver = resolver_for(source)
        asyncio.run(resolver.resolve('vid1'))

        # Availability list expires before the translated track does
        memory_cache.delete('vid1', LANGUAGES_KEY)
        calls = len(source.calls)
        bundle = asyncio.run(resolver.resolve('vid1'))

        assert [lang.language_code for lang in bundle.available_languages] == ['en']
        assert 'ja' in source.calls[calls:]
        assert [c.text for c in bundle.japanese] == ['こんにちは']
        assert memory_cache.get('vid1', 'ja') is None

        result = asyncio.run(resolver.resolve_language('vid1', 'ja'))
        assert result.translated_from == 'en'
        assert result.resolved_language == 'en'

    def test_timed_out_discovery_is_reported(self, resolver_for, fake_source, segments):
        resolver = resolver_for(fake_source({'en': segments('Hello')}, delay=0.2))
        resolver.fetcher.timeout = 0.02
        resolver.prober.candidates = ['en', 'ja']

        data = asyncio.run(resolver.resolve('vid1')).to_dict()

        assert data['availableLanguages'] == []
        assert data['errors']['english']['kind'] == 'timeout'
        assert data['errors']['english']['retryable'] is True
        assert data['errors']['japanese']['kind'] == 'timeout'
        assert data['speechToTextAvailable'] is False
        assert data['suggestions'] is None

    def test_cancelled_resolution_raises(self, resolver_for, fake_source, segments):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelled):
            asyncio.run(resolver_for(fake_source({'en': segments('Hello')})).resolve('vid1', token))


class TestResolveLanguage:

    def test_japanese_falls_back_to_translated_english(self, resolver_for, fake_source, segments):
        resolver = resolver_for(fake_source({'en': segments('Hello')}))

        result = asyncio.run(resolver.resolve_language('vid1', 'ja'))

        assert [c.text for c in result.cues] == ['こんにちは']
        assert result.translated_from == 'en'
        assert result.to_dict()['hasSubtitles'] is True

    def test_prefix_match_for_requested_tag(self, resolver_for, fake_source, segments):
        resolver = resolver_for(fake_source({'fr-CA': segments('Bonjour')}))

        result = asyncio.run(resolver.resolve_language('vid1', 'fr'))

        assert [c.text for c in result.cues] == ['Bonjour']
        assert result.resolved_language == 'fr-CA'

    def test_other_languages_do_not_fall_back(self, resolver_for, fake_source, segments):
        resolver = resolver_for(fake_source({'en': segments('Hello')}))

        result = asyncio.run(resolver.resolve_language('vid1', 'ko'))

        assert result.cues == []
        assert result.translated_from is None

    def test_second_request_served_from_cache(self, resolver_for, fake_source, segments):
        source = fake_source({'en': segments('Hello')})
        resolver = resolver_for(source)

        asyncio.run(resolver.resolve_language('vid1', 'ja'))
        calls = len(source.calls)
        result = asyncio.run(resolver.resolve_language('vid1', 'ja'))

        assert len(source.calls) == calls
        assert [c.text for c in result.cues] == ['こんにちは']


class TestClearCacheAndDebug:

    def test_clear_single_language(self, resolver_for, fake_source, memory_cache):
        memory_cache.put('vid1', 'en', [])
        memory_cache.put('vid1', 'ja', [])
        resolver = resolver_for(fake_source())

        assert resolver.clear_cache('vid1', 'en') == 1
        assert memory_cache.get('vid1', 'ja') == []

    def test_clear_language_drops_translated_track(self, resolver_for, fake_source, memory_cache):
        memory_cache.put('vid1', 'ja', [])
        memory_cache.put('vid1', translated_key('ja'), [])
        memory_cache.put('vid1', 'en', [])
        resolver = resolver_for(fake_source())

        assert resolver.clear_cache('vid1', 'ja') == 2
        assert memory_cache.get('vid1', translated_key('ja')) is None
        assert memory_cache.get('vid1', 'en') == []

    def test_clear_whole_video(self, resolver_for, fake_source, memory_cache):
        memory_cache.put('vid1', 'en', [])
        memory_cache.put('vid1', LANGUAGES_KEY, [])
        resolver = resolver_for(fake_source())

        assert resolver.clear_cache('vid1') == 2

    def test_debug_samples_and_errors(self, resolver_for, fake_source, segments):
        source = fake_source({'en': segments('a', 'b', 'c', 'd')})

        info = asyncio.run(resolver_for(source).debug('vid1'))

        assert info['generatedLanguages'] == ['en']
        assert info['englishSampleCount'] == 4
        assert info['englishSample'] == [
            {'start': 0.0, 'end': 2.0, 'text': 'a'},
            {'start': 2.0, 'end': 4.0, 'text': 'b'},
            {'start': 4.0, 'end': 6.0, 'text': 'c'},
        ]
        assert 'Available languages: en' in info['japaneseError']
