import shutil
import tempfile
import time

import pytest

from lingoplay.services.cache_service import MemoryCache
from lingoplay.services.translation_service import TranslationCascade, DictionaryTranslator
from lingoplay.utils.errors import NoTranscriptError, VideoUnavailableError


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (network required)")
    config.addinivalue_line("markers", "network: marks tests that require network access")


from lingoplay.app import create_app


@pytest.fixture
def app():
    flask_app = create_app({
        "TESTING": True,
        "RATELIMIT_ENABLED": False,
    })
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_cache_dir():
    # Create a temporary directory for cache
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeTranscriptSource:
    """
    In-memory transcript source. `tracks` maps a literal language tag to raw
    {text, offset, duration} segments.
    """

    def __init__(self, tracks=None, unavailable=False, errors=None, delay=0.0):
        self.tracks = tracks or {}
        self.unavailable = unavailable
        self.errors = errors or {}
        self.delay = delay
        self.calls = []

    def fetch(self, video_id, lang):
        self.calls.append(lang)
        if self.delay:
            time.sleep(self.delay)
        if self.unavailable:
            raise VideoUnavailableError(f"Video unavailable: {video_id}")
        if lang in self.errors:
            raise self.errors[lang]
        if lang not in self.tracks:
            if not self.tracks:
                raise NoTranscriptError(f"No transcripts are available for this video ({video_id}).")
            raise NoTranscriptError(
                f"No transcripts are available in {lang} for this video ({video_id}). "
                f"Available languages: {', '.join(self.tracks)}"
            )
        return [dict(segment) for segment in self.tracks[lang]]

    def describe(self, video_id):
        return {
            'manual': {},
            'generated': {lang: ['json3'] for lang in self.tracks},
            'manualLanguages': [],
            'generatedLanguages': list(self.tracks),
            'allAvailableLanguages': list(self.tracks),
        }


def make_segments(*texts, step_ms=2000):
    return [
        {'text': text, 'offset': i * step_ms, 'duration': step_ms}
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return MemoryCache(ttl_seconds=24 * 3600, clock=clock)


@pytest.fixture
def fake_source():
    return FakeTranscriptSource


@pytest.fixture
def segments():
    return make_segments


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def dictionary_cascade(no_sleep):
    return TranslationCascade(providers=[DictionaryTranslator()], sleep=no_sleep)
