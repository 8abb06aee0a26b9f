import pytest
from unittest.mock import MagicMock, patch

import yt_dlp

from lingoplay.services.transcript_source import (
    YtDlpTranscriptSource, parse_vtt_to_json3, json3_to_segments, RateLimitedError,
)
from lingoplay.utils.errors import (
    NoTranscriptError, VideoUnavailableError, MalformedResponseError, UpstreamNetworkError,
)
from lingoplay.utils.language_tags import parse_language_hint


@pytest.fixture
def mock_yt_dlp():
    with patch('lingoplay.services.transcript_source.yt_dlp.YoutubeDL') as mock:
        yield mock


@pytest.fixture
def mock_requests():
    with patch('lingoplay.services.transcript_source.requests.get') as mock:
        yield mock


def _listing(mock_yt_dlp, subtitles=None, automatic=None):
    instance = mock_yt_dlp.return_value.__enter__.return_value
    instance.extract_info.return_value = {
        'subtitles': subtitles or {},
        'automatic_captions': automatic or {},
    }
    return instance


def _json3_response(events):
    res = MagicMock()
    res.status_code = 200
    res.json.return_value = {'events': events}
    return res


def test_fetch_prefers_json3(mock_yt_dlp, mock_requests):
    _listing(mock_yt_dlp, subtitles={
        'en': [
            {'ext': 'vtt', 'url': 'http://vtt'},
            {'ext': 'json3', 'url': 'http://json3'},
        ]
    })
    mock_requests.return_value = _json3_response([
        {'tStartMs': 1000, 'dDurationMs': 2000, 'segs': [{'utf8': 'Hello'}, {'utf8': ' world'}]},
    ])

    segments = YtDlpTranscriptSource().fetch('vid1', 'en')

    assert mock_requests.call_args[0][0] == 'http://json3'
    assert segments == [{'text': 'Hello world', 'offset': 1000, 'duration': 2000}]


def test_fetch_falls_back_to_vtt(mock_yt_dlp, mock_requests):
    _listing(mock_yt_dlp, automatic={'ja': [{'ext': 'vtt', 'url': 'http://ja.vtt'}]})
    res = MagicMock()
    res.status_code = 200
    res.text = "WEBVTT\n\n00:00:01.000 --> 00:00:03.500\nこんにちは\n\n00:00:04.000 --> 00:00:05.000\n元気\n"
    mock_requests.return_value = res

    segments = YtDlpTranscriptSource().fetch('vid1', 'ja')

    assert segments[0] == {'text': 'こんにちは', 'offset': 1000, 'duration': 2500}
    assert segments[1]['text'] == '元気'


def test_fetch_missing_language_lists_available(mock_yt_dlp):
    _listing(mock_yt_dlp, subtitles={'en': [{'ext': 'json3', 'url': 'u'}]},
             automatic={'es-419': [{'ext': 'json3', 'url': 'u'}]})

    with pytest.raises(NoTranscriptError) as excinfo:
        YtDlpTranscriptSource().fetch('vid1', 'fr')

    assert excinfo.value.available_languages == ['en', 'es-419']
    assert parse_language_hint(str(excinfo.value)) == ['en', 'es-419']


def test_fetch_literal_tag_only(mock_yt_dlp):
    _listing(mock_yt_dlp, subtitles={'en-US': [{'ext': 'json3', 'url': 'u'}]})

    with pytest.raises(NoTranscriptError):
        YtDlpTranscriptSource().fetch('vid1', 'en')


def test_machine_translated_tracks_are_excluded(mock_yt_dlp):
    _listing(mock_yt_dlp, automatic={
        'en': [{'ext': 'json3', 'url': 'http://x?v=1&lang=en'}],
        'ja': [{'ext': 'json3', 'url': 'http://x?v=1&lang=en&tlang=ja'}],
    })

    info = YtDlpTranscriptSource().describe('vid1')

    assert info['generatedLanguages'] == ['en']
    assert info['manualLanguages'] == []


def test_describe_keeps_manual_generated_split(mock_yt_dlp):
    _listing(
        mock_yt_dlp,
        subtitles={'ja': [{'ext': 'vtt', 'url': 'u'}, {'ext': 'json3', 'url': 'u'}]},
        automatic={'en': [{'ext': 'json3', 'url': 'u'}], 'ja': [{'ext': 'json3', 'url': 'u'}]},
    )

    info = YtDlpTranscriptSource().describe('vid1')

    assert info['manual'] == {'ja': ['json3', 'vtt']}
    assert info['generated'] == {'en': ['json3'], 'ja': ['json3']}
    assert info['allAvailableLanguages'] == ['ja', 'en']


def test_listing_is_memoized(mock_yt_dlp, mock_requests):
    instance = _listing(mock_yt_dlp, subtitles={'en': [{'ext': 'json3', 'url': 'u'}]})
    mock_requests.return_value = _json3_response([])
    source = YtDlpTranscriptSource()

    source.fetch('vid1', 'en')
    with pytest.raises(NoTranscriptError):
        source.fetch('vid1', 'ja')

    assert instance.extract_info.call_count == 1


def test_unavailable_video(mock_yt_dlp):
    instance = mock_yt_dlp.return_value.__enter__.return_value
    instance.extract_info.side_effect = yt_dlp.utils.DownloadError('ERROR: [youtube] vid1: Video unavailable')

    with pytest.raises(VideoUnavailableError):
        YtDlpTranscriptSource().fetch('vid1', 'en')


def test_other_download_errors_are_network(mock_yt_dlp):
    instance = mock_yt_dlp.return_value.__enter__.return_value
    instance.extract_info.side_effect = yt_dlp.utils.DownloadError('ERROR: Unable to download webpage')

    with pytest.raises(UpstreamNetworkError):
        YtDlpTranscriptSource().fetch('vid1', 'en')


def test_cookies_file_passed_to_yt_dlp(mock_yt_dlp, mock_requests):
    _listing(mock_yt_dlp, subtitles={'en': [{'ext': 'json3', 'url': 'u'}]})
    mock_requests.return_value = _json3_response([])

    YtDlpTranscriptSource(cookies_file='/tmp/cookies.txt').fetch('vid1', 'en')

    opts = mock_yt_dlp.call_args[0][0]
    assert opts['cookiefile'] == '/tmp/cookies.txt'
    assert opts['skip_download'] is True


def test_download_retries_on_429(mock_yt_dlp, mock_requests):
    _listing(mock_yt_dlp, subtitles={'en': [{'ext': 'json3', 'url': 'u'}]})
    limited = MagicMock(status_code=429)
    mock_requests.side_effect = [limited, _json3_response([
        {'tStartMs': 0, 'dDurationMs': 1000, 'segs': [{'utf8': 'Hi'}]},
    ])]

    with patch('lingoplay.utils.retry.time.sleep') as mock_sleep:
        segments = YtDlpTranscriptSource().fetch('vid1', 'en')

    assert segments[0]['text'] == 'Hi'
    assert mock_requests.call_count == 2
    mock_sleep.assert_called_once()


def test_download_gives_up_after_repeated_429(mock_yt_dlp, mock_requests):
    _listing(mock_yt_dlp, subtitles={'en': [{'ext': 'json3', 'url': 'u'}]})
    mock_requests.return_value = MagicMock(status_code=429)

    with patch('lingoplay.utils.retry.time.sleep'):
        with pytest.raises(RateLimitedError):
            YtDlpTranscriptSource().fetch('vid1', 'en')
    assert mock_requests.call_count == 3


def test_invalid_json3_payload(mock_yt_dlp, mock_requests):
    _listing(mock_yt_dlp, subtitles={'en': [{'ext': 'json3', 'url': 'u'}]})
    res = MagicMock(status_code=200)
    res.json.side_effect = ValueError('bad json')
    mock_requests.return_value = res

    with pytest.raises(MalformedResponseError):
        YtDlpTranscriptSource().fetch('vid1', 'en')


class TestJson3ToSegments:

    def test_estimates_missing_duration(self):
        segments = json3_to_segments({'events': [
            {'tStartMs': 0, 'segs': [{'utf8': 'Hi'}]},           # 2 chars -> clamp to 1500
            {'tStartMs': 2000, 'segs': [{'utf8': 'x' * 20}]},    # 20 chars -> 3000
            {'tStartMs': 5000, 'segs': [{'utf8': 'y' * 100}]},   # clamp to 5000
        ]})
        assert [s['duration'] for s in segments] == [1500, 3000, 5000]

    def test_skips_events_without_text(self):
        segments = json3_to_segments({'events': [
            {'tStartMs': 0, 'dDurationMs': 1000},
            {'tStartMs': 0, 'dDurationMs': 1000, 'segs': [{'utf8': '\n'}]},
        ]})
        assert segments == []

    def test_malformed_payload(self):
        with pytest.raises(MalformedResponseError):
            json3_to_segments({'events': 'nope'})


def test_parse_vtt_cue_settings():
    vtt = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000 align:start position:0%\nHello\n"
    data = parse_vtt_to_json3(vtt)
    assert data['events'][0]['segs'][0]['utf8'] == 'Hello'
    assert data['events'][0]['dDurationMs'] == 1000
