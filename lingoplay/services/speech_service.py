"""
Speech recognition fallback for videos without any captions.

Providers are tried in order (Whisper API, then Google Cloud Speech).
Providers without credentials are skipped. When every provider fails the
caller gets a structured failure pointing at interactive recognition in
the browser.
"""

import re
import base64
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

import requests
from openai import OpenAI, OpenAIError

from lingoplay.config import OPENAI_API_KEY, WHISPER_API_MODEL, GOOGLE_CLOUD_API_KEY, SPEECH_TIMEOUT
from lingoplay.models import Cue, cues_to_payload
from lingoplay.utils.errors import MalformedResponseError, UpstreamNetworkError
from lingoplay.utils.input_validation import validate_audio_upload, normalize_mime_type
from lingoplay.utils.logging_utils import mask_api_key

logger = logging.getLogger('lingoplay')

SECONDS_PER_SENTENCE = 3.0
WORDS_PER_SECOND = 2.5
INTER_CUE_GAP = 0.5

_SENTENCE_END = re.compile(r'[.!?。！？]+')


@dataclass
class Transcription:
    text: str
    method: str
    language: Optional[str] = None
    # Provider segments with their own timing: [{'start', 'end', 'text'}]
    segments: List[Dict[str, Any]] = field(default_factory=list)
    # Full-utterance texts without timing
    utterances: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'method': self.method,
            'language': self.language,
            'segments': self.segments,
            'utterances': self.utterances,
        }


def segment_by_sentences(text: str, seconds_per_sentence: float = SECONDS_PER_SENTENCE) -> List[Cue]:
    """Split on Latin/CJK sentence punctuation; fixed duration, laid end to end."""
    sentences = [s.strip() for s in _SENTENCE_END.split(text or '') if s.strip()]
    return [
        Cue(start=i * seconds_per_sentence, end=(i + 1) * seconds_per_sentence, text=sentence)
        for i, sentence in enumerate(sentences)
    ]


def segment_by_speech_rate(utterances: List[str], words_per_second: float = WORDS_PER_SECOND,
                           gap: float = INTER_CUE_GAP) -> List[Cue]:
    """Estimate each utterance's duration from its word count."""
    cues = []
    current = 0.0
    for utterance in utterances:
        text = (utterance or '').strip()
        if not text:
            continue
        duration = len(text.split()) / words_per_second
        cues.append(Cue(start=current, end=current + duration, text=text))
        current += duration + gap
    return cues


def transcription_to_cues(transcription: Transcription) -> List[Cue]:
    """
    Timed segments are used as-is; otherwise timing is approximated from
    utterance word counts, then from sentence boundaries.
    """
    if transcription.segments:
        cues = []
        for segment in transcription.segments:
            text = (segment.get('text') or '').strip()
            start = float(segment.get('start', 0))
            end = float(segment.get('end', 0))
            if text and end > start:
                cues.append(Cue(start=start, end=end, text=text))
        if cues:
            return cues
    if transcription.utterances:
        return segment_by_speech_rate(transcription.utterances)
    return segment_by_sentences(transcription.text)


def _as_dict(obj) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, 'model_dump'):
        return obj.model_dump()
    return {key: getattr(obj, key, None) for key in ('start', 'end', 'text')}


class SpeechProvider(ABC):
    name = 'provider'

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def transcribe(self, audio: bytes, mime_type: str, language: str, filename: str = 'audio') -> Transcription:
        """Blocking call to the provider. Raises on failure."""
        pass


class WhisperApiProvider(SpeechProvider):
    """OpenAI Whisper API; returns segment-level timestamps."""

    name = 'whisper'

    def __init__(self, api_key: Optional[str] = OPENAI_API_KEY, model: str = WHISPER_API_MODEL,
                 timeout: float = SPEECH_TIMEOUT):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def transcribe(self, audio: bytes, mime_type: str, language: str, filename: str = 'audio') -> Transcription:
        logger.info(f"[SPEECH] Whisper API ({self.model}, key={mask_api_key(self.api_key)})")
        try:
            response = self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio, mime_type),
                language=(language or 'en').split('-')[0],
                response_format='verbose_json',
                timestamp_granularities=['segment'],
            )
        except OpenAIError as e:
            raise UpstreamNetworkError(f"Whisper API error: {e}") from e

        data = _as_dict(response)
        text = data.get('text')
        if text is None:
            raise MalformedResponseError('Whisper API response has no text')
        return Transcription(
            text=text,
            method=self.name,
            language=data.get('language'),
            segments=[_as_dict(s) for s in data.get('segments') or []],
        )


class GoogleSpeechProvider(SpeechProvider):
    """Google Cloud Speech-to-Text; full utterances only."""

    name = 'google'
    URL = 'https://speech.googleapis.com/v1p1beta1/speech:recognize'

    ENCODINGS = {
        'audio/webm': 'WEBM_OPUS',
        'audio/ogg': 'OGG_OPUS',
        'audio/wav': 'LINEAR16',
        'audio/mp3': 'MP3',
        'audio/mpeg': 'MP3',
    }
    LANGUAGE_CODES = {'en': 'en-US', 'ja': 'ja-JP'}

    def __init__(self, api_key: Optional[str] = GOOGLE_CLOUD_API_KEY, timeout: float = SPEECH_TIMEOUT):
        self.api_key = api_key
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_request(self, audio: bytes, mime_type: str, language: str) -> Dict[str, Any]:
        encoding = self.ENCODINGS.get(normalize_mime_type(mime_type), 'ENCODING_UNSPECIFIED')
        config = {
            'encoding': encoding,
            'languageCode': self.LANGUAGE_CODES.get(language, language or 'en-US'),
            'enableAutomaticPunctuation': True,
            'model': 'video',
        }
        if encoding in ('WEBM_OPUS', 'OGG_OPUS'):
            config['sampleRateHertz'] = 48000
        elif encoding == 'MP3':
            config['sampleRateHertz'] = 16000
        return {'config': config, 'audio': {'content': base64.b64encode(audio).decode('ascii')}}

    def transcribe(self, audio: bytes, mime_type: str, language: str, filename: str = 'audio') -> Transcription:
        logger.info(f"[SPEECH] Google Speech API (key={mask_api_key(self.api_key)})")
        res = requests.post(
            self.URL,
            params={'key': self.api_key},
            json=self.build_request(audio, mime_type, language),
            timeout=self.timeout,
        )
        if res.status_code != 200:
            raise UpstreamNetworkError(f"Google Speech API error: {res.status_code}")

        try:
            data = res.json()
        except ValueError as e:
            raise MalformedResponseError('Google Speech API returned non-JSON payload') from e

        results = data.get('results') if isinstance(data, dict) else None
        if not results:
            raise MalformedResponseError('Google Speech API returned no results')

        utterances = []
        for result in results:
            alternatives = result.get('alternatives') or []
            if alternatives and alternatives[0].get('transcript'):
                utterances.append(alternatives[0]['transcript'].strip())
        if not utterances:
            raise MalformedResponseError('Google Speech API results contain no transcript')

        return Transcription(text=' '.join(utterances), method=self.name, language=language, utterances=utterances)


@dataclass
class SpeechResult:
    success: bool
    video_id: Optional[str] = None
    language: Optional[str] = None
    transcription: Optional[Transcription] = None
    cues: List[Cue] = field(default_factory=list)
    attempted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {
                'videoId': self.video_id,
                'language': self.language,
                'transcription': self.transcription.to_dict(),
                'subtitles': cues_to_payload(self.cues),
                'success': True,
                'method': self.transcription.method,
            }
        return {
            'videoId': self.video_id,
            'language': self.language,
            'success': False,
            'error': 'Speech recognition failed',
            'attempted': self.attempted,
            'suggestion': "Use the browser's Web Speech API for interactive recognition",
            'fallbackOptions': {'webSpeechAPI': True, 'manualUpload': True},
        }


class SpeechToTextService:
    def __init__(self, providers: Optional[List[SpeechProvider]] = None, timeout: float = SPEECH_TIMEOUT):
        self.providers = providers if providers is not None else [WhisperApiProvider(), GoogleSpeechProvider()]
        self.timeout = timeout

    def provider_status(self) -> List[Dict[str, Any]]:
        return [{'name': p.name, 'enabled': p.is_configured()} for p in self.providers]

    async def transcribe_audio(self, audio: bytes, mime_type: str, language: str = 'en',
                               video_id: Optional[str] = None, filename: str = 'audio') -> SpeechResult:
        """
        Raises:
            ValidationError: before any provider is contacted
        """
        validate_audio_upload(len(audio or b''), mime_type)
        mime_type = normalize_mime_type(mime_type)

        result = SpeechResult(success=False, video_id=video_id, language=language)
        for provider in self.providers:
            if not provider.is_configured():
                logger.info(f"[SPEECH] {provider.name} not configured, skipping")
                continue
            result.attempted.append(provider.name)
            try:
                transcription = await asyncio.wait_for(
                    asyncio.to_thread(provider.transcribe, audio, mime_type, language, filename),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"[SPEECH] {provider.name} timed out after {self.timeout:g}s")
                continue
            except Exception as e:
                logger.warning(f"[SPEECH] {provider.name} failed: {e}")
                continue

            cues = transcription_to_cues(transcription)
            logger.info(f"[SPEECH] {provider.name} succeeded: {len(transcription.text)} chars, {len(cues)} cues")
            result.success = True
            result.transcription = transcription
            result.cues = cues
            return result

        logger.warning(f"[SPEECH] No provider could transcribe audio for {video_id}")
        return result


_speech_service: Optional[SpeechToTextService] = None


def get_speech_service() -> SpeechToTextService:
    global _speech_service
    if _speech_service is None:
        _speech_service = SpeechToTextService()
    return _speech_service
