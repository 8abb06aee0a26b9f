"""
Data model shared by the server and the client-side consumer.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from lingoplay.utils.errors import FailureReason


@dataclass(frozen=True)
class Cue:
    """A single timed subtitle unit."""
    start: float  # Start time in seconds
    end: float    # End time in seconds
    text: str     # Cleaned display text

    def to_dict(self) -> Dict[str, Any]:
        return {'start': self.start, 'end': self.end, 'text': self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Cue':
        return cls(start=float(data['start']), end=float(data['end']), text=str(data['text']))

    def with_text(self, text: str) -> 'Cue':
        return Cue(start=self.start, end=self.end, text=text)


@dataclass(frozen=True)
class LanguageAvailability:
    language_code: str
    is_auto_generated: bool = True
    is_translatable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'languageCode': self.language_code,
            'isAutoGenerated': self.is_auto_generated,
            'isTranslatable': self.is_translatable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LanguageAvailability':
        return cls(
            language_code=data['languageCode'],
            is_auto_generated=data.get('isAutoGenerated', True),
            is_translatable=data.get('isTranslatable', True),
        )


SPEECH_TO_TEXT_SUGGESTION = {
    'speechToText': 'This video has no subtitles. Upload its audio to generate subtitles with speech recognition.',
    'audioFormats': ['audio/wav', 'audio/mp3', 'audio/ogg', 'audio/webm'],
    'apiEndpoint': '/api/speech-to-text',
}


@dataclass(frozen=True)
class SubtitleBundle:
    """
    Resolved dual-language subtitles for one video.

    Created fresh per resolution and never mutated afterwards; a later
    resolution produces a new bundle.
    """
    video_id: str
    english: tuple = ()
    japanese: tuple = ()
    available_languages: tuple = ()
    loading_japanese: bool = False
    english_error: Optional[FailureReason] = None
    japanese_error: Optional[FailureReason] = None

    @property
    def has_english_subtitles(self) -> bool:
        return len(self.english) > 0

    @property
    def has_japanese_subtitles(self) -> bool:
        return len(self.japanese) > 0

    @property
    def speech_to_text_available(self) -> bool:
        # Suggested only when discovery succeeded and found no captions at all
        return (not self.english and not self.japanese and not self.available_languages
                and self.english_error is None and self.japanese_error is None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'videoId': self.video_id,
            'english': [cue.to_dict() for cue in self.english],
            'japanese': [cue.to_dict() for cue in self.japanese],
            'availableLanguages': [lang.to_dict() for lang in self.available_languages],
            'hasEnglishSubtitles': self.has_english_subtitles,
            'hasJapaneseSubtitles': self.has_japanese_subtitles,
            'loadingJapanese': self.loading_japanese,
            'errors': {
                'english': self.english_error.to_dict() if self.english_error else None,
                'japanese': self.japanese_error.to_dict() if self.japanese_error else None,
            },
            'speechToTextAvailable': self.speech_to_text_available,
            'suggestions': SPEECH_TO_TEXT_SUGGESTION if self.speech_to_text_available else None,
        }


def cues_from_payload(payload: List[Dict[str, Any]]) -> List[Cue]:
    return [Cue.from_dict(item) for item in payload or []]


def cues_to_payload(cues: List[Cue]) -> List[Dict[str, Any]]:
    return [cue.to_dict() for cue in cues]


@dataclass
class TranscriptResult:
    """Outcome of one (video, language) fetch: cues or a classified failure."""
    cues: List[Cue] = field(default_factory=list)
    error: Optional[FailureReason] = None
    raw_error: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return bool(self.cues)
