"""
Input validation utilities for route parameters.
"""

import re
from typing import Optional

from lingoplay.config import MAX_AUDIO_SIZE_BYTES, MAX_AUDIO_SIZE_MB, MAX_TRANSLATE_TEXT_LENGTH
from lingoplay.utils.errors import ValidationError
from lingoplay.utils.language_tags import is_valid_tag

# YouTube video ID (typically 11 chars, relaxed for tests/variants)
VIDEO_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,64}$')

ALLOWED_AUDIO_TYPES = ('audio/wav', 'audio/mp3', 'audio/mpeg', 'audio/ogg', 'audio/webm')


def validate_video_id(video_id: str) -> bool:
    """Validate YouTube video ID format."""
    return isinstance(video_id, str) and bool(VIDEO_ID_PATTERN.match(video_id))


def validate_lang_code(lang: str, allow_auto: bool = False) -> bool:
    """Validate a BCP-47-like language tag ('auto' optionally allowed)."""
    if allow_auto and lang == 'auto':
        return True
    return is_valid_tag(lang)


def validate_translate_text(text) -> str:
    """Return the text if it can be sent for translation, else raise ValidationError."""
    if not text or not isinstance(text, str):
        raise ValidationError('text is required', field='text')
    if len(text) > MAX_TRANSLATE_TEXT_LENGTH:
        raise ValidationError(
            f'text is too long (max {MAX_TRANSLATE_TEXT_LENGTH} characters)', field='text'
        )
    return text


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Strip parameters such as '; codecs=opus' and lowercase."""
    return (mime_type or '').split(';')[0].strip().lower()


def validate_audio_upload(size: int, mime_type: Optional[str]):
    """
    Reject oversized or unsupported audio before any provider is contacted.

    Raises:
        ValidationError: with a message naming the violated constraint
    """
    if size is None or size <= 0:
        raise ValidationError('audio file is empty', field='audio')
    if size > MAX_AUDIO_SIZE_BYTES:
        raise ValidationError(f'audio file is too large (max {MAX_AUDIO_SIZE_MB}MB)', field='audio')
    if normalize_mime_type(mime_type) not in ALLOWED_AUDIO_TYPES:
        raise ValidationError(
            f"unsupported audio format. Supported: {', '.join(ALLOWED_AUDIO_TYPES)}",
            field='audio'
        )
