"""
Error taxonomy shared by every subtitle component.

Components raise these internally; component boundaries convert them into
FailureReason values (or empty results) so a failing language never aborts
the other one. Only ValidationError is meant to reach a route unchanged.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List

import requests


class ErrorKind(str, Enum):
    UNAVAILABLE_VIDEO = 'unavailable_video'
    NO_TRANSCRIPT = 'no_transcript'
    TIMEOUT = 'timeout'
    MALFORMED_RESPONSE = 'malformed_response'
    VALIDATION = 'validation'
    NETWORK = 'network'
    UNKNOWN = 'unknown'


class LingoplayError(Exception):
    """Base exception for subtitle pipeline errors."""
    kind = ErrorKind.UNKNOWN
    retryable = False


class VideoUnavailableError(LingoplayError):
    """Private, deleted or region-locked video."""
    kind = ErrorKind.UNAVAILABLE_VIDEO


class NoTranscriptError(LingoplayError):
    """The video has no captions for the requested language."""
    kind = ErrorKind.NO_TRANSCRIPT

    def __init__(self, message: str, available_languages: Optional[List[str]] = None):
        super().__init__(message)
        self.available_languages = available_languages or []


class UpstreamTimeoutError(LingoplayError):
    """An upstream call exceeded its time budget."""
    kind = ErrorKind.TIMEOUT
    retryable = True


class MalformedResponseError(LingoplayError):
    """Provider answered with a payload the parser cannot interpret."""
    kind = ErrorKind.MALFORMED_RESPONSE


class UpstreamNetworkError(LingoplayError):
    kind = ErrorKind.NETWORK
    retryable = True


class ValidationError(LingoplayError):
    """Client supplied input that fails constraints. Never retried upstream."""
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class OperationCancelled(LingoplayError):
    """The consumer that owned the operation went away."""


# Human-readable explanations surfaced to the learner
KIND_MESSAGES = {
    ErrorKind.UNAVAILABLE_VIDEO: 'This video is unavailable (private, deleted, or region-locked).',
    ErrorKind.NO_TRANSCRIPT: 'This video has no subtitles for this language.',
    ErrorKind.TIMEOUT: 'The subtitle service took too long to respond. Please try again.',
    ErrorKind.MALFORMED_RESPONSE: 'The subtitle service returned an unexpected response.',
    ErrorKind.VALIDATION: 'The request was invalid.',
    ErrorKind.NETWORK: 'There was a problem with the network connection.',
    ErrorKind.UNKNOWN: 'Failed to load subtitles.',
}

_UNAVAILABLE_MARKERS = ('video unavailable', 'private video', 'this video is private',
                        'has been removed', 'not available in your country',
                        'members-only', 'sign in to confirm your age')


@dataclass(frozen=True)
class FailureReason:
    kind: ErrorKind
    message: str
    retryable: bool = False
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'message': self.message,
            'retryable': self.retryable,
        }


def classify_message(message: str) -> ErrorKind:
    """Map raw provider error text to an ErrorKind."""
    lowered = (message or '').lower()
    if any(marker in lowered for marker in _UNAVAILABLE_MARKERS):
        return ErrorKind.UNAVAILABLE_VIDEO
    if 'no transcript' in lowered or 'transcript is disabled' in lowered or 'no subtitles' in lowered:
        return ErrorKind.NO_TRANSCRIPT
    if 'timeout' in lowered or 'timed out' in lowered:
        return ErrorKind.TIMEOUT
    if 'network' in lowered or 'connection' in lowered:
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> FailureReason:
    """Classify any exception raised by an upstream call."""
    if isinstance(exc, LingoplayError):
        kind = exc.kind
        retryable = exc.retryable
    elif isinstance(exc, (asyncio.TimeoutError, TimeoutError, requests.Timeout)):
        kind = ErrorKind.TIMEOUT
        retryable = True
    elif isinstance(exc, requests.ConnectionError):
        kind = ErrorKind.NETWORK
        retryable = True
    elif isinstance(exc, ValueError):
        kind = ErrorKind.MALFORMED_RESPONSE
        retryable = False
    else:
        kind = classify_message(str(exc))
        retryable = kind in (ErrorKind.TIMEOUT, ErrorKind.NETWORK)

    return FailureReason(kind=kind, message=KIND_MESSAGES[kind], retryable=retryable, detail=str(exc) or None)
