"""
Logging setup for the LingoPlay backend.

Human-readable colored output in development, one JSON object per line in
production. Per-request context (request id, video id) lives in a context
variable so it follows coroutines and the worker threads started with
asyncio.to_thread.
"""

import logging
import sys
import json
import time
import uuid
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Dict, Any

# Attributes every LogRecord has; anything else was passed as context
_RECORD_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}

_log_context: ContextVar[Dict[str, Any]] = ContextVar('lingoplay_log_context', default={})


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Extra fields attached to a record by log_with_context or `extra=`."""
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith('_')}


class JSONFormatter(logging.Formatter):
    """One JSON document per record; Japanese text stays readable."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key, value in record_context(record).items():
            log_data[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)

        if record.exc_info:
            log_data['exception'] = self.format_exception(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)

    def format_exception(self, exc_info) -> dict:
        exc_type, exc_value, exc_traceback = exc_info
        return {
            'type': exc_type.__name__,
            'message': str(exc_value),
            'traceback': traceback.format_exception(exc_type, exc_value, exc_traceback)
        }


class ColoredFormatter(logging.Formatter):
    """Colored level names plus a short [video | lang | req | duration] prefix."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def context_prefix(self, record: logging.LogRecord) -> str:
        parts = []
        if getattr(record, 'video_id', None):
            parts.append(f"video={record.video_id}")
        if getattr(record, 'language', None):
            parts.append(f"lang={record.language}")
        if getattr(record, 'request_id', None):
            parts.append(f"req={record.request_id[:8]}")
        if getattr(record, 'duration', None) is not None:
            parts.append(f"duration={record.duration:.2f}s")
        return f"[{' | '.join(parts)}] " if parts else ''

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy: other handlers (the JSON file handler) see the same record
        colored = logging.makeLogRecord(vars(record))
        color = self.COLORS.get(record.levelname, self.RESET)
        colored.levelname = f"{color}{record.levelname:8}{self.RESET}"
        colored.msg = f"{self.context_prefix(record)}{record.getMessage()}"
        colored.args = ()
        return super().format(colored)


def setup_logging(
    level: str = 'INFO',
    json_format: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the 'lingoplay' logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON console output (production)
        log_file: Optional file path; files are always JSON
    """
    logger = logging.getLogger('lingoplay')
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredFormatter(
            '%(asctime)s %(levelname)s [%(name)s] %(message)s',
            datefmt='%H:%M:%S'
        ))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    # yt-dlp and the HTTP stacks are chatty at INFO
    for name in ('urllib3', 'werkzeug', 'yt_dlp', 'openai', 'httpx'):
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def generate_request_id() -> str:
    return str(uuid.uuid4())


def mask_api_key(api_key: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a credential before it reaches a log line.

        mask_api_key("sk-abc123xyz789") -> "sk-a...z789"
        mask_api_key(None) -> "[not set]"
        mask_api_key("short") -> "*****"
    """
    if not api_key:
        return "[not set]"
    if len(api_key) <= visible_chars * 2 + 3:
        return "*" * len(api_key)
    return f"{api_key[:visible_chars]}...{api_key[-visible_chars:]}"


class LogContext:
    """
    Per-request logging context.

    Values are copied on write, so a coroutine or worker thread that
    inherited the context never sees later changes from its parent.
    """

    @classmethod
    def set(cls, **kwargs):
        _log_context.set({**_log_context.get(), **kwargs})

    @classmethod
    def get(cls, key: str, default=None):
        return _log_context.get().get(key, default)

    @classmethod
    def clear(cls):
        _log_context.set({})

    @classmethod
    def get_all(cls) -> dict:
        return dict(_log_context.get())

    @classmethod
    @contextmanager
    def bound(cls, **kwargs):
        """Add context for the duration of a block, then restore the previous values."""
        token = _log_context.set({**_log_context.get(), **kwargs})
        try:
            yield
        finally:
            _log_context.reset(token)


def log_with_context(logger: logging.Logger, level: str, message: str, **context):
    """Log with extra fields merged over the current LogContext."""
    full_context = {**LogContext.get_all(), **context}
    logger.log(getattr(logging, level.upper()), message, extra=full_context)


@contextmanager
def log_timing(logger: logging.Logger, operation: str, **context):
    """Log how long a block took; failures are logged at WARNING and re-raised."""
    start_time = time.time()
    try:
        yield
    except Exception as e:
        log_with_context(
            logger, 'WARNING', f"{operation} failed",
            duration=time.time() - start_time, error_type=type(e).__name__, **context
        )
        raise
    log_with_context(
        logger, 'INFO', f"{operation} completed",
        duration=time.time() - start_time, **context
    )


def setup_request_id_middleware(app):
    """
    Attach a request ID to every request.

    The ID comes from the X-Request-ID header when present, is stored in
    LogContext together with the video id from the URL, and is echoed back
    in the response headers.
    """
    from flask import request, g

    @app.before_request
    def add_request_id():
        g.request_id = request.headers.get('X-Request-ID') or generate_request_id()
        context = {'request_id': g.request_id}
        video_id = (request.view_args or {}).get('video_id') or request.form.get('videoId')
        if video_id:
            context['video_id'] = video_id
        LogContext.set(**context)

    @app.after_request
    def add_request_id_header(response):
        if hasattr(g, 'request_id'):
            response.headers['X-Request-ID'] = g.request_id
        return response

    @app.teardown_request
    def clear_log_context(exception=None):
        LogContext.clear()
