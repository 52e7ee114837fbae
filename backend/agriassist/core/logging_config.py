"""
Logging setup: JSON or text output, request context, secret masking

Every module gets its logger through LoggingConfig.get_logger(__name__).
Records carry the current request context (request id, method, path) set
by the HTTP middleware, and API keys never reach a handler unmasked.
"""
import json
import logging
import re
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from agriassist.core.config import Settings, get_settings
from agriassist.core.metrics import log_messages_total

# Per-request fields merged into every record
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})

_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord('', 0, '', 0, '', (), None).__dict__
) | {'message', 'asctime', 'taskName'}

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class SensitiveDataFilter(logging.Filter):
    """Masks API keys and credentials in messages and string extras"""

    SENSITIVE_PATTERNS = [
        (re.compile(r'(x-goog-api-key["\']?\s*[:=]\s*["\']?)[^"\'\s,&]+', re.IGNORECASE), r'\1***'),
        (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)[^"\'\s,&]+', re.IGNORECASE), r'\1***'),
        (re.compile(r'([?&]key=)[^\s&"\']+', re.IGNORECASE), r'\1***'),
        (re.compile(r'((?:token|secret)["\']?\s*[:=]\s*["\']?)[^"\'\s,&]+', re.IGNORECASE), r'\1***'),
        (re.compile(r'(Bearer\s+)[^\s"\']+'), r'\1***'),
        (re.compile(r'(Authorization:\s*)[^\s"\']+', re.IGNORECASE), r'\1***'),
        # Google API keys have a fixed prefix
        (re.compile(r'AIza[0-9A-Za-z_\-]{20,}'), '***'),
    ]

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    @classmethod
    def mask(cls, text: str) -> str:
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.enabled:
            return True

        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES and isinstance(value, str):
                setattr(record, key, self.mask(value))
        return True


class ContextualFormatter(logging.Formatter):
    """JSON formatter that adds request context and extra= fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }
        log_dict.update(request_context.get())

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_dict[key] = value

        if record.exc_info:
            log_dict['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Plain text formatter; appends the request id when one is set"""

    def __init__(self):
        super().__init__('%(asctime)s - %(name)s - %(levelname)s - %(message)s', datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        request_id = request_context.get().get('request_id')
        return f"{line} [request_id={request_id}]" if request_id else line


class _LevelCounterHandler(logging.Handler):
    """Counts emitted records per level in log_messages_total"""

    def emit(self, record: logging.LogRecord):
        log_messages_total.labels(level=record.levelname).inc()


class LoggingConfig:
    """Application-wide logging configuration"""

    _configured = False
    _module_levels: Dict[str, str] = {}

    @classmethod
    def configure(cls, module_levels: Optional[Dict[str, str]] = None, force: bool = False):
        """
        Install handlers on the root logger

        Args:
            module_levels: Extra logger levels, applied over the configured ones
            force: Reconfigure even if logging was already set up
        """
        if cls._configured and not force:
            return

        settings = get_settings()
        cls._module_levels = cls._resolve_levels(settings, module_levels)

        logging.basicConfig(
            level=cls._module_levels.get("root", "INFO").upper(),
            handlers=cls._build_handlers(settings),
            force=True
        )
        for name, level in cls._module_levels.items():
            if name != "root":
                logging.getLogger(name).setLevel(level.upper())

        cls._configured = True

    @staticmethod
    def _resolve_levels(settings: Settings, overrides: Optional[Dict[str, str]]) -> Dict[str, str]:
        levels = {
            "httpx": "WARNING",
            "httpcore": "WARNING",
            "uvicorn.access": "INFO" if settings.log_uvicorn_access else "WARNING",
            "uvicorn.error": "INFO",
            "agriassist": settings.log_level,
            "root": settings.log_level,
        }
        if settings.log_module_levels:
            try:
                configured = json.loads(settings.log_module_levels)
            except json.JSONDecodeError:
                print(f"Ignoring invalid LOG_MODULE_LEVELS: {settings.log_module_levels!r}", file=sys.stderr)
            else:
                if isinstance(configured, dict):
                    levels.update(configured)
        if overrides:
            levels.update(overrides)
        return levels

    @staticmethod
    def _build_handlers(settings: Settings) -> List[logging.Handler]:
        if settings.log_format.lower() == "json":
            formatter: logging.Formatter = ContextualFormatter(datefmt=DATE_FORMAT)
        else:
            formatter = TextFormatter()
        sensitive_filter = SensitiveDataFilter(enabled=not settings.log_sensitive_data)

        console_handler = logging.StreamHandler(sys.stdout)
        handlers: List[logging.Handler] = [console_handler]

        if settings.log_file_enabled:
            log_path = Path(settings.log_file_path)
            if not log_path.is_absolute():
                log_path = Path(__file__).resolve().parents[3] / log_path
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(TimedRotatingFileHandler(
                filename=str(log_path),
                when='midnight',
                backupCount=settings.log_file_retention,
                encoding='utf-8'
            ))

        for handler in handlers:
            handler.setFormatter(formatter)
            handler.addFilter(sensitive_filter)
        handlers.append(_LevelCounterHandler())
        return handlers

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger for a module"""
        if not cls._configured:
            cls.configure()
        return logging.getLogger(name)

    @classmethod
    def get_module_levels(cls) -> Dict[str, str]:
        return dict(cls._module_levels)

    @classmethod
    def set_context(cls, **kwargs):
        """Add fields to the current request context"""
        ctx = dict(request_context.get())
        ctx.update(kwargs)
        request_context.set(ctx)

    @classmethod
    def clear_context(cls):
        request_context.set({})
