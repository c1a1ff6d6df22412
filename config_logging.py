#!/usr/bin/env python3
"""
WordWise Configuration & Logging Module
=======================================
Process-level configuration, structured logging, error types and
request rate limiting shared by the analysis engine and its HTTP surface.

Engine tunables (tiers, thresholds, cache sizes) live in wordwise.config;
this module only covers what every component needs before it can start.
"""

import os
import sys
import json
import logging
import uuid
import time
import functools
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Callable
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager
import threading

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_RATE_LIMIT_REQUESTS = 100   # Default requests per window
DEFAULT_RATE_LIMIT_WINDOW = 60      # Default window in seconds
DEFAULT_MAX_TEXT_CHARS = 200_000    # Largest document accepted over HTTP
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5                # Number of log backup files to keep

__version__ = "1.0.0"
VERSION = __version__
APP_NAME = "WordWise"

# LogRecord attributes that must not be overwritten through `extra`
_RESERVED_LOG_KEYS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'thread', 'threadName', 'exc_info', 'exc_text',
    'message', 'taskName', 'asctime',
))

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Process configuration with safe defaults."""

    # Server settings
    host: str = "127.0.0.1"
    port: int = 5060
    debug: bool = False
    max_text_chars: int = DEFAULT_MAX_TEXT_CHARS

    # Rate limiting (HTTP surface)
    rate_limit_enabled: bool = True
    rate_limit_requests: int = DEFAULT_RATE_LIMIT_REQUESTS
    rate_limit_window: int = DEFAULT_RATE_LIMIT_WINDOW  # seconds

    # Paths
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent)
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'logs')

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True

    def __post_init__(self):
        """Normalize configuration."""
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        # Force debug=False in production environment
        if os.environ.get('WW_ENV', 'development').lower() == 'production':
            self.debug = False
            self.log_level = "WARNING"

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load configuration from environment variables."""
        return cls(
            host=os.environ.get('WW_HOST', '127.0.0.1'),
            port=int(os.environ.get('WW_PORT', '5060')),
            debug=os.environ.get('WW_DEBUG', 'false').lower() == 'true',
            max_text_chars=int(os.environ.get('WW_MAX_TEXT_CHARS', str(DEFAULT_MAX_TEXT_CHARS))),
            rate_limit_enabled=os.environ.get('WW_RATE_LIMIT', 'true').lower() == 'true',
            rate_limit_requests=int(os.environ.get('WW_RATE_LIMIT_REQUESTS', str(DEFAULT_RATE_LIMIT_REQUESTS))),
            rate_limit_window=int(os.environ.get('WW_RATE_LIMIT_WINDOW', str(DEFAULT_RATE_LIMIT_WINDOW))),
            log_level=os.environ.get('WW_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('WW_LOG_FORMAT', 'json'),
            log_to_file=os.environ.get('WW_LOG_TO_FILE', 'false').lower() == 'true',
        )

    def validate(self) -> tuple:
        """Validate configuration and return (is_valid, errors)."""
        errors = []

        if self.debug and os.environ.get('WW_ENV') == 'production':
            errors.append("Debug mode cannot be enabled in production")

        if self.log_format not in ('json', 'text'):
            errors.append(f"Invalid log_format: {self.log_format}. Must be 'json' or 'text'")

        if self.log_level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            errors.append(f"Invalid log_level: {self.log_level}")

        if self.rate_limit_requests <= 0 or self.rate_limit_window <= 0:
            errors.append("Rate limit requests and window must be positive")

        if self.max_text_chars <= 0:
            errors.append("max_text_chars must be positive")

        return (len(errors) == 0, errors)


# Global config instance
_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config():
    """Reset the global configuration (for testing)."""
    global _config, _loggers
    _config = None
    _loggers = {}


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured JSON logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[AppConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
        self.logger.handlers.clear()
        self.logger.propagate = True

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        # Rotating file handler keeps the log directory bounded
        if self.config.log_to_file:
            from logging.handlers import RotatingFileHandler
            log_file = self.config.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or str(uuid.uuid4())[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    @staticmethod
    def _safe_extra(kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Rename context keys that would collide with LogRecord attributes."""
        return {
            (f"ctx_{key}" if key in _RESERVED_LOG_KEYS else key): value
            for key, value in kwargs.items()
        }

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        extra = self._safe_extra(kwargs)
        extra['correlation_id'] = self.get_correlation_id()
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message."""
        self._log(logging.CRITICAL, message, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
            duration_ms = (time.time() - start_time) * 1000
            self.info(f"{operation} completed", operation=operation, status='completed',
                      duration_ms=round(duration_ms, 2), **context)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), exc_info=True, **context)
            raise


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_KEYS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance (one per name)."""
    logger = _loggers.get(name)
    if logger is None:
        logger = StructuredLogger(name, get_config())
        _loggers[name] = logger
    return logger


# =============================================================================
# ERROR HANDLING UTILITIES
# =============================================================================

class WordWiseError(Exception):
    """Base exception for WordWise."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 status_code: int = 500, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response dict."""
        return {
            'success': False,
            'error': {
                'code': self.code,
                'message': self.message,
                'details': self.details
            }
        }


class ValidationError(WordWiseError):
    """Input validation error."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400,
                         details={'field': field, **kwargs})


class AnalyzerError(WordWiseError):
    """An analyzer failed while processing text."""
    def __init__(self, message: str, analyzer: Optional[str] = None, **kwargs):
        super().__init__(message, code="ANALYZER_ERROR", status_code=500,
                         details={'analyzer': analyzer, **kwargs})


class RemoteServiceError(WordWiseError):
    """A remote analysis or AI endpoint failed or returned non-2xx."""
    def __init__(self, message: str, service: Optional[str] = None,
                 http_status: Optional[int] = None, **kwargs):
        super().__init__(message, code="REMOTE_SERVICE_ERROR", status_code=502,
                         details={'service': service, 'http_status': http_status, **kwargs})
        self.http_status = http_status


class MalformedResponseError(WordWiseError):
    """A remote response did not match the expected schema."""
    def __init__(self, message: str, service: Optional[str] = None, **kwargs):
        super().__init__(message, code="MALFORMED_RESPONSE", status_code=502,
                         details={'service': service, **kwargs})


class PositionMappingError(WordWiseError):
    """A plain-text span could not be mapped onto the live document."""
    def __init__(self, message: str, suggestion_id: Optional[str] = None, **kwargs):
        super().__init__(message, code="POSITION_MAPPING_ERROR", status_code=500,
                         details={'suggestion_id': suggestion_id, **kwargs})


class RateLimitError(WordWiseError):
    """Rate limit or usage quota exceeded."""
    def __init__(self, retry_after: int = 60, message: str = "Rate limit exceeded", **kwargs):
        super().__init__(message, code="RATE_LIMIT", status_code=429,
                         details={'retry_after': retry_after, **kwargs})
        self.retry_after = retry_after


def handle_errors(logger: Optional[StructuredLogger] = None):
    """Decorator for standardized error handling."""
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            _logger = logger or get_logger(func.__module__)
            try:
                return func(*args, **kwargs)
            except WordWiseError:
                raise  # Re-raise our custom errors
            except (KeyError, TypeError, ValueError) as e:
                _logger.error(f"Validation error in {func.__name__}: {e}", exc_info=True)
                raise ValidationError(str(e))
            except Exception as e:
                _logger.exception(f"Unexpected error in {func.__name__}: {e}")
                raise AnalyzerError(f"An unexpected error occurred: {type(e).__name__}",
                                    analyzer=func.__name__)
        return wrapper
    return decorator


# =============================================================================
# RATE LIMITING
# =============================================================================

class RateLimiter:
    """Simple in-memory sliding-window rate limiter."""

    def __init__(self, max_requests: int = 100, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: Dict[str, list] = {}
        self._lock = threading.Lock()

    def is_allowed(self, key: str) -> bool:
        """Check if request is allowed (and record it)."""
        now = time.time()

        with self._lock:
            if key not in self._requests:
                self._requests[key] = []

            # Clean old requests
            self._requests[key] = [
                t for t in self._requests[key]
                if now - t < self.window_seconds
            ]

            if len(self._requests[key]) >= self.max_requests:
                return False

            self._requests[key].append(now)
            return True

    def get_retry_after(self, key: str) -> int:
        """Get seconds until rate limit resets."""
        with self._lock:
            timestamps = self._requests.get(key)
            if not timestamps:
                return 0
            oldest = min(timestamps)
        return max(0, int(self.window_seconds - (time.time() - oldest)))

    def reset(self, key: str = None):
        """Reset rate limit for a key or all keys."""
        with self._lock:
            if key:
                self._requests.pop(key, None)
            else:
                self._requests.clear()


# Global rate limiter
_rate_limiter: Optional[RateLimiter] = None

def get_rate_limiter() -> RateLimiter:
    """Get or create global rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        config = get_config()
        _rate_limiter = RateLimiter(
            config.rate_limit_requests,
            config.rate_limit_window
        )
    return _rate_limiter


def reset_rate_limiter():
    """Reset the global rate limiter (for testing)."""
    global _rate_limiter
    if _rate_limiter:
        _rate_limiter.reset()
    _rate_limiter = None
