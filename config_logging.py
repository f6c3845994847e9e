#!/usr/bin/env python3
"""
PromptAuditReview Configuration & Logging Module
================================================
Centralized configuration, structured logging, and error types.
"""

import os
import sys
import json
import logging
import uuid
import time
import threading
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple, List
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_MAX_DOCUMENT_BYTES = 2 * 1024 * 1024   # JSON bodies carry whole documents
MAX_SAFE_DOCUMENT_BYTES = 32 * 1024 * 1024
DEFAULT_PORT = 5060
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5

DIFF_STRATEGIES = ('lookahead', 'optimal')
LOG_FORMATS = ('json', 'text')

VERSION = __version__ = "1.0.0"
APP_NAME = "PromptAuditReview"


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Application configuration with secure defaults."""

    # Server settings
    host: str = "127.0.0.1"  # Localhost only by default
    port: int = DEFAULT_PORT
    debug: bool = False
    max_content_length: int = DEFAULT_MAX_DOCUMENT_BYTES

    # Diff engine
    diff_strategy: str = "lookahead"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'logs')

    def __post_init__(self):
        """Normalize values and apply production overrides."""
        self.log_dir = Path(self.log_dir)
        self.diff_strategy = self.diff_strategy.strip().lower()
        self.log_format = self.log_format.strip().lower()

        if os.environ.get('PAR_ENV', 'development').lower() == 'production':
            self.debug = False
            self.log_level = "WARNING"

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load configuration from environment variables."""
        return cls(
            host=os.environ.get('PAR_HOST', '127.0.0.1'),
            port=int(os.environ.get('PAR_PORT', str(DEFAULT_PORT))),
            debug=_env_flag('PAR_DEBUG', 'false'),
            max_content_length=int(os.environ.get('PAR_MAX_DOCUMENT', str(DEFAULT_MAX_DOCUMENT_BYTES))),
            diff_strategy=os.environ.get('PAR_DIFF_STRATEGY', 'lookahead'),
            log_level=os.environ.get('PAR_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('PAR_LOG_FORMAT', 'json'),
            log_to_file=_env_flag('PAR_LOG_TO_FILE', 'false'),
            log_dir=Path(os.environ.get('PAR_LOG_DIR', str(Path(__file__).parent / 'logs'))),
        )

    def validate(self) -> Tuple[bool, List[str]]:
        """Validate configuration and return (is_valid, errors)."""
        errors = []

        if self.debug and os.environ.get('PAR_ENV') == 'production':
            errors.append("Debug mode cannot be enabled in production")

        if not 0 < self.port < 65536:
            errors.append(f"Port out of range: {self.port}")

        if self.max_content_length <= 0:
            errors.append("Max document size must be positive")
        elif self.max_content_length > MAX_SAFE_DOCUMENT_BYTES:
            errors.append(f"Max document size exceeds safe limit ({MAX_SAFE_DOCUMENT_BYTES} bytes)")

        if self.diff_strategy not in DIFF_STRATEGIES:
            errors.append(f"Invalid diff_strategy: {self.diff_strategy}. Must be one of {', '.join(DIFF_STRATEGIES)}")

        if self.log_format not in LOG_FORMATS:
            errors.append(f"Invalid log_format: {self.log_format}. Must be 'json' or 'text'")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            errors.append(f"Invalid log_level: {self.log_level}")

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
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[AppConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        level = logging.getLevelName(self.config.log_level.upper())
        self.logger.setLevel(level if isinstance(level, int) else logging.INFO)
        self.logger.handlers.clear()

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
            self.config.log_dir.mkdir(parents=True, exist_ok=True)
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

    def _extra(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return {'correlation_id': self.get_correlation_id(), **kwargs}

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(message, extra=self._extra(kwargs))

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(message, extra=self._extra(kwargs))

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(message, extra=self._extra(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self.logger.error(message, exc_info=exc_info, extra=self._extra(kwargs))

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), exc_info=True, **context)
            raise
        duration_ms = (time.time() - start_time) * 1000
        self.info(f"{operation} completed", operation=operation, status='completed',
                  duration_ms=round(duration_ms, 2), **context)


_RESERVED_RECORD_KEYS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'thread', 'threadName', 'exc_info', 'exc_text',
    'message', 'taskName', 'asctime',
))


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

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, get_config())


# =============================================================================
# ERROR HANDLING
# =============================================================================

class AuditReviewError(Exception):
    """Base exception for PromptAuditReview."""

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


class ValidationError(AuditReviewError):
    """Input validation error."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400,
                         details={'field': field, **kwargs})


class ProcessingError(AuditReviewError):
    """Diff or annotation processing error."""
    def __init__(self, message: str, stage: Optional[str] = None, **kwargs):
        super().__init__(message, code="PROCESSING_ERROR", status_code=500,
                         details={'stage': stage, **kwargs})
