"""
LetterDesk - Centralized Logging Configuration
Supports both development (plain text) and production (JSON structured) logging
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from letterdesk.core.config import settings


# Context variables for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')
letter_id_var: ContextVar[str] = ContextVar('letter_id', default='')


def get_request_id() -> str:
    """Get current request ID from context"""
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    """Set request ID in context"""
    request_id_var.set(request_id)


def get_user_id() -> str:
    """Get current user ID from context"""
    return user_id_var.get() or ''


def set_user_id(user_id: str) -> None:
    """Set user ID in context"""
    user_id_var.set(user_id)


def get_letter_id() -> str:
    """Get current letter ID from context"""
    return letter_id_var.get() or ''


def set_letter_id(letter_id: str) -> None:
    """Set letter ID in context"""
    letter_id_var.set(letter_id)


def generate_request_id() -> str:
    """Generate a unique request ID"""
    return str(uuid.uuid4())[:8]


# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'request_id', 'user_id', 'letter_id',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production
    Outputs logs in a format easily parsed by log aggregation tools (ELK, CloudWatch, etc.)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add context from context variables
        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        user_id = get_user_id()
        if user_id:
            log_data["user_id"] = user_id

        letter_id = get_letter_id()
        if letter_id:
            log_data["letter_id"] = letter_id

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """
    Enhanced formatter that includes context variables (request_id, user_id, letter_id)
    Used for development with readable output
    """

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.user_id = get_user_id() or '-'
        record.letter_id = get_letter_id() or '-'

        return super().format(record)


class LetterDeskLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_auth_event(self, event: str, success: bool, user_email: str = None,
                       reason: str = None, **kwargs) -> None:
        """Log authentication events"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"Auth {event}: {'success' if success else 'failed'}" +
            (f" - {user_email}" if user_email else "") +
            (f" - {reason}" if reason else ""),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_letter_event(self, letter_id: str, event: str, **kwargs) -> None:
        """Log letter lifecycle events (created, approved, rejected, deleted)"""
        self.info(
            f"Letter {letter_id}: {event}",
            extra={
                "event_type": "letter",
                "letter_event": event,
                "letter_ref": letter_id,
                **kwargs
            }
        )

    def log_numbering_event(self, event: str, letter_id: Optional[str] = None,
                            letter_number: Optional[str] = None,
                            level: int = logging.INFO, **kwargs) -> None:
        """Log letter numbering events (assigned, canceled, edited, retry)"""
        self.log(
            level,
            f"Numbering {event}" +
            (f" - {letter_number}" if letter_number else "") +
            (f" (letter {letter_id})" if letter_id else ""),
            extra={
                "event_type": "numbering",
                "numbering_event": event,
                "letter_ref": letter_id,
                "letter_number": letter_number,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=error,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )


def setup_logging() -> LetterDeskLogger:
    """Setup logging configuration based on environment"""

    # Register custom logger class
    logging.setLoggerClass(LetterDeskLogger)

    logger = logging.getLogger("letterdesk")
    logger.__class__ = LetterDeskLogger  # Ensure it's our custom class
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Clear existing handlers
    logger.handlers.clear()

    is_production = settings.ENVIRONMENT == "production"

    if is_production:
        # Production: JSON formatted logs for log aggregation
        json_formatter = JSONFormatter()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(json_formatter)
        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_file = Path(settings.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=10
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(json_formatter)
            logger.addHandler(file_handler)

    else:
        # Development: Human-readable format
        detailed_format = (
            "%(asctime)s | %(levelname)-8s | "
            "[%(request_id)s] [%(user_id)s] [%(letter_id)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        simple_format = "%(levelname)-8s | %(message)s"

        detailed_formatter = ContextualFormatter(detailed_format)
        simple_formatter = ContextualFormatter(simple_format)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(simple_formatter)
        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_file = Path(settings.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=5
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logger.info(
        "Logging initialized",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "json_logging": is_production
        }
    )

    return logger


# Create logger instance
logger: LetterDeskLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_user_id',
    'set_user_id',
    'get_letter_id',
    'set_letter_id',
    'generate_request_id',
    'LetterDeskLogger',
    'JSONFormatter',
    'ContextualFormatter',
]
