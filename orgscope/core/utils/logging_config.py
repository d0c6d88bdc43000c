"""
Structured logging configuration for orgscope.

JSON lines in production, a compact coloured format during development.
Authorization decisions carry their identifiers (company_id, user_id,
action, rule) as structured fields through log_with_context().
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone


def _extra_fields(record: logging.LogRecord) -> dict:
    return getattr(record, 'extra', None) or {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f'{record.module}.{record.funcName}:{record.lineno}',
        }
        entry.update(_extra_fields(record))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET if color else ''
        timestamp = datetime.now().strftime('%H:%M:%S')
        line = f'{color}[{timestamp}] {record.levelname:8}{reset} {record.name:40} {record.getMessage()}'

        extra = _extra_fields(record)
        if extra:
            line += ' | ' + ' '.join(f'{k}={v}' for k, v in extra.items())
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = None,
    json_format: bool = None,
    logger_name: str = 'orgscope'
) -> logging.Logger:
    """Configure the application's root logger and return it.

    Args:
        level: Log level name. Defaults to LOG_LEVEL env or INFO.
        json_format: Force JSON output. If None, JSON is used when
            PRODUCTION=true or when running under Gunicorn.
        logger_name: Root of the logger tree; module loggers are
            'orgscope.<module>' and inherit this handler.
    """
    level = (level or os.environ.get('LOG_LEVEL', 'INFO')).upper()
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true' or \
                      'gunicorn' in os.environ.get('SERVER_SOFTWARE', '')

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log `message` with structured key/value fields attached.

    Example:
        log_with_context(logger, logging.WARNING, 'Forbidden',
                         user_id=uid, action='assign_role', rule='lead_scope')
    """
    if not logger.isEnabledFor(level):
        return
    record = logger.makeRecord(logger.name, level, '', 0, message, (), None)
    record.extra = context
    logger.handle(record)
