# cvbuilder/core/logging.py
"""
JSON logging for the CV service.

Log records never carry CV content: anything passed in ``extra`` under a
personal-data key is replaced before the record is written, and Sentry
events have their request bodies removed.
"""
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_ctx: ContextVar[str] = ContextVar('request_id', default='')

REDACTED = '[REDACTED]'

# Registration passwords, contact details and raw field values
SENSITIVE_FIELDS = frozenset({
    'password', 'email', 'phone', 'value', 'authorization', 'cookie'
})

_SENSITIVE_HEADERS = frozenset({'authorization', 'cookie', 'x-forwarded-for', 'x-real-ip'})

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ('uvicorn.access', 'redis')


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, tagged with the current request id."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'line': record.lineno,
        }

        request_id = request_id_ctx.get()
        if request_id:
            log_data['request_id'] = request_id

        if record.exc_info and record.exc_info[0]:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }

        # Fields passed as logger.info(..., extra={"extra": {...}})
        extra = getattr(record, 'extra', None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                log_data[key] = REDACTED if key.lower() in SENSITIVE_FIELDS else value

        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str = "INFO",
    enable_sentry: bool = False,
    sentry_dsn: Optional[str] = None,
    environment: str = "development",
) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if enable_sentry and sentry_dsn and sentry_dsn.strip():
        _init_sentry(sentry_dsn, environment)


def _init_sentry(sentry_dsn: str, environment: str) -> None:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration
    except ImportError:
        logging.warning("Sentry SDK not installed, error tracking disabled")
        return

    try:
        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=environment,
            integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
            traces_sample_rate=0.1,
            send_default_pii=False,
            before_send=filter_sensitive_data,
        )
        logging.info("Sentry error tracking initialized")
    except Exception as e:
        logging.error(f"Failed to initialize Sentry: {str(e)}")


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Dict[str, Any]:
    """Sentry before_send hook: drop CV bodies and client-identifying headers."""
    request = event.get('request')
    if not isinstance(request, dict):
        return event

    headers = request.get('headers')
    if isinstance(headers, dict):
        for key in list(headers):
            if key.lower() in _SENSITIVE_HEADERS:
                headers[key] = REDACTED

    if 'data' in request:
        request['data'] = REDACTED

    return event


def set_request_id(request_id: str) -> None:
    request_id_ctx.set(request_id)


def get_request_id() -> str:
    return request_id_ctx.get()
