"""
Structured JSON logging for the gateway.

Every record leaves the process as one JSON object per line, with the
request id of the HTTP call that caused it. Background deliveries run in a
copy of the queuing request's context, so their outcome logs carry the same
id as the /push or /blast call.

Text that originates outside the gateway (APNS error bodies and reasons,
client-supplied tokens) is scrubbed of line breaks before it is written, and
device tokens in structured fields are always truncated.
"""
import contextvars
import logging
import logging.handlers
import os
from typing import Optional

from pythonjsonlogger import jsonlogger

from apns_gateway.core.config import settings

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'request_id', default=None
)

APP_VERSION = "1.0.0"

# backend/data/logs unless LOG_DIR is set
LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'data', 'logs')

# Line breaks and NULs would let an APNS body or a token forge log lines
_CONTROL_CHARS = str.maketrans({"\r": " ", "\n": " ", "\x00": None})

# extra={...} fields holding text received from APNS or API callers
UNTRUSTED_FIELDS = ("error", "reason", "error_message")
TOKEN_FIELDS = ("device_token", "token")

# (file name, max bytes, backups, minimum level)
LOG_FILES = (
    ("gateway.log", 100 * 1024 * 1024, 7, None),
    ("error.log", 50 * 1024 * 1024, 5, logging.ERROR),
)

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "hpack")


def mask_token(device_token: Optional[str], visible: int = 8) -> str:
    """
    Shorten a device token for log output.

    Idempotent: masking an already masked token returns it unchanged.
    """
    if not device_token:
        return "-"
    if len(device_token) <= visible:
        return device_token
    if device_token.endswith("...") and len(device_token) == visible + 3:
        return device_token
    return device_token[:visible] + "..."


def scrub(value):
    """Replace line breaks in strings; other values pass through."""
    if isinstance(value, str):
        return value.translate(_CONTROL_CHARS)
    return value


class GatewayLogFilter(logging.Filter):
    """
    Stamps the request id and cleans delivery fields on every record.

    - request_id: from the context, "-" outside a request
    - message and %-args: line breaks replaced
    - error / reason / error_message extras: line breaks replaced
    - device_token / token extras: truncated with mask_token
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"

        record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(scrub(arg) for arg in record.args)

        for name in UNTRUSTED_FIELDS:
            if name in record.__dict__:
                setattr(record, name, scrub(record.__dict__[name]))
        for name in TOKEN_FIELDS:
            value = record.__dict__.get(name)
            if isinstance(value, str):
                setattr(record, name, mask_token(scrub(value)))

        return True


def build_formatter(version: Optional[str] = None) -> jsonlogger.JsonFormatter:
    """
    JSON formatter for gateway records.

    Output:
        {"level": "INFO", "logger": "...orchestrator", "request_id": "...",
         "message": "Push delivered", "service": "apns-gateway",
         "version": "1.0.0", "timestamp": "...", ...extra fields}
    """
    return jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(request_id)s %(message)s",
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": "apns-gateway", "version": version or APP_VERSION},
        timestamp=True,
    )


def setup_logging(
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    app_version: Optional[str] = None
) -> logging.Logger:
    """
    Route all logging to stderr and rotating files as JSON.

    Args:
        log_level: Override for settings.LOG_LEVEL
        log_dir: Override for settings.LOG_DIR (default backend/data/logs)
        app_version: Version stamped into every record

    Returns:
        The configured root logger
    """
    global APP_VERSION
    if app_version:
        APP_VERSION = app_version

    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)
    directory = log_dir or settings.LOG_DIR or LOG_DIR
    os.makedirs(directory, exist_ok=True)

    formatter = build_formatter(APP_VERSION)
    log_filter = GatewayLogFilter()

    handlers = [(logging.StreamHandler(), level)]
    for file_name, max_bytes, backups, min_level in LOG_FILES:
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(directory, file_name),
            maxBytes=max_bytes,
            backupCount=backups,
            encoding='utf-8',
        )
        handlers.append((file_handler, min_level or level))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler, handler_level in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        handler.addFilter(log_filter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def set_request_id(request_id: Optional[str]) -> contextvars.Token:
    """Bind request_id to the current context; returns the reset token."""
    return request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def clear_request_id(token: contextvars.Token) -> None:
    request_id_var.reset(token)
