"""Process logging with request-id correlation."""
import logging
from contextvars import ContextVar
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s'

# Set by the request-id middleware for the duration of each request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Stamp every record with the id of the request being handled ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "-"
        return True


def configure_logging(level: str = "INFO", stream=None) -> None:
    """
    Configure the root logger once per process.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        stream: Target stream; stderr when omitted
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=stream)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
