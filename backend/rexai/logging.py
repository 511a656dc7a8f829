"""Logging configuration for the service.

Every record carries the id of the HTTP request that produced it and, inside
the ingestion pipeline and its detached summary task, the id of the document
being processed.
"""

from __future__ import annotations

import contextvars
import logging

from rexai.config import settings

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id",
    default=None,
)
document_id_var: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "document_id",
    default=None,
)

# Third-party loggers that are chatty at INFO.
NOISY_LOGGERS = ("httpx", "openai", "sentence_transformers", "urllib3", "google_genai")


def _context_fields(record: logging.LogRecord) -> None:
    if not getattr(record, "request_id", None):
        record.request_id = request_id_var.get() or "-"
    if getattr(record, "document_id", None) is None:
        document_id = document_id_var.get()
        record.document_id = document_id if document_id is not None else "-"


class ContextFilter(logging.Filter):
    """Attach request and document ids from contextvars to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        _context_fields(record)
        return True


def configure_logging() -> None:
    """Configure structured logging for the service."""
    factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = factory(*args, **kwargs)
        _context_fields(record)
        return record

    logging.setLogRecordFactory(record_factory)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=(
            "%(asctime)s %(levelname)s %(name)s %(message)s "
            "request_id=%(request_id)s document_id=%(document_id)s"
        ),
    )
    root_logger = logging.getLogger()
    root_logger.addFilter(ContextFilter())
    for handler in root_logger.handlers:
        handler.addFilter(ContextFilter())

    if not settings.debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
