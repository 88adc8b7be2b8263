from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

from google.cloud import logging as cloud_logging

SERVICE_NAME = "funnel-flow"
TRACE_FIELD = "logging.googleapis.com/trace"

# Trace of the request currently being served
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, in the shape Cloud Logging ingests from stdout."""

    def __init__(self, *, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_obj = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "severity": record.levelname,
            "message": record.getMessage(),
            "service": self._service,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
        }

        trace_id = trace_id_var.get()
        if trace_id:
            log_obj[TRACE_FIELD] = trace_id

        # logger.info(..., extra={"extra": {...}})
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            log_obj.update(extra)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def setup_logging(
    *,
    environment: str = "dev",
    project_id: str | None = None,
    use_cloud_logging: bool = True,
) -> None:
    """Configure root logging for the funnel service.

    Args:
        environment: Deployment name; ``dev`` logs JSON to stdout at DEBUG
        project_id: GCP project that receives the logs outside dev
        use_cloud_logging: Attach the Cloud Logging handler when deployed
    """
    log_level = logging.DEBUG if environment == "dev" else logging.INFO

    if use_cloud_logging and project_id and environment != "dev":
        client = cloud_logging.Client(project=project_id)
        client.setup_logging(log_level=log_level)
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logging.basicConfig(level=log_level, handlers=[handler], force=True)

    for noisy in ("google", "urllib3", "httpx", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def trace_from_header(header: str | None, project_id: str | None = None) -> str | None:
    """Trace name from an ``X-Cloud-Trace-Context: TRACE_ID/SPAN_ID;o=1`` header."""
    if not header:
        return None
    trace = header.split("/", 1)[0].split(";", 1)[0].strip()
    if not trace:
        return None
    return f"projects/{project_id}/traces/{trace}" if project_id else trace


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def get_trace_id() -> str | None:
    return trace_id_var.get()


__all__ = [
    "StructuredFormatter",
    "get_trace_id",
    "set_trace_id",
    "setup_logging",
    "trace_from_header",
]
