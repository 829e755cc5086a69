"""Structured logging configuration with JSON formatting and job IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Hey future me, the job ID ties every log line of one batch run together! Analyzers, clients
# and the store all log from inside the runner's task, so grepping for one job_id shows the
# whole run (including the per-unit failures). contextvars are asyncio-safe: each task gets its
# own copy, so two domains running at the same time keep their own IDs.
job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="")


def get_job_id() -> str:
    """Get the current job ID from context ("" outside of a job)."""
    return job_id_var.get()


def set_job_id(job_id: str | None = None) -> contextvars.Token[str]:
    """Set the job ID in context.

    Args:
        job_id: Job ID to set. If None, generates a new one

    Returns:
        Token for reset_job_id() once the job is done
    """
    if job_id is None:
        job_id = uuid.uuid4().hex[:12]
    return job_id_var.set(job_id)


def reset_job_id(token: contextvars.Token[str]) -> None:
    """Restore the job ID that was active before set_job_id()."""
    job_id_var.reset(token)


class JobIdFilter(logging.Filter):
    """Add job ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_id = get_job_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Formatter that shows compact exception chains.

    Hey future me - a failing catalog request chains httpx -> ExternalServiceError, and the
    default traceback repeats "The above exception was the direct cause..." for each link.
    This prints one line per exception in the chain (root cause first) plus only OUR frames:

    ERROR │ shelfcheck.application.workers.completeness_job_runner:260 │ series 'Dark' failed
    ╰─► ConnectError: All connection attempts failed
    ╰─► CatalogConnectionError: Connection to tmdb failed: All connection attempts failed
        File "catalog_client.py", line 212, in _send
          raise CatalogConnectionError(...) from e
    """

    def formatException(self, ei: Any) -> str:
        _exc_type, exc_value, _exc_tb = ei
        if exc_value is None:
            return ""

        exceptions: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in exceptions:
            exceptions.append(current)
            current = current.__cause__ or current.__context__
        exceptions.reverse()

        lines: list[str] = []
        for exc in exceptions:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")
            if exc.__traceback__ is None:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                if "site-packages" in frame.filename or "shelfcheck" not in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")

        return "\n".join(lines)


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        job_id = getattr(record, "job_id", "")
        if job_id:
            log_record["job_id"] = job_id

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)


# Listen future me, call this ONCE at startup - it replaces the root logger's handlers.
# httpx/httpcore log every request at INFO, which drowns a 5000-item scan, so they're
# raised to WARNING here.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "shelfcheck",
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for logs (recommended for production)
        app_name: Application name to include in logs
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(JobIdFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
        },
    )


__all__ = [
    "CompactExceptionFormatter",
    "CustomJsonFormatter",
    "JobIdFilter",
    "configure_logging",
    "get_job_id",
    "job_id_var",
    "reset_job_id",
    "set_job_id",
]
