"""
Logging setup shared by the API process and helper scripts.

Usage
-----
In the entrypoint:

    from utils.logging_utils import setup_logging

    setup_logging(level="INFO", job_name="meteo_risk_api")

In a module:

    from utils.logging_utils import get_tagged_logger

    logger = get_tagged_logger(__name__, tag="geocoder")
    logger.info("Geocoding place", extra={"stage": "geocode"})

Every record carries `job_name`, `tag` and `stage` fields so that the
formatter never fails on a record emitted by third-party code.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Mapping, Optional


# Early records (before setup_logging) still get timestamps and levels.
BOOTSTRAP_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
BOOTSTRAP_DATEFMT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(
    level=logging.INFO,
    format=BOOTSTRAP_FORMAT,
    datefmt=BOOTSTRAP_DATEFMT,
)

DEFAULT_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(job_name)s | %(tag)s | %(stage)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_JOB_NAME = "meteo_risk"

_CONFIGURED: bool = False


class MaxLevelFilter(logging.Filter):
    """Let through records up to and including `max_level` (stdout routing)."""

    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return record.levelno <= self.max_level


class RecordDefaultsFilter(logging.Filter):
    """
    Fill in the structured fields the formatter expects.

    - `tag` defaults to the last dotted segment of the logger name.
    - `stage` defaults to "-" for records that are not tied to a pipeline stage.
    - `job_name` is fixed per process.
    """

    def __init__(self, job_name: Optional[str] = None) -> None:
        super().__init__()
        self._job_name = job_name or DEFAULT_JOB_NAME

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "tag"):
            logger_name = getattr(record, "name", "")
            record.tag = logger_name.split(".")[-1] if logger_name else "-"
        if not hasattr(record, "stage"):
            record.stage = "-"
        if not hasattr(record, "job_name"):
            record.job_name = self._job_name
        return True


def build_logging_config(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Build a dictConfig mapping: DEBUG/INFO to stdout, WARNING and above to stderr.

    Parameters
    ----------
    level:
        Root logger level ("DEBUG", "INFO", logging.INFO, ...).
    log_format, date_format:
        Formatter patterns.
    job_name:
        Logical process name injected as `%(job_name)s`.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "record_defaults": {"()": RecordDefaultsFilter, "job_name": job_name},
            "stdout_max_info": {
                "()": MaxLevelFilter,
                "max_level": logging.INFO,
            },
        },
        "formatters": {
            "standard": {
                "format": log_format,
                "datefmt": date_format,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["record_defaults", "stdout_max_info"],
                "level": "DEBUG",
                "stream": "ext://sys.stdout",
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["record_defaults"],
                "level": "WARNING",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["stdout", "stderr"],
        },
    }


def setup_logging(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
    override_existing: bool = False,
) -> None:
    """
    Apply the logging configuration once per process.

    Repeated calls are no-ops unless `override_existing` is True.
    """
    global _CONFIGURED

    if _CONFIGURED and not override_existing:
        return

    logging.config.dictConfig(
        build_logging_config(
            level=level,
            log_format=log_format,
            date_format=date_format,
            job_name=job_name,
        )
    )
    _CONFIGURED = True


def get_tagged_logger(
    name: str,
    *,
    tag: Optional[str] = None,
) -> logging.LoggerAdapter:
    """
    Return a LoggerAdapter whose records always carry `tag`.

    Per-call `extra` values (for instance `stage`) are merged with the tag
    rather than replacing it.
    """
    base_logger = logging.getLogger(name)
    if tag is None:
        tag = name.split(".")[-1]
    return _MergingAdapter(base_logger, {"tag": tag})


class _MergingAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges call-site `extra` with the adapter's own fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def mask_secret(value: Optional[str], *, visible: int = 4) -> str:
    """Render an API key or token for logs, keeping only a short suffix.

    Examples
    --------
    - "sk-or-v1-abcdef123456" -> "***3456"
    - "abc" -> "***"
    - None -> "<unset>"
    """
    if not value:
        return "<unset>"
    if len(value) <= visible * 2:
        return "***"
    return f"***{value[-visible:]}"
