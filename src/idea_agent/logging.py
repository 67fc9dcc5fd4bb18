"""Logging setup that tags records with HTTP, generation and stage identifiers."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

from idea_agent.metrics import PIPELINE_TELEMETRY
from idea_agent.telemetry import current_http_request_id

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | http=%(http_request_id)s gen=%(generation_id)s stage=%(stage)s | %(message)s"


class GenerationContextFilter(logging.Filter):
    """Copy the active HTTP request id and pipeline context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = PIPELINE_TELEMETRY.current_context()
        record.http_request_id = current_http_request_id() or "-"
        record.generation_id = context.get("request_id") or "-"
        record.stage = context.get("stage") or "-"
        return True


def build_logging_config(level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "generation_context": {"()": GenerationContextFilter},
        },
        "formatters": {
            "standard": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["generation_context"],
                "stream": "ext://sys.stdout",
            }
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
            "openai": {"level": "WARNING"},
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
    }


_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only change the level."""

    global _configured
    log_level = level.upper()

    if _configured:
        logging.getLogger().setLevel(log_level)
        return

    dictConfig(build_logging_config(log_level))
    _configured = True
