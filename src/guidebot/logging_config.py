"""JSON logging setup shared by the API process and the pipelines."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "guidebot.audit"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class MinimalJSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Dict messages (the structured events from :mod:`guidebot.telemetry`) are
    merged into the top level; plain messages land under ``message``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
        }

        if isinstance(record.msg, dict):
            payload.update(record.msg)
        elif record.getMessage():
            payload["message"] = record.getMessage()

        if record.exc_info and "exc" not in payload:
            payload["exc_info"] = self.formatException(record.exc_info)

        payload.update(
            {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS and not key.startswith("_")}
        )
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logging_config(log_dir: Path, level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": MinimalJSONFormatter}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "json"},
            "audit_file": {
                "class": "logging.FileHandler",
                "filename": str(log_dir / "audit.log"),
                "encoding": "utf-8",
                "formatter": "json",
            },
        },
        "root": {"level": level.upper(), "handlers": ["console"]},
        "loggers": {
            # Audit records go to their own file only.
            AUDIT_LOGGER_NAME: {"level": "INFO", "handlers": ["audit_file"], "propagate": False},
        },
    }


def configure_logging(log_dir: str | Path = "logs", *, level: str = "INFO") -> None:
    """Install JSON console logging plus the ``<log_dir>/audit.log`` trail."""

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(directory, level))


__all__ = ["AUDIT_LOGGER_NAME", "MinimalJSONFormatter", "build_logging_config", "configure_logging"]
