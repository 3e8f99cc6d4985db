"""Application logging configuration utilities."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "querydoc.chat.audit"
AUDIT_LOG_FILE = "chat_audit.log"

# Column order of chat audit lines; anything else lands under "extra".
AUDIT_FIELDS: tuple[str, ...] = (
    "event",
    "req_id",
    "document_id",
    "file_name",
    "model",
    "switched",
    "question",
    "sources",
    "chunk_count",
    "ocr",
)

_STANDARD_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class JSONEventFormatter(logging.Formatter):
    """One JSON object per record: telemetry dicts are merged, plain messages kept as text."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, Any] = {
            "ts": _timestamp(record),
            "level": record.levelname,
            "module": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()
        payload.update(_record_extras(record))
        if record.exc_info and "exc" not in payload:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ChatAuditFormatter(logging.Formatter):
    """Audit lines with a fixed column set for answers and ingests."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        fields = dict(record.msg) if isinstance(record.msg, dict) else {"event": record.getMessage()}
        fields.update(_record_extras(record))
        line: dict[str, Any] = {"ts": _timestamp(record)}
        for name in AUDIT_FIELDS:
            if name in fields:
                line[name] = fields.pop(name)
        if fields:
            line["extra"] = fields
        return json.dumps(line, ensure_ascii=False, default=str)


def configure_logging(log_dir: Path | str = "logs", level: str = "INFO") -> None:
    """JSON events on stderr, the chat audit trail in ``<log_dir>/chat_audit.log``."""

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JSONEventFormatter},
                "audit": {"()": ChatAuditFormatter},
            },
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "json"},
                "chat_audit": {
                    "class": "logging.FileHandler",
                    "filename": str(log_path / AUDIT_LOG_FILE),
                    "encoding": "utf-8",
                    "formatter": "audit",
                },
            },
            "root": {"level": level, "handlers": ["default"]},
            "loggers": {
                AUDIT_LOGGER_NAME: {"level": "INFO", "handlers": ["chat_audit"], "propagate": False},
                # one INFO line per backend request otherwise
                "httpx": {"level": "WARNING"},
            },
        }
    )


__all__ = [
    "AUDIT_FIELDS",
    "AUDIT_LOGGER_NAME",
    "ChatAuditFormatter",
    "JSONEventFormatter",
    "configure_logging",
]
