"""Structured JSON logging for the agent gate."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
from pathlib import Path

from apmgate.config.schema import LoggingConfig


ROOT_LOGGER_NAME = "apmgate"


def _strip_empty(value: object) -> object | None:
    if isinstance(value, dict):
        cleaned = {key: _strip_empty(item) for key, item in value.items()}
        return {key: item for key, item in cleaned.items() if item is not None} or None
    if isinstance(value, list):
        cleaned_list = [_strip_empty(item) for item in value]
        return [item for item in cleaned_list if item is not None] or None
    if value in ("", None):
        return None
    return value


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds")


class ECSJsonFormatter(logging.Formatter):
    def __init__(self, service_name: str = "apmgate") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "@timestamp": _timestamp(record),
            "message": record.getMessage(),
            "log": {
                "level": record.levelname.lower(),
                "logger": record.name,
            },
            "service": {
                "name": getattr(record, "service_name", self.service_name),
            },
            "event": {
                "kind": "event",
                "category": getattr(record, "event_category", "configuration"),
                "action": getattr(record, "event_action", None),
                "outcome": getattr(record, "event_outcome", None),
                "reason": getattr(record, "event_reason", None),
            },
            "apmgate": {
                "app_name": getattr(record, "app_name", None),
                "payload": getattr(record, "payload", None),
            },
        }
        if record.exc_info:
            payload["error"] = {"stack_trace": self.formatException(record.exc_info)}
        cleaned = _strip_empty(payload) or {}
        return json.dumps(cleaned, separators=(",", ":"))


class FlatJsonFormatter(logging.Formatter):
    """One JSON object per line without ECS nesting."""

    _EXTRA_FIELDS = ("event_action", "event_outcome", "event_reason", "app_name", "payload")

    def __init__(self, service_name: str = "apmgate") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": _timestamp(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "service": self.service_name,
            "message": record.getMessage(),
        }
        for name in self._EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, ""):
                payload[name] = value
        return json.dumps(payload, separators=(",", ":"), default=str)


def build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.fmt == "json":
        return FlatJsonFormatter(service_name=config.service_name)
    return ECSJsonFormatter(service_name=config.service_name)


def _sink_handler(config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    if config.sink == "file":
        log_file = Path(config.file_path or "logs/apmgate.log")
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig, force: bool = False) -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if getattr(root, "_apmgate_configured", False) and not force:
        return

    root.setLevel(config.level)
    for existing in list(root.handlers):
        existing.close()
    root.handlers.clear()
    root.addHandler(_sink_handler(config, build_formatter(config)))
    root.propagate = False
    setattr(root, "_apmgate_configured", True)


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    # Children of the package logger defer to whatever configure_logging installed.
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(ECSJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def log_validation_outcome(
    logger: logging.Logger,
    *,
    app_name: str,
    code: str | None,
    message: str = "",
) -> None:
    if code is None:
        logger.info(
            "agent config accepted",
            extra={
                "event_action": "config_validated",
                "event_outcome": "success",
                "app_name": app_name,
            },
        )
        return
    logger.warning(
        f"agent config rejected: {message}",
        extra={
            "event_action": "config_rejected",
            "event_outcome": "failure",
            "event_reason": code,
            "app_name": app_name,
        },
    )
