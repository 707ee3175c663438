"""Key=value log lines for the guideline agent."""

import logging
import sys
from typing import Any

# Context fields promoted to their own key, ahead of free-form extras
CONTEXT_FIELDS = ("user_id", "guideline_id")


class StructuredFormatter(logging.Formatter):
    """Render a record as `key=value` pairs, tracebacks on the following lines."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                fields[name] = value
        fields.update(getattr(record, "extra_data", None) or {})

        line = " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _level_for_env() -> int:
    # Settings fail to load until the environment is populated
    try:
        from app.core.config import get_settings

        env = get_settings().AGENT_ENV
    except Exception:
        return logging.INFO
    return logging.DEBUG if env == "dev" else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Logger writing structured lines to stdout; DEBUG in the dev environment."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_env())
    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **context: Any) -> None:
    """
    Log a message carrying context fields.

    `user_id` and `guideline_id` get their own keys; any other keyword lands
    in the line as an extra `key=value` pair.
    """
    extra: dict[str, Any] = {name: context.pop(name) for name in CONTEXT_FIELDS if name in context}
    extra["extra_data"] = context
    logger.log(level, msg, extra=extra)
