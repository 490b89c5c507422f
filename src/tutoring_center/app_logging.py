"""Logging configuration helpers."""

import logging

_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class ContextFormatter(logging.Formatter):
    """Formatter that appends ``extra=`` context as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if not context:
            return message
        pairs = " ".join(
            f"{key}={_render(value)}" for key, value in sorted(context.items())
        )
        return f"{message} [{pairs}]"


def _render(value: object) -> str:
    # StrEnum members render as their value rather than ``Role.OWNER``.
    return str(getattr(value, "value", value))


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure the package logger with one context-aware stream handler.

    Calling it again only updates the level.
    """
    logger = logging.getLogger("tutoring_center")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
