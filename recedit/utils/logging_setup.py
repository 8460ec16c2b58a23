from __future__ import annotations

import contextvars
import logging
import logging.handlers
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

# Every record carries which editor session touched which project, and the
# edit it was running. Unset fields render as "-".
CONTEXT_FIELDS = ("session_id", "project_id", "operation")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | " + " | ".join(
    f"%({field})s" for field in CONTEXT_FIELDS
) + " | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_CONTEXT_VARS: Dict[str, contextvars.ContextVar[Optional[str]]] = {
    field: contextvars.ContextVar(f"log_{field}", default=None) for field in CONTEXT_FIELDS
}
LOG_SESSION_ID = _CONTEXT_VARS["session_id"]
LOG_PROJECT_ID = _CONTEXT_VARS["project_id"]
LOG_OPERATION = _CONTEXT_VARS["operation"]

# Marks handlers installed here so a forced reconfigure leaves others alone.
_OWNED = "_recedit_handler"


def current_context() -> Dict[str, str]:
    return {field: var.get() or "-" for field, var in _CONTEXT_VARS.items()}


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for field, value in current_context().items():
            setattr(record, field, value)
        return True


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[None]:
    """
    Set context fields for the duration of the block. ``None`` values leave
    the outer value in place; unknown field names raise ``ValueError``.
    """
    unknown = set(fields) - set(_CONTEXT_VARS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
    tokens = [
        (_CONTEXT_VARS[field], _CONTEXT_VARS[field].set(value))
        for field, value in fields.items()
        if value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def parse_level(level: Union[str, int]) -> int:
    """Accept ``logging`` constants or their names (any case)."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def _file_handler(log_path: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    if max_bytes > 0:
        return logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    return logging.FileHandler(log_path, encoding="utf-8")


def configure_logging(
    log_file: str = "logs/recedit.log",
    level: Union[str, int] = logging.INFO,
    enable_console: bool = False,
    force: bool = False,
    max_bytes: int = 0,
    backup_count: int = 3,
) -> logging.Logger:
    root = logging.getLogger()
    owned = [h for h in root.handlers if getattr(h, _OWNED, False)]
    if owned and not force:
        return root
    for handler in owned:
        root.removeHandler(handler)
        handler.close()

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers = [_file_handler(log_path, max_bytes, backup_count)]
    if enable_console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        # Handler-level so records propagated from child loggers get the fields.
        handler.addFilter(ContextFilter())
        setattr(handler, _OWNED, True)
        root.addHandler(handler)

    root.setLevel(parse_level(level))
    logging.captureWarnings(True)
    return root
