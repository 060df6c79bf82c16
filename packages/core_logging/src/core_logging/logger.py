"""
Structured JSON logging for the estimator packages.

One line per record: ``ts``, ``level``, ``service`` and ``event`` first,
then the envelope fields (``stage``, ``request_id``, ``model``, ...) at top
level, and every other extra nested under ``meta``.
"""
import contextvars
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import orjson

# ────────────────────────────────────────────────────────────
# Request-id binding
# ────────────────────────────────────────────────────────────
_REQUEST_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("ctx_request_id", default=None)


@contextmanager
def request_scope(request_id: Optional[str]) -> Iterator[None]:
    """
    Attach *request_id* to every record logged inside the block; the previous
    binding is restored on exit. ``None`` leaves the current binding alone.
    """
    if request_id is None:
        yield
        return
    token = _REQUEST_ID.set(request_id)
    try:
        yield
    finally:
        _REQUEST_ID.reset(token)


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            bound = _REQUEST_ID.get()
            if bound:
                record.request_id = bound
        return True


# LogRecord attributes that extras must never shadow
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Envelope fields kept at top level; everything else goes under `meta`
_ENVELOPE = frozenset({
    "stage",        # extract|plan|config|…
    "request_id",
    "model",
    "endpoint",
    "latency_ms",
    "error_code",
    "message",
})


def _fallback(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME") or record.name,
            "event": record.getMessage(),
        }
        meta: Dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            if key == "user_message":
                line["message"] = value
            elif key in _ENVELOPE:
                line[key] = value
            else:
                meta[key] = value
        if meta:
            line["meta"] = meta
        if record.exc_info:
            line["exc"] = self.formatException(record.exc_info)
        return orjson.dumps(line, default=_fallback).decode("utf-8")


def _sanitize_extra(extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Make caller extras safe for ``LogRecord``: ``message`` is kept as
    ``user_message``, other reserved names become ``meta_<name>``, and a
    nested ``meta`` dict is flattened one level.
    """
    safe: Dict[str, Any] = {}
    for key, value in (extra or {}).items():
        if key == "meta" and isinstance(value, dict):
            safe.update(_sanitize_extra(value))
        elif key == "message":
            safe["user_message"] = value
        elif key in _RECORD_ATTRS:
            safe[f"meta_{key}"] = value
        else:
            safe[key] = value
    return safe


class StructuredLogger(logging.Logger):
    """``logging.Logger`` that also takes extras as keyword arguments."""

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1, **fields):  # noqa: PLR0913
        merged = {**(extra or {}), **fields}
        super()._log(
            level, msg, args,
            exc_info=exc_info,
            extra=_sanitize_extra(merged),
            stack_info=stack_info,
            stacklevel=stacklevel,
        )


class DynamicStdoutHandler(logging.StreamHandler):
    """Always writes to the *current* ``sys.stdout`` (works with capture/redirect)."""

    def emit(self, record: logging.LogRecord) -> None:
        # Plain assignment: setStream() would flush the previous stream,
        # which may already be closed (finished capture, redirect_stdout).
        self.stream = sys.stdout
        super().emit(record)


logging.setLoggerClass(StructuredLogger)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Dotted names are module loggers that propagate to their service root;
    an undotted name is a service root and owns the single stdout handler.
    """
    logger = logging.getLogger(name)
    if "." in name:
        logger.handlers.clear()
        logger.propagate = True
        if level:
            logger.setLevel(level)
    else:
        if not any(isinstance(h, DynamicStdoutHandler) for h in logger.handlers):
            handler = DynamicStdoutHandler()
            handler.setFormatter(JsonFormatter())
            logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(level or os.getenv("SERVICE_LOG_LEVEL", "INFO"))

    if not any(isinstance(f, _RequestIdFilter) for f in logger.filters):
        logger.addFilter(_RequestIdFilter())
    return logger


# ---------------------------------------------------------------------------#
# log_stage – the single structured emission helper                         #
# ---------------------------------------------------------------------------#
def _emit(logger: logging.Logger, level: int, stage: str, event: str, fields: Dict[str, Any]) -> None:
    logger.log(level, event, extra=_sanitize_extra({"stage": stage, **fields}))


def log_stage(logger: logging.Logger, stage: str, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """
    Emit one structured line for *stage*:

        log_stage(logger, "plan", "ctx_decision", model=m, chosen_ctx=8192)
    """
    _emit(logger, level, stage, event, fields)


# ────────────────────────────────────────────────────────────
# Error helper
# ────────────────────────────────────────────────────────────
def record_error(
    code: Any,
    *,
    where: str,
    message: str,
    logger: logging.Logger,
    level: str = "ERROR",
    **fields: Any,
) -> None:
    """Log one ``error`` line carrying a canonical code. Never raises."""
    levelno = logging.getLevelName((level or "ERROR").upper())
    if not isinstance(levelno, int):
        levelno = logging.ERROR
    stage = fields.pop("stage", None) or "error"
    _emit(logger, levelno, stage, "error", {
        "error_code": str(getattr(code, "value", code)),
        "error_message": message,
        "where": where,
        **fields,
    })
