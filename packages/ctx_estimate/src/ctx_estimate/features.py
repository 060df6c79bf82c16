"""
Feature extraction from raw inference request records.

Supported inputs:

* ``generate``: ``model``, ``prompt``, ``system``, ``suffix``, ``template``,
  ``raw``, ``images``
* ``chat``: ``model``, ``messages`` (``content``, ``images``,
  ``tool_calls``), ``tools``

Common to every shape: ``format`` and ``options.num_ctx`` /
``options.num_predict``. The extractor is deliberately independent of any
request schema so unknown fields pass through and new backend fields never
break it; a malformed field simply contributes nothing.
"""
from __future__ import annotations
from dataclasses import dataclass
import logging
from collections.abc import Mapping
from typing import Any, Union

from core_logging import get_logger, log_stage

from .accessors import (
    get_bool,
    get_int,
    get_list,
    get_mapping,
    get_str,
    iter_mappings,
    serialized_len,
    utf8_len,
)
from .endpoints import Endpoint

logger = get_logger("ctx_estimate.features")

__all__ = ["Features", "NotEstimable", "NOT_ESTIMABLE", "ExtractResult", "extract_features"]


@dataclass(frozen=True)
class Features:
    """The parts of a request that drive context length."""

    model: str = ""
    endpoint: Endpoint = Endpoint.UNKNOWN
    text_bytes: int = 0
    message_count: int = 0
    image_count: int = 0
    structured: bool = False
    raw: bool = False

    # User-provided options
    provided_num_ctx: int = 0
    provided_num_ctx_ok: bool = False
    num_predict: int = 0
    num_predict_ok: bool = False


@dataclass(frozen=True)
class NotEstimable:
    """Returned instead of ``Features`` when a record carries no model name."""

    reason: str = "missing_model"


NOT_ESTIMABLE = NotEstimable()

ExtractResult = Union[Features, NotEstimable]


@dataclass
class _Tally:
    text_bytes: int = 0
    message_count: int = 0
    image_count: int = 0
    raw: bool = False

    def add_text(self, text: str | None) -> None:
        if text is not None:
            self.text_bytes += utf8_len(text)

    def add_serialized(self, value: Any) -> None:
        n = serialized_len(value)
        if n is not None:
            self.text_bytes += n


def _is_structured(fmt: Any) -> bool:
    # "json", a JSON schema object, or (rarely) a list all demand structured output
    if isinstance(fmt, str):
        return fmt == "json"
    return isinstance(fmt, (Mapping, list))


def _tally_generate(req: Mapping[str, Any], tally: _Tally) -> None:
    for key in ("prompt", "system", "suffix", "template"):
        tally.add_text(get_str(req, key))
    raw = get_bool(req, "raw")
    if raw is not None:
        tally.raw = raw
    images = get_list(req, "images")
    if images is not None:
        tally.image_count += len(images)


def _tally_chat(req: Mapping[str, Any], tally: _Tally) -> None:
    for msg in iter_mappings(get_list(req, "messages")):
        tally.message_count += 1
        tally.add_text(get_str(msg, "content"))
        if "tool_calls" in msg:
            tally.add_serialized(msg["tool_calls"])
        images = get_list(msg, "images")
        if images is not None:
            tally.image_count += len(images)

    if "tools" in req:
        tally.add_serialized(req["tools"])


def extract_features(endpoint: Endpoint | str, req: Mapping[str, Any]) -> ExtractResult:
    """
    Compute token-relevant features from a request record.

    Returns ``NOT_ESTIMABLE`` when the record has no non-empty string ``model``;
    that is the only "cannot estimate" outcome and it is not an error.
    """
    ep = Endpoint.parse(endpoint)

    model = get_str(req, "model")
    if not model:
        log_stage(logger, "extract", "not_estimable", level=logging.DEBUG,
                  endpoint=ep, reason=NOT_ESTIMABLE.reason)
        return NOT_ESTIMABLE

    provided_num_ctx = num_predict = None
    options = get_mapping(req, "options")
    if options is not None:
        provided_num_ctx = get_int(options, "num_ctx")
        num_predict = get_int(options, "num_predict")

    tally = _Tally()
    if ep is Endpoint.GENERATE:
        _tally_generate(req, tally)
    elif ep is Endpoint.CHAT:
        _tally_chat(req, tally)

    return Features(
        model=model,
        endpoint=ep,
        text_bytes=tally.text_bytes,
        message_count=tally.message_count,
        image_count=tally.image_count,
        structured=_is_structured(req.get("format")),
        raw=tally.raw,
        provided_num_ctx=provided_num_ctx or 0,
        provided_num_ctx_ok=provided_num_ctx is not None,
        num_predict=num_predict or 0,
        num_predict_ok=num_predict is not None,
    )
