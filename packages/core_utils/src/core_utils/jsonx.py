from __future__ import annotations
from typing import Any, Dict
import json as _pyjson

import orjson as _orjson

__all__ = ["dumps", "dumps_bytes", "loads", "loads_object"]

_BOM = b"\xef\xbb\xbf"
# orjson widens integer literals beyond 64 bits to float; any integral float
# this large may be one of them
_WIDE = float(2**63)

def dumps_bytes(obj: Any) -> bytes:
    """
    Compact JSON encoding used for byte-length measurement.

    orjson handles the common case; values it refuses (e.g. integers wider
    than 64 bits) go through the stdlib encoder with the same compact
    separators. Unserialisable input raises ``TypeError``/``ValueError``.
    """
    try:
        return _orjson.dumps(obj, option=_orjson.OPT_SORT_KEYS)
    except _orjson.JSONEncodeError:
        pass
    return _pyjson.dumps(
        obj,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8", errors="surrogatepass")

def dumps(obj: Any) -> str:
    """Deterministic (sorted keys) compact JSON as ``str``."""
    return dumps_bytes(obj).decode("utf-8", errors="replace")

def _has_wide_float(obj: Any) -> bool:
    stack = [obj]
    while stack:
        cur = stack.pop()
        if isinstance(cur, float):
            if abs(cur) >= _WIDE and cur.is_integer():
                return True
        elif isinstance(cur, dict):
            stack.extend(cur.values())
        elif isinstance(cur, list):
            stack.extend(cur)
    return False

def _loads_std(b: bytes) -> Any:
    try:
        txt = b.decode("utf-8-sig")
    except UnicodeDecodeError:
        txt = b.decode("utf-8", errors="replace")
    return _pyjson.loads(txt)

def loads(data: str | bytes) -> Any:
    """Robust JSON load from str/bytes with BOM/encoding fallback.

    - Tries orjson first
    - On failure, strips a UTF-8 BOM and retries once
    - Falls back to stdlib json for input orjson rejects
    - Integer literals are never returned as floats: when orjson yields a
      huge integral float the document is re-read with stdlib json, which
      keeps arbitrarily wide integers exact
    """
    if isinstance(data, str):
        b = data.encode("utf-8", errors="surrogatepass")
    else:
        b = bytes(data)

    obj: Any = None
    parsed = False
    try:
        obj, parsed = _orjson.loads(b), True
    except _orjson.JSONDecodeError:
        if b[:3] == _BOM:
            try:
                obj, parsed = _orjson.loads(b[3:]), True
            except _orjson.JSONDecodeError:
                pass

    if parsed and not _has_wide_float(obj):
        return obj
    return _loads_std(b)

def loads_object(data: str | bytes) -> Dict[str, Any]:
    """
    Decode a request body into a key-value record.

    The body must hold exactly one JSON object; trailing content is rejected
    by the parser. ``null`` decodes to an empty record. Anything else raises
    ``ValueError`` (``json.JSONDecodeError`` is a subclass).
    """
    obj = loads(data)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"expected a JSON object, got {type(obj).__name__}")
    return obj
