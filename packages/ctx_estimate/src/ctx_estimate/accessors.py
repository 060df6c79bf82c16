"""
Typed accessors over schema-loose request records.

Each accessor returns the value when the field holds the expected shape and
``None`` otherwise. None of them raise, whatever the record contains.
"""
from __future__ import annotations
from collections.abc import Mapping, MutableMapping
from typing import Any, Iterator, List, Optional

from core_utils import jsonx
from core_utils.coerce import to_bool, to_int, to_string

Record = MutableMapping[str, Any]

__all__ = [
    "Record",
    "get_str", "get_bool", "get_int", "get_mapping", "get_list",
    "iter_mappings", "utf8_len", "serialized_len",
]

def get_str(record: Mapping[str, Any], key: str) -> Optional[str]:
    value, ok = to_string(record.get(key))
    return value if ok else None

def get_bool(record: Mapping[str, Any], key: str) -> Optional[bool]:
    value, ok = to_bool(record.get(key))
    return value if ok else None

def get_int(record: Mapping[str, Any], key: str) -> Optional[int]:
    value, ok = to_int(record.get(key))
    return value if ok else None

def get_mapping(record: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else None

def get_list(record: Mapping[str, Any], key: str) -> Optional[List[Any]]:
    value = record.get(key)
    return value if isinstance(value, list) else None

def iter_mappings(values: Optional[List[Any]]) -> Iterator[MutableMapping[str, Any]]:
    """Yield the record-shaped entries of a list; other entries are skipped."""
    for item in values or ():
        if isinstance(item, MutableMapping):
            yield item

def utf8_len(text: str) -> int:
    # Lone surrogates (possible via stdlib json) count as their 3-byte encoding.
    return len(text.encode("utf-8", errors="surrogatepass"))

# Extra bytes when these are written as \uXXXX escapes; they only ever occur
# inside string literals of the compact encoding
_ESCAPED_GROWTH = ((b"<", 5), (b">", 5), (b"&", 5), (b"\xe2\x80\xa8", 3), (b"\xe2\x80\xa9", 3))

def serialized_len(value: Any) -> Optional[int]:
    """
    Byte length of the compact, HTML-safe JSON encoding (``<``, ``>``, ``&``,
    U+2028 and U+2029 escaped), or None if the value cannot be encoded.
    """
    try:
        raw = jsonx.dumps_bytes(value)
    except (TypeError, ValueError):
        return None
    return len(raw) + sum(raw.count(ch) * extra for ch, extra in _ESCAPED_GROWTH)
