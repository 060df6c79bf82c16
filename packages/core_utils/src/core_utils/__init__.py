from . import jsonx
from .coerce import to_string, to_bool, to_int

__all__ = [
    "jsonx",
    "to_string", "to_bool", "to_int",
]
