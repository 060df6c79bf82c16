from __future__ import annotations
from enum import Enum
from typing import Any


class Endpoint(str, Enum):
    """Request shapes the estimator understands.

    ``UNKNOWN`` is an explicit member: records for any other endpoint still
    get the common features (model, structured flag, user overrides) but no
    shape-specific accumulation.
    """

    CHAT = "chat"
    GENERATE = "generate"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "Endpoint":
        """Exact, case-sensitive match on the identifier; anything else is UNKNOWN."""
        if isinstance(value, Endpoint):
            return value
        if value == cls.CHAT.value:
            return cls.CHAT
        if value == cls.GENERATE.value:
            return cls.GENERATE
        return cls.UNKNOWN

    @classmethod
    def from_path(cls, path: str) -> "Endpoint":
        """Map a backend API path (``/api/chat``, ``/api/generate``) to its shape."""
        return _PATHS.get((path or "").rstrip("/"), cls.UNKNOWN)


_PATHS = {
    "/api/chat": Endpoint.CHAT,
    "/api/generate": Endpoint.GENERATE,
}
