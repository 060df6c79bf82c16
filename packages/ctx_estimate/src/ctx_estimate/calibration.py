from __future__ import annotations
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from core_config.constants import (
    DEFAULT_FIXED_OVERHEAD_TOKENS,
    DEFAULT_PER_MESSAGE_OVERHEAD,
    DEFAULT_TOKENS_PER_BYTE,
)

if TYPE_CHECKING:
    from core_config.settings import Settings


class CalibrationParams(BaseModel):
    """
    Per-model coefficients of the linear prompt estimator:

        tokens ~= fixed_overhead + per_message_overhead*messages
                  + tokens_per_byte*text_bytes + image_tokens

    Learning these is somebody else's job; the estimator only reads them.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    tokens_per_byte: float = Field(default=DEFAULT_TOKENS_PER_BYTE, ge=0, allow_inf_nan=False)
    fixed_overhead: float = Field(default=DEFAULT_FIXED_OVERHEAD_TOKENS, ge=0, allow_inf_nan=False)
    per_message_overhead: float = Field(default=DEFAULT_PER_MESSAGE_OVERHEAD, ge=0, allow_inf_nan=False)
    # Optional dynamic clamp (e.g. lowered after an OOM at some ctx); 0 = none.
    safe_max_ctx: int = Field(default=0, ge=0)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CalibrationParams":
        """Defaults used before a model has calibration data."""
        return cls(
            tokens_per_byte=settings.default_tokens_per_byte,
            fixed_overhead=settings.default_fixed_overhead_tokens,
            per_message_overhead=settings.default_per_message_overhead,
        )
