from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Sequence
import math

from core_config.constants import DYNAMIC_BUDGET_BASE, STRUCTURED_UNCAPPED_BUMP

from .calibration import CalibrationParams
from .features import Features

# Pure, deterministic sizing helpers.
# These functions DO NOT log. Callers (e.g., the planner) emit structured logs.

__all__ = [
    "BudgetSource",
    "OutputBudgetResult",
    "estimate_prompt_tokens",
    "budget_output_tokens",
    "apply_headroom",
    "bucketize",
    "clamp_ctx",
]


# Results saturate here instead of overflowing
_TOKEN_CEILING = 2**63 - 1


def _ceil_tokens(value: float) -> int:
    if math.isnan(value) or value <= 0:
        return 0
    if value >= _TOKEN_CEILING:
        return _TOKEN_CEILING
    return math.ceil(value)


def estimate_prompt_tokens(f: Features, params: CalibrationParams, tokens_per_image: int) -> int:
    """Estimated prompt tokens, never negative and rounded up."""
    image_tokens = max(tokens_per_image, 0) * f.image_count
    est = (
        params.fixed_overhead
        + params.per_message_overhead * f.message_count
        + params.tokens_per_byte * f.text_bytes
        + image_tokens
    )
    return _ceil_tokens(est)


class BudgetSource(str, Enum):
    """Where an output budget came from (diagnostics only)."""

    explicit = "explicit_num_predict"
    dynamic = "dynamic_default"
    fixed = "fixed_default"


@dataclass(frozen=True)
class OutputBudgetResult:
    budget: int
    source: BudgetSource


def _half_toward_zero(n: int) -> int:
    return -((-n) // 2) if n < 0 else n // 2


def budget_output_tokens(
    f: Features,
    default_budget: int,
    max_budget: int,
    structured_overhead: int,
    dynamic_default: bool,
    prompt_tokens: int,
) -> OutputBudgetResult:
    """
    Choose how many tokens to reserve for generation.

    ``options.num_predict`` always wins. Otherwise the dynamic default
    ``max(default_budget, 256 + prompt_tokens/2)`` applies when enabled, else
    the fixed default. The pick is clamped to ``[0, max_budget]``; structured
    output then adds its overhead (plus 256 more when nothing capped it) and
    the total is re-capped at ``max_budget``.
    """
    if f.num_predict_ok:
        budget, source = f.num_predict, BudgetSource.explicit
    elif dynamic_default:
        budget = max(default_budget, DYNAMIC_BUDGET_BASE + _half_toward_zero(prompt_tokens))
        source = BudgetSource.dynamic
    else:
        budget, source = default_budget, BudgetSource.fixed

    budget = min(max(budget, 0), max_budget)

    if f.structured:
        budget += structured_overhead
        if not f.num_predict_ok:
            budget += STRUCTURED_UNCAPPED_BUMP
        budget = min(budget, max_budget)

    return OutputBudgetResult(budget=budget, source=source)


def apply_headroom(needed_tokens: int, headroom: float) -> int:
    """
    Inflate *needed_tokens* by a safety factor. Factors below 1.0 and
    non-finite factors count as 1.0.
    """
    if needed_tokens <= 0:
        return 0
    if not math.isfinite(headroom) or headroom < 1.0:
        headroom = 1.0
    return _ceil_tokens(needed_tokens * headroom)


def bucketize(needed_tokens: int, buckets: Sequence[int]) -> int:
    """
    Smallest bucket >= *needed_tokens* from an ascending list.

    When no bucket is large enough the need itself is returned, so the
    caller never silently under-provisions.
    """
    for b in buckets:
        if b >= needed_tokens:
            return b
    return needed_tokens


def clamp_ctx(ctx: int, min_ctx: int, max_ctx: int) -> int:
    """Clamp *ctx* to ``[min_ctx, max_ctx]``; ``max_ctx == 0`` means no upper bound."""
    if ctx < min_ctx:
        ctx = min_ctx
    if max_ctx > 0 and ctx > max_ctx:
        ctx = max_ctx
    return ctx
