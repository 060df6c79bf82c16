from core_logging import get_logger

# Service root: owns the stdout JSON handler; module loggers propagate here.
get_logger("ctx_estimate")

from .endpoints import Endpoint  # noqa: E402
from .features import (  # noqa: E402
    NOT_ESTIMABLE,
    ExtractResult,
    Features,
    NotEstimable,
    extract_features,
)
from .calibration import CalibrationParams  # noqa: E402
from .estimate import (  # noqa: E402
    BudgetSource,
    OutputBudgetResult,
    apply_headroom,
    bucketize,
    budget_output_tokens,
    clamp_ctx,
    estimate_prompt_tokens,
)
from .thinking import (  # noqa: E402
    ThinkSetting,
    extract_thinking_from_system_prompt,
    extract_thinking_from_text,
    normalize_prompt_text,
    resolve_think_verdict,
    strip_system_prompt_text,
)
from .planner import (  # noqa: E402
    ContextDecision,
    OverridePolicy,
    choose_final_ctx,
    effective_bounds,
    plan_context,
    plan_from_body,
)

__all__ = [
    "Endpoint",
    "Features", "NotEstimable", "NOT_ESTIMABLE", "ExtractResult", "extract_features",
    "CalibrationParams",
    "BudgetSource", "OutputBudgetResult",
    "estimate_prompt_tokens", "budget_output_tokens", "apply_headroom", "bucketize", "clamp_ctx",
    "ThinkSetting", "normalize_prompt_text", "extract_thinking_from_text",
    "extract_thinking_from_system_prompt", "strip_system_prompt_text", "resolve_think_verdict",
    "ContextDecision", "OverridePolicy", "effective_bounds", "choose_final_ctx", "plan_context", "plan_from_body",
]
