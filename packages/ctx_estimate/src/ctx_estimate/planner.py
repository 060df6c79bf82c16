"""
Per-request context planning.

``plan_context`` runs the whole sizing pipeline for one request record:

    directive extraction → optional strip → features → prompt estimate
    → output budget → headroom → bucket → clamp → override policy

and rewrites the record (``options.num_ctx``, ``think``) when the decision
calls for it. The record is caller-owned and mutated in place; the returned
``ContextDecision`` is the derived metadata.
"""
from __future__ import annotations
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union
import logging

from core_config.settings import OverridePolicy, Settings
from core_logging import get_logger, log_stage, record_error, request_scope
from core_logging.error_codes import ErrorCode
from core_utils import jsonx

from .calibration import CalibrationParams
from .endpoints import Endpoint
from .estimate import (
    BudgetSource,
    apply_headroom,
    bucketize,
    budget_output_tokens,
    clamp_ctx,
    estimate_prompt_tokens,
)
from .features import NotEstimable, extract_features
from .thinking import (
    ThinkSetting,
    extract_thinking_from_system_prompt,
    resolve_think_verdict,
    strip_system_prompt_text,
)

logger = get_logger("ctx_estimate.planner")

__all__ = [
    "ContextDecision",
    "OverridePolicy",
    "effective_bounds",
    "choose_final_ctx",
    "plan_context",
    "plan_from_body",
]


@dataclass(frozen=True)
class ContextDecision:
    model: str
    endpoint: Endpoint
    estimated_prompt_tokens: int
    output_budget_tokens: int
    output_budget_source: BudgetSource
    needed_tokens: int
    needed_with_headroom: int
    bucket: int
    desired_ctx: int
    chosen_ctx: int
    user_ctx: int
    user_ctx_provided: bool
    override_applied: bool
    clamped: bool
    effective_min_ctx: int
    effective_max_ctx: int
    max_config_ctx: int
    max_model_ctx: int
    max_safe_ctx: int
    think: Optional[ThinkSetting] = None


def effective_bounds(min_ctx: int, max_ctx: int, safe_max_ctx: int = 0, model_max_ctx: int = 0) -> Tuple[int, int]:
    """
    Tighten the configured ``[min_ctx, max_ctx]`` with the calibrated safe
    maximum and the model's own context limit (each ignored when <= 0).
    """
    eff_max = max_ctx
    if safe_max_ctx > 0 and safe_max_ctx < eff_max:
        eff_max = safe_max_ctx
    if model_max_ctx > 0 and model_max_ctx < eff_max:
        eff_max = model_max_ctx
    eff_min = min_ctx
    if eff_max > 0 and eff_min > eff_max:
        eff_min = eff_max
    return eff_min, eff_max


def choose_final_ctx(
    desired_ctx: int,
    hard_max: int,
    user_ctx: int,
    user_provided: bool,
    policy: OverridePolicy | str,
) -> Tuple[int, bool, bool]:
    """
    Reconcile the computed context with a user-supplied ``num_ctx``.

    Returns ``(final_ctx, override, clamped)``. A user value above a positive
    *hard_max* is always clamped down to it. Unknown policies behave like
    ``if_too_small``.
    """
    if user_provided and hard_max > 0 and user_ctx > hard_max:
        return hard_max, True, True

    if not user_provided:
        return desired_ctx, True, False

    if policy == OverridePolicy.always:
        return desired_ctx, True, False
    if policy == OverridePolicy.if_missing:
        return user_ctx, False, False
    if user_ctx < desired_ctx:
        return desired_ctx, True, False
    return user_ctx, False, False


def _apply_decision(req: MutableMapping[str, Any], decision: ContextDecision) -> None:
    if decision.override_applied or decision.clamped:
        opt = req.get("options")
        if not isinstance(opt, MutableMapping):
            opt = {}
        opt["num_ctx"] = decision.chosen_ctx
        req["options"] = opt
    if decision.think is not None:
        req["think"] = decision.think


def _plan(
    req: MutableMapping[str, Any],
    ep: Endpoint,
    settings: Settings,
    params: Optional[CalibrationParams],
    tokens_per_image: Optional[int],
    model_max_ctx: int,
) -> Union[ContextDecision, NotEstimable]:
    verdict = extract_thinking_from_system_prompt(req, ep)
    if settings.strip_system_prompt_text:
        strip_system_prompt_text(req, ep, settings.strip_system_prompt_text)

    features = extract_features(ep, req)
    if isinstance(features, NotEstimable):
        log_stage(logger, "plan", "ctx_skipped", level=logging.DEBUG, endpoint=ep,
                  error_code=ErrorCode.not_estimable.value, reason=features.reason)
        return features

    if params is None:
        params = CalibrationParams.from_settings(settings)
    if tokens_per_image is None:
        tokens_per_image = settings.default_tokens_per_image

    eff_min, eff_max = effective_bounds(settings.min_ctx, settings.max_ctx, params.safe_max_ctx, model_max_ctx)

    prompt_tokens = estimate_prompt_tokens(features, params, tokens_per_image)
    budget = budget_output_tokens(
        features,
        settings.default_output_budget,
        settings.max_output_budget,
        settings.structured_overhead,
        settings.dynamic_default_output_budget,
        prompt_tokens,
    )
    needed = prompt_tokens + budget.budget
    needed_headroom = apply_headroom(needed, settings.headroom)
    bucket = bucketize(needed_headroom, settings.buckets)
    desired = clamp_ctx(bucket, eff_min, eff_max)

    final_ctx, override, clamped = choose_final_ctx(
        desired, eff_max, features.provided_num_ctx, features.provided_num_ctx_ok, settings.override_num_ctx,
    )

    decision = ContextDecision(
        model=features.model,
        endpoint=ep,
        estimated_prompt_tokens=prompt_tokens,
        output_budget_tokens=budget.budget,
        output_budget_source=budget.source,
        needed_tokens=needed,
        needed_with_headroom=needed_headroom,
        bucket=bucket,
        desired_ctx=desired,
        chosen_ctx=final_ctx,
        user_ctx=features.provided_num_ctx,
        user_ctx_provided=features.provided_num_ctx_ok,
        override_applied=override,
        clamped=clamped,
        effective_min_ctx=eff_min,
        effective_max_ctx=eff_max,
        max_config_ctx=settings.max_ctx,
        max_model_ctx=model_max_ctx,
        max_safe_ctx=params.safe_max_ctx,
        think=resolve_think_verdict(features.model, verdict),
    )
    _apply_decision(req, decision)

    log_stage(
        logger, "plan", "ctx_decision",
        model=decision.model,
        endpoint=ep,
        prompt_tokens_est=decision.estimated_prompt_tokens,
        output_budget=decision.output_budget_tokens,
        output_budget_source=decision.output_budget_source.value,
        bucket=decision.bucket,
        chosen_ctx=decision.chosen_ctx,
        clamped=decision.clamped,
        override=decision.override_applied,
        think=decision.think,
    )
    return decision


def plan_context(
    req: MutableMapping[str, Any],
    endpoint: Endpoint | str,
    settings: Settings,
    params: Optional[CalibrationParams] = None,
    *,
    tokens_per_image: Optional[int] = None,
    model_max_ctx: int = 0,
    request_id: Optional[str] = None,
) -> Union[ContextDecision, NotEstimable]:
    """
    Size the context window for one request and rewrite *req* accordingly.

    *params* defaults to the configured pre-calibration coefficients and
    *tokens_per_image* to ``settings.default_tokens_per_image``;
    *model_max_ctx* is the model's advertised limit (0 when unknown).
    Records without a model come back as ``NotEstimable`` with the
    directive stripping already applied. Every line logged while planning
    carries *request_id* when one is given.
    """
    with request_scope(request_id):
        return _plan(req, Endpoint.parse(endpoint), settings, params, tokens_per_image, model_max_ctx)


def plan_from_body(
    body: Union[str, bytes],
    endpoint: Endpoint | str,
    settings: Settings,
    params: Optional[CalibrationParams] = None,
    **kwargs: Any,
) -> Tuple[dict, Union[ContextDecision, NotEstimable]]:
    """
    Decode a request body and plan it. Returns ``(record, decision)`` so the
    caller can re-encode the (possibly rewritten) record.

    Decode errors are logged and re-raised unchanged.
    """
    with request_scope(kwargs.get("request_id")):
        try:
            req = jsonx.loads_object(body)
        except ValueError as exc:
            record_error(
                ErrorCode.decode_failed,
                where="ctx_estimate.plan_from_body",
                message=str(exc),
                logger=logger,
                level="WARNING",
                stage="plan",
                endpoint=Endpoint.parse(endpoint),
            )
            raise
    return req, plan_context(req, endpoint, settings, params, **kwargs)
