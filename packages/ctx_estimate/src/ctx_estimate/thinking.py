"""
``__think=<verdict>`` directives embedded in system prompts.

Upstream callers that cannot set the backend's ``think`` field put a
directive into the system prompt instead. The functions here pull it out
(and strip configured boilerplate) before the prompt reaches the model.
Both record-level helpers mutate the caller-owned record in place; a record
must not be shared between concurrent callers.
"""
from __future__ import annotations
from collections.abc import MutableMapping
from typing import Any, Callable, Optional, Tuple, Union

from core_config.constants import THINK_MARKER

from .accessors import get_list, get_str, iter_mappings
from .endpoints import Endpoint

__all__ = [
    "ThinkSetting",
    "normalize_prompt_text",
    "extract_thinking_from_text",
    "extract_thinking_from_system_prompt",
    "strip_system_prompt_text",
    "resolve_think_verdict",
]

_VERDICT_TERMINATORS = (" ", "\t", "\n", "\r")

# bool for on/off families, str for effort-level families
ThinkSetting = Union[bool, str]


def normalize_prompt_text(text: str) -> str:
    """Trim surrounding whitespace and collapse 3+ newlines to exactly two."""
    cleaned = text.strip()
    while "\n\n\n" in cleaned:
        cleaned = cleaned.replace("\n\n\n", "\n\n")
    return cleaned


def extract_thinking_from_text(text: str) -> Tuple[str, str]:
    """
    Return ``(verdict, cleaned_text)`` for the first ``__think=`` in *text*.

    The verdict runs up to the first space/tab/newline/CR or end of string.
    Without a marker the verdict is ``""`` and *text* comes back unchanged.
    """
    idx = text.find(THINK_MARKER)
    if idx == -1:
        return "", text

    after = text[idx + len(THINK_MARKER):]
    end = len(after)
    for i, ch in enumerate(after):
        if ch in _VERDICT_TERMINATORS:
            end = i
            break

    verdict = after[:end]
    cleaned = normalize_prompt_text(text[:idx] + after[end:])
    return verdict, cleaned


def _system_targets(
    req: MutableMapping[str, Any], endpoint: Endpoint
) -> list[tuple[MutableMapping[str, Any], str, str]]:
    """(container, key, text) for every system-prompt string in the record."""
    if endpoint is Endpoint.GENERATE:
        system = get_str(req, "system")
        return [] if system is None else [(req, "system", system)]
    if endpoint is Endpoint.CHAT:
        targets = []
        for msg in iter_mappings(get_list(req, "messages")):
            if get_str(msg, "role") != "system":
                continue
            content = get_str(msg, "content")
            if content is not None:
                targets.append((msg, "content", content))
        return targets
    return []


def extract_thinking_from_system_prompt(req: MutableMapping[str, Any], endpoint: Endpoint | str) -> str:
    """
    Remove ``__think=<verdict>`` from the system prompt(s) of *req*.

    Generate requests use the ``system`` field; chat requests scan every
    ``role == "system"`` message independently. A prompt is rewritten only
    when it yields a non-empty verdict. Returns the last non-empty verdict
    found, or ``""``.
    """
    found = ""
    for container, key, text in _system_targets(req, Endpoint.parse(endpoint)):
        verdict, cleaned = extract_thinking_from_text(text)
        if verdict:
            found = verdict
            container[key] = cleaned
    return found


def strip_system_prompt_text(req: MutableMapping[str, Any], endpoint: Endpoint | str, text_to_strip: str) -> None:
    """Remove every occurrence of *text_to_strip* from the system prompt(s) of *req*."""
    if not text_to_strip:
        return
    for container, key, text in _system_targets(req, Endpoint.parse(endpoint)):
        container[key] = normalize_prompt_text(text.replace(text_to_strip, ""))


def _accepts(*allowed: str) -> Callable[[str], bool]:
    return lambda verdict: verdict in allowed

# model-name prefix → (verdict filter, verdict → request "think" value)
_THINK_FAMILIES: tuple[tuple[tuple[str, ...], Callable[[str], bool], Callable[[str], ThinkSetting]], ...] = (
    (("qwen3", "deepseek"), _accepts("true", "false"), lambda v: v == "true"),
    (("gpt-oss",), _accepts("low", "medium", "high"), lambda v: v),
)


def resolve_think_verdict(model: str, verdict: str) -> Optional[ThinkSetting]:
    """
    Translate a directive verdict into the ``think`` value *model* accepts.

    Returns ``None`` when the model family has no thinking control or the
    verdict is not one it understands. ``False`` is a real setting, so
    callers must test ``is None``.
    """
    if not verdict:
        return None
    model_lower = (model or "").lower()
    for prefixes, accepts, convert in _THINK_FAMILIES:
        if model_lower.startswith(prefixes):
            return convert(verdict) if accepts(verdict) else None
    return None
