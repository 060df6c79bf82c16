"""
Global conftest for the estimator tests.

This file combines:
1. A pretty unified-diff assertion helper for clearer dict-vs-dict failures.
2. An autouse fixture that clears estimator environment variables so
   `Settings()` sees only what a test sets explicitly.
"""

import json
import difflib

import pytest

# --------------------------------------------------------------------------- #
# Pretty diff for dict comparisons                                            #
# --------------------------------------------------------------------------- #
def pytest_assertrepr_compare(op, left, right):
    """Pretty unified-diff output when comparing two dicts with ==."""
    if isinstance(left, dict) and isinstance(right, dict) and op == "==":
        lhs = json.dumps(left, indent=2, sort_keys=True, default=str).splitlines()
        rhs = json.dumps(right, indent=2, sort_keys=True, default=str).splitlines()
        return [""] + list(
            difflib.unified_diff(lhs, rhs, fromfile="left", tofile="right")
        )


_ISOLATED_ENV = (
    "MIN_CTX", "MAX_CTX", "BUCKETS", "HEADROOM",
    "DEFAULT_OUTPUT_BUDGET", "MAX_OUTPUT_BUDGET", "STRUCTURED_OVERHEAD",
    "DYNAMIC_DEFAULT_OUTPUT_BUDGET", "DEFAULT_FIXED_OVERHEAD_TOKENS",
    "DEFAULT_PER_MESSAGE_OVERHEAD_TOKENS", "DEFAULT_TOKENS_PER_BYTE",
    "DEFAULT_TOKENS_PER_IMAGE", "OVERRIDE_NUM_CTX", "STRIP_SYSTEM_PROMPT_TEXT",
    "SERVICE_NAME", "SERVICE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch, tmp_path):
    """Isolate each test from the developer's shell and any local ``.env``."""
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
