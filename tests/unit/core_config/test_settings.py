import json

import pytest
from pydantic import ValidationError

from core_config.constants import DEFAULT_BUCKETS, THINK_MARKER
from core_config.settings import OverridePolicy, Settings, get_settings, parse_int_list


def test_defaults():
    s = Settings()
    assert s.min_ctx == 1024
    assert s.max_ctx == 81920
    assert s.headroom == 1.25
    assert s.buckets == list(DEFAULT_BUCKETS)
    assert s.default_output_budget == 1024
    assert s.max_output_budget == 10240
    assert s.structured_overhead == 128
    assert s.dynamic_default_output_budget is False
    assert s.override_num_ctx is OverridePolicy.if_too_small
    assert s.strip_system_prompt_text == ""


def test_default_ladder_is_ascending():
    assert list(DEFAULT_BUCKETS) == sorted(DEFAULT_BUCKETS)
    assert DEFAULT_BUCKETS[0] == 1024 and DEFAULT_BUCKETS[-1] == 102400
    assert THINK_MARKER == "__think="


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MIN_CTX", "2048")
    monkeypatch.setenv("MAX_CTX", "32768")
    monkeypatch.setenv("BUCKETS", "2048, 4096,8192")
    monkeypatch.setenv("HEADROOM", "1.5")
    monkeypatch.setenv("DYNAMIC_DEFAULT_OUTPUT_BUDGET", "true")
    monkeypatch.setenv("OVERRIDE_NUM_CTX", "always")
    monkeypatch.setenv("STRIP_SYSTEM_PROMPT_TEXT", "You are a bot.")
    s = get_settings()
    assert (s.min_ctx, s.max_ctx) == (2048, 32768)
    assert s.buckets == [2048, 4096, 8192]
    assert s.headroom == 1.5
    assert s.dynamic_default_output_budget is True
    assert s.override_num_ctx is OverridePolicy.always
    assert s.strip_system_prompt_text == "You are a bot."


def test_field_names_work_as_keywords():
    s = Settings(min_ctx=512, max_ctx=4096, buckets_raw="512,4096")
    assert s.buckets == [512, 4096]


def test_parse_int_list_skips_blanks():
    assert parse_int_list(" 1, ,2,3 ") == [1, 2, 3]
    assert parse_int_list("") == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_ctx": 0},
        {"max_ctx": -1},
        {"min_ctx": 8192, "max_ctx": 4096},
        {"headroom": 0.9},
        {"headroom": float("nan")},
        {"headroom": float("inf")},
        {"default_tokens_per_byte": float("nan")},
        {"default_fixed_overhead_tokens": float("inf")},
        {"default_output_budget": -1},
        {"default_output_budget": 20000},
        {"buckets_raw": "4096,2048"},
        {"buckets_raw": "0,2048"},
        {"buckets_raw": "1024,abc"},
        {"override_num_ctx": "sometimes"},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        Settings(**kwargs)


def test_get_settings_logs_invalid_config(monkeypatch, capsys):
    monkeypatch.setenv("HEADROOM", "0.5")
    with pytest.raises(ValidationError):
        get_settings()

    lines = [json.loads(l) for l in capsys.readouterr().out.splitlines() if l.strip()]
    errors = [r for r in lines if r.get("error_code") == "invalid_config"]
    assert errors, "invalid_config line not emitted"
    rec = errors[-1]
    assert rec["level"] == "ERROR"
    assert rec["stage"] == "config"
    assert rec["meta"]["where"] == "core_config.get_settings"


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf"])
def test_non_finite_headroom_from_env_rejected(monkeypatch, raw):
    monkeypatch.setenv("HEADROOM", raw)
    with pytest.raises(ValidationError):
        Settings()
