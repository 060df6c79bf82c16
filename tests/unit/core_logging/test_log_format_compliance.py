import io, json, logging
from contextlib import redirect_stdout

from core_logging import get_logger, log_stage, record_error, request_scope


def _records(raw: str, service_prefix: str):
    out = []
    for line in raw.strip().splitlines():
        try:
            rec = json.loads(line)
        except json.JSONDecodeError:
            continue
        if rec.get("service", "").startswith(service_prefix):
            out.append(rec)
    return out


def test_log_envelope_compliance():
    """Envelope keys stay top-level; stage-specific metrics nest under *meta*."""

    buf = io.StringIO()
    logger = get_logger("ctxlogtest")

    with redirect_stdout(buf):
        log_stage(
            logger,
            "plan",
            "ctx_decision",
            request_id="req123",
            model="llama3",
            endpoint="chat",
            bucket=8192,
            chosen_ctx=8192,
            clamped=False,
        )

    recs = _records(buf.getvalue(), "ctxlogtest")
    assert recs, "Expected log record not found in captured output"
    payload = recs[-1]

    # ── top-level ─────────────────────────────────────────────────────────
    assert "ts" in payload, "ts missing"
    assert payload["level"] == "INFO"
    assert payload["event"] == "ctx_decision"
    assert payload["stage"] == "plan"
    assert payload["request_id"] == "req123"
    assert payload["model"] == "llama3"
    assert payload["endpoint"] == "chat"

    # ── meta ──────────────────────────────────────────────────────────────
    meta = payload.get("meta")
    assert meta, "meta object missing"
    assert meta["bucket"] == 8192
    assert meta["chosen_ctx"] == 8192
    assert meta["clamped"] is False


def test_child_logger_propagates_to_service_root(capsys):
    get_logger("ctxlogroot")
    child = get_logger("ctxlogroot.child")
    assert not child.handlers
    log_stage(child, "extract", "child_event", n=1)

    recs = _records(capsys.readouterr().out, "ctxlogroot.child")
    assert [r["event"] for r in recs] == ["child_event"]


def test_reserved_keys_are_namespaced(capsys):
    logger = get_logger("ctxlogreserved")
    log_stage(logger, "unit", "evt", message="hello", filename="x.py")

    rec = _records(capsys.readouterr().out, "ctxlogreserved")[-1]
    assert rec["message"] == "hello"
    assert rec["meta"]["meta_filename"] == "x.py"


def test_record_error_line(capsys):
    logger = get_logger("ctxlogerr")
    record_error("decode_failed", where="unit", message="boom", logger=logger, level="WARNING", stage="plan")

    rec = _records(capsys.readouterr().out, "ctxlogerr")[-1]
    assert rec["level"] == "WARNING"
    assert rec["event"] == "error"
    assert rec["error_code"] == "decode_failed"
    assert rec["stage"] == "plan"
    assert rec["meta"]["error_message"] == "boom"



def test_request_scope_injects_and_restores(capsys):
    logger = get_logger("ctxlogrid")
    with request_scope("rid-outer"):
        with request_scope("rid-42"):
            log_stage(logger, "unit", "inner")
        log_stage(logger, "unit", "outer")
    log_stage(logger, "unit", "after")

    recs = {r["event"]: r for r in _records(capsys.readouterr().out, "ctxlogrid")}
    assert recs["inner"]["request_id"] == "rid-42"
    assert recs["outer"]["request_id"] == "rid-outer"
    assert "request_id" not in recs["after"]


def test_request_scope_none_keeps_binding(capsys):
    logger = get_logger("ctxlogridnone")
    with request_scope("rid-7"), request_scope(None):
        log_stage(logger, "unit", "evt")

    rec = _records(capsys.readouterr().out, "ctxlogridnone")[-1]
    assert rec["request_id"] == "rid-7"


def test_explicit_request_id_wins_over_scope(capsys):
    logger = get_logger("ctxlogridexplicit")
    with request_scope("rid-scope"):
        log_stage(logger, "unit", "evt", request_id="rid-explicit")

    rec = _records(capsys.readouterr().out, "ctxlogridexplicit")[-1]
    assert rec["request_id"] == "rid-explicit"


def test_handler_survives_closed_previous_stdout():
    logger = get_logger("ctxlogclosed")

    first = io.StringIO()
    with redirect_stdout(first):
        log_stage(logger, "unit", "first")
    first.close()

    second = io.StringIO()
    with redirect_stdout(second):
        log_stage(logger, "unit", "second")

    assert [r["event"] for r in _records(second.getvalue(), "ctxlogclosed")] == ["second"]


def test_logging_to_closed_stdout_does_not_raise(monkeypatch):
    monkeypatch.setattr(logging, "raiseExceptions", False)
    logger = get_logger("ctxlogdead")
    dead = io.StringIO()
    dead.close()
    with redirect_stdout(dead):
        log_stage(logger, "unit", "evt")
        record_error("decode_failed", where="unit", message="boom", logger=logger)
