from __future__ import annotations

import json
import logging
from pathlib import Path

from errctx.errors.config import ErrctxConfig
from errctx.errors.enriched import normalize
from errctx.errors.logging import JsonlEventLogger, configure_logging


def _cfg(tmp_path: Path, *, write_jsonl: bool = False) -> ErrctxConfig:
    return ErrctxConfig(
        log_dir=tmp_path / "logs",
        run_id="testrun",
        write_jsonl=write_jsonl,
        console_level=logging.CRITICAL,  # keep test output quiet
        file_level=logging.DEBUG,
    )


def test_jsonl_event_logger_writes_valid_lines(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "events_abc.jsonl"
    ev = JsonlEventLogger(path=path, run_id="abc")

    ev.write(event="task_finished", trace_id="HTTP:r1", level="INFO", context={"request_id": "r1"})
    ev.write(event="panic_recovered", trace_id=None, level="ERROR", exc=ValueError("nope"))

    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2

    a = json.loads(lines[0])
    assert a["run_id"] == "abc"
    assert a["event"] == "task_finished"
    assert a["trace_id"] == "HTTP:r1"
    assert a["level"] == "INFO"
    assert a["context"] == {"request_id": "r1"}
    assert "time_utc" in a

    b = json.loads(lines[1])
    assert b["event"] == "panic_recovered"
    assert b["trace_id"] is None
    assert b["error_type"] == "ValueError"
    assert b["error"] == {"error": "nope"}


def test_jsonl_event_logger_renders_enriched_errors(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    ev = JsonlEventLogger(path=path, run_id="abc")
    err = normalize(KeyError("order-9")).add_http_context(409).add_log_context("order_id", 9)

    ev.write(event="panic_recovered", trace_id="job:1", level="ERROR", exc=err)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["error_type"] == "KeyError"
    assert payload["error"]["http_code"] == 409
    assert payload["error"]["error_context"] == {"order_id": 9}
    assert payload["error"]["user_errmsgs"] == ["409 - Conflict"]


def test_jsonl_event_logger_stringifies_unknown_values(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    ev = JsonlEventLogger(path=path, run_id="abc")

    ev.write(event="task_finished", trace_id="t", level="INFO", context={"where": Path("/tmp/x")})

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["context"]["where"] == str(Path("/tmp/x"))


def test_configure_logging_creates_log_file_and_injects_defaults(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)

    logger, event_logger = configure_logging(cfg=cfg)
    assert event_logger is None
    assert logger.name == "errctx"

    logger.info("hello world")

    text = (cfg.log_dir / "run_testrun.log").read_text(encoding="utf-8")
    assert "hello world" in text
    assert "run=testrun" in text
    assert "trace=-" in text


def test_child_logger_records_carry_trace_id(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    configure_logging(cfg=cfg)

    logging.getLogger("errctx.task").warning("child says hi", extra={"trace_id": "job:42"})

    text = (cfg.log_dir / "run_testrun.log").read_text(encoding="utf-8")
    assert "child says hi" in text
    assert "trace=job:42" in text


def test_configure_logging_is_repeatable(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    configure_logging(cfg=cfg)
    logger, _ = configure_logging(cfg=cfg)

    assert len(logger.handlers) == 2


def test_configure_logging_returns_event_logger_when_enabled(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path, write_jsonl=True)

    _, event_logger = configure_logging(cfg=cfg)

    assert event_logger is not None
    assert event_logger.path == cfg.log_dir / "events_testrun.jsonl"
    assert event_logger.run_id == "testrun"
