from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from rich.logging import RichHandler

from .config import ErrctxConfig
from .serialize import error_to_record

FILE_FORMAT = "%(asctime)sZ | run=%(run_id)s | trace=%(trace_id)s | %(levelname)s | %(message)s"
CONSOLE_FORMAT = "[trace=%(trace_id)s] %(message)s"


@dataclass
class JsonlEventLogger:
    """
    Appends task and panic events to a JSON lines file.

    Every line carries ``time_utc``, ``run_id``, ``event``, ``trace_id`` and
    ``level``. Optional keys:

    message
        Free text, used for panics whose payload is not an exception.
    context
        The task's log items at the time of the event.
    error, error_type
        The exception rendered by ``error_to_record`` and the class name of
        the underlying cause.

    Values JSON can't encode are written as their string form.

    Usage example
    -------------
        ev = JsonlEventLogger(path=Path("logs/events_abc.jsonl"), run_id="abc")
        ev.write(event="task_finished", trace_id="HTTP:r1", level="INFO", context=task.to_record())
    """
    path: Path
    run_id: str

    def build(
        self,
        *,
        event: str,
        trace_id: Optional[str],
        level: str,
        context: Optional[Mapping[str, Any]] = None,
        exc: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "time_utc": datetime.now(timezone.utc).isoformat(),
            "run_id": self.run_id,
            "event": event,
            "trace_id": trace_id,
            "level": level,
        }
        if message:
            record["message"] = message
        if context:
            record["context"] = dict(context)
        if exc is not None:
            cause = getattr(exc, "cause", None) or exc
            record["error_type"] = type(cause).__name__
            record["error"] = error_to_record(exc)
        return record

    def write(self, **fields: Any) -> None:
        """Build an event from ``fields`` (see ``build``) and append it."""
        line = json.dumps(self.build(**fields), ensure_ascii=False, default=str)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


class _TraceFilter(logging.Filter):
    """Fills in ``run_id`` and a ``-`` trace id for records logged outside a task."""

    def __init__(self, *, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        if not hasattr(record, "run_id"):
            record.run_id = self._run_id
        if not getattr(record, "trace_id", None):
            record.trace_id = "-"
        return True


def _console_handler(cfg: ErrctxConfig) -> logging.Handler:
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setLevel(cfg.console_level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(cfg: ErrctxConfig, run_id: str) -> logging.Handler:
    handler = logging.FileHandler(cfg.log_dir / f"run_{run_id}.log", encoding="utf-8")
    handler.setLevel(cfg.file_level)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    return handler


def configure_logging(*, cfg: ErrctxConfig) -> tuple[logging.Logger, Optional[JsonlEventLogger]]:
    """
    Set up the ``errctx`` logger: rich console output, a plain per-run log
    file and, if ``cfg.write_jsonl``, a JSONL event file.

    Calling it again replaces the handlers instead of stacking them. Task
    loggers (``errctx.task`` and friends) are children and share the handlers.

    Usage example
    -------------
        logger, event_logger = configure_logging(cfg=cfg)
        task = Task.create(logger=logger, event_logger=event_logger)
    """
    run_id = cfg.resolved_run_id()
    cfg.log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("errctx")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.filters.clear()
    logger.propagate = False

    trace_filter = _TraceFilter(run_id=run_id)
    logger.addFilter(trace_filter)
    # child loggers bypass the parent's filters, so the handlers carry it too
    for handler in (_console_handler(cfg), _file_handler(cfg, run_id)):
        handler.addFilter(trace_filter)
        logger.addHandler(handler)

    event_logger = None
    if cfg.write_jsonl:
        event_logger = JsonlEventLogger(path=cfg.log_dir / f"events_{run_id}.jsonl", run_id=run_id)

    logger.debug("Logging configured (run_id=%s, log_dir=%s)", run_id, cfg.log_dir)
    return logger, event_logger
