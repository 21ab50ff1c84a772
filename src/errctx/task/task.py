from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Protocol, Tuple

from errctx.errors.enriched import EnrichedError, new_error, normalize, normalize_with_stack_trace
from errctx.errors.logging import JsonlEventLogger
from errctx.errors.serialize import errors_to_records
from errctx.errors.types import ErrorFlags, Panic, PanicError, describe

from .context import ExecContext

REQUEST_ID_KEY = "request_id"
HTTP_TRACE_PREFIX = "HTTP:"


class Notifier(Protocol):
    def notify(self, payload: Any, context: Mapping[str, Any], *, trace_id: Optional[str] = None) -> None:
        ...


class TaskLoggerAdapter(logging.LoggerAdapter):
    """Stamps every record with the owning task's current trace id."""

    def __init__(self, logger: logging.Logger, task: "Task") -> None:
        super().__init__(logger, {})
        self._task = task

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("trace_id", self._task.trace_id or "-")
        kwargs["extra"] = extra
        return msg, kwargs


@dataclass
class Task:
    """
    Everything needed to perform one unit of work, e.g. one HTTP request or one job.

    A task is created when the work starts, mutated by the code doing the
    work, and flushed to the logging sink exactly once at the end. It is never
    shared between units of work.

    Usage example
    -------------
        task = Task.create(ctx, logger=logger, reporter=reporter)
        task.set_request_id(request_id)
        err = task.run_guarded(lambda: handle(task, request))
        task.flush()
    """

    context: ExecContext = field(default_factory=ExecContext.background)
    trace_id: str = ""  # HTTP's request_id or a job's trace_id
    log_items: Dict[str, Any] = field(default_factory=dict)
    warnings: List[BaseException] = field(default_factory=list)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("errctx.task"), repr=False)
    reporter: Optional[Notifier] = field(default=None, repr=False)
    event_logger: Optional[JsonlEventLogger] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.log = TaskLoggerAdapter(self.logger, self)
        self._flushed = False

    @classmethod
    def create(
        cls,
        context: Optional[ExecContext] = None,
        *,
        logger: Optional[logging.Logger] = None,
        reporter: Optional[Notifier] = None,
        event_logger: Optional[JsonlEventLogger] = None,
    ) -> "Task":
        """Start a task with empty log items, no warnings and no trace id."""
        return cls(
            context=context if context is not None else ExecContext.background(),
            logger=logger if logger is not None else logging.getLogger("errctx.task"),
            reporter=reporter,
            event_logger=event_logger,
        )

    def set_request_id(self, request_id: str) -> None:
        self.add_log_context(REQUEST_ID_KEY, request_id)
        self.set_trace_id(HTTP_TRACE_PREFIX + request_id)

    def set_trace_id(self, trace_id: str) -> None:
        self.trace_id = trace_id

    def add_warning(self, err: BaseException) -> None:
        self.warnings.append(err)

    def add_warning_from_message(self, msg: str) -> None:
        self.add_warning(new_error(msg).add_flag(ErrorFlags.WARNING))

    def add_log_context(self, key: str, value: Any) -> None:
        self.log_items[key] = value

    def add_to_log_context_list(self, key: str, item: str) -> None:
        """
        Append ``item`` to the comma separated string stored under ``key``.

        Raises TypeError if ``key`` already holds something other than a string.
        """
        current = self.log_items.get(key)
        if current is None:
            self.log_items[key] = item
            return
        if not isinstance(current, str):
            raise TypeError(
                f"log context '{key}' holds {type(current).__name__}, expected str"
            )
        self.log_items[key] = f"{current},{item}"

    def run_guarded(self, fn: Callable[[], Optional[BaseException]]) -> Optional[EnrichedError]:
        """
        Run ``fn`` and turn anything it raises into a returned error.

        Behavior
        --------
        - raised exception: enriched with a stack trace, reported to the alert
          reporter with a snapshot of the log items, and returned;
        - returned exception: enriched (no forced stack capture) and returned;
        - anything else returned: None.

        KeyboardInterrupt and SystemExit are not contained.
        """
        try:
            result = fn()
        except Exception as exc:
            payload: Any = exc.payload if isinstance(exc, Panic) else exc
            if isinstance(payload, BaseException):
                err = normalize_with_stack_trace(payload)
            else:
                err = normalize_with_stack_trace(PanicError(f"panic: {describe(payload)}"))
            self.log.debug("run_guarded recovered %s", type(exc).__name__)
            self._notify(payload)
            return err

        if isinstance(result, BaseException):
            return normalize(result)
        return None

    def _notify(self, payload: Any) -> None:
        snapshot = dict(self.log_items)
        if self.reporter is None:
            self.log.error("Recovered panic: %s", describe(payload))
            return
        try:
            self.reporter.notify(payload, snapshot, trace_id=self.trace_id or None)
        except Exception:
            self.log.warning("Alert reporter raised", exc_info=True)

    def to_record(self) -> Dict[str, Any]:
        """Structured rendering: the log items plus the serialized warnings."""
        record: Dict[str, Any] = dict(self.log_items)
        record["warnings"] = errors_to_records(self.warnings)
        return record

    def flush(self, level: int = logging.INFO) -> Dict[str, Any]:
        """Emit the task record to the logging sink. A task is flushed only once."""
        if self._flushed:
            raise RuntimeError(f"Task {self.trace_id or '<untraced>'} was already flushed")
        self._flushed = True

        record = self.to_record()
        self.log.log(level, "Task finished (%d warnings)", len(self.warnings), extra={"task": record})
        if self.event_logger is not None:
            self.event_logger.write(
                event="task_finished",
                trace_id=self.trace_id or None,
                level=logging.getLevelName(level),
                context=record,
            )
        return record
