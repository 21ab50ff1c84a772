"""Cancellation/deadline handle carried by a task. Nothing here blocks or enforces it."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ExecContext:
    """
    Execution context of the surrounding request or job.

    A child created with ``with_value`` / ``with_timeout`` is cancelled when its
    parent is, and never outlives the parent's deadline.

    Usage example
    -------------
        ctx = ExecContext.with_timeout(30.0)
        if ctx.done():
            return
    """

    def __init__(
        self,
        *,
        deadline: Optional[datetime] = None,
        values: Optional[Mapping[str, Any]] = None,
        parent: Optional["ExecContext"] = None,
    ) -> None:
        if parent is not None and parent.deadline is not None:
            if deadline is None or parent.deadline < deadline:
                deadline = parent.deadline
        self.deadline = deadline
        self._values: dict[str, Any] = dict(parent._values) if parent is not None else {}
        self._values.update(values or {})
        self._parent = parent
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "ExecContext":
        """Root context: no deadline, never cancelled unless asked to."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float, parent: Optional["ExecContext"] = None) -> "ExecContext":
        deadline = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        return cls(deadline=deadline, parent=parent)

    def with_value(self, key: str, value: Any) -> "ExecContext":
        return ExecContext(values={key: value}, parent=self)

    @property
    def values(self) -> Mapping[str, Any]:
        return MappingProxyType(self._values)

    def value(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[timedelta]:
        """Time left before the deadline, None without one."""
        if self.deadline is None:
            return None
        return self.deadline - datetime.now(timezone.utc)

    def expired(self) -> bool:
        left = self.remaining()
        return left is not None and left <= timedelta(0)

    def done(self) -> bool:
        return self.cancelled or self.expired()
