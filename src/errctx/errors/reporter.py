from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from honeybadger import honeybadger

from .config import ErrctxConfig
from .logging import JsonlEventLogger
from .types import describe


class AlertClient(Protocol):
    """The subset of the Honeybadger client used here."""

    def notify(self, exception: Any = None, error_class: Any = None, error_message: Any = None, context: Any = None) -> Any:
        ...


@dataclass
class AlertReporter:
    """
    Forwards recovered panics to the alerting service, fire-and-forget.

    Design notes
    ------------
    - Delivery failures are logged and swallowed; they never change the
      outcome of the unit of work that raised the alert.
    - Without an API key (and no explicit client) alerts are only logged.

    Usage example
    -------------
        reporter = AlertReporter(cfg=cfg, logger=logger, event_logger=event_logger)
        reporter.notify(exc, {"request_id": "r1"}, trace_id="HTTP:r1")
    """

    cfg: ErrctxConfig
    logger: logging.Logger
    event_logger: Optional[JsonlEventLogger] = None
    client: Optional[AlertClient] = None

    def __post_init__(self) -> None:
        """Configure the Honeybadger singleton when an API key is present."""
        self._sent = 0
        self._failed = 0
        if self.client is None and self.cfg.honeybadger_api_key:
            honeybadger.configure(
                api_key=self.cfg.honeybadger_api_key,
                environment=self.cfg.environment,
            )
            self.client = honeybadger

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def sent_count(self) -> int:
        """Return the number of alerts handed to the client."""
        return self._sent

    def failed_count(self) -> int:
        """Return the number of alerts the client rejected."""
        return self._failed

    def notify(self, payload: Any, context: Mapping[str, Any], *, trace_id: Optional[str] = None) -> None:
        """Report ``payload`` with a copy of ``context``. Never raises."""
        ctx = dict(context)
        exc = payload if isinstance(payload, BaseException) else None

        self.logger.error(
            "Recovered panic: %s (%s)",
            describe(payload),
            type(payload).__name__,
            extra={"trace_id": trace_id},
        )
        if self.event_logger is not None:
            self.event_logger.write(
                event="panic_recovered",
                trace_id=trace_id,
                level="ERROR",
                context=ctx,
                exc=exc,
                message=None if exc is not None else describe(payload),
            )

        if self.client is None:
            return
        try:
            if exc is not None:
                self.client.notify(exception=exc, context=ctx)
            else:
                self.client.notify(error_class="Panic", error_message=describe(payload), context=ctx)
        except Exception:
            self._failed += 1
            self.logger.warning("Alert delivery failed", exc_info=True, extra={"trace_id": trace_id})
        else:
            self._sent += 1
