from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

from .enriched import EnrichedError, is_not_found, normalize_with_stack_trace
from .types import ErrorFlags, describe

if TYPE_CHECKING:
    from errctx.task import Task

_log = logging.getLogger("errctx.guards")


def raise_on_error(err: Optional[BaseException]) -> None:
    """
    Raise ``err`` enriched with a stack trace; do nothing for None.

    Usage example
    -------------
        raise_on_error(result.error)
    """
    if err is not None:
        raise normalize_with_stack_trace(err)


@contextmanager
def warn_on_error(task: Optional["Task"] = None) -> Iterator[None]:
    """
    Downgrade exceptions raised in the block to warnings.

    Behavior
    --------
    - the exception is normalized and flagged WARNING;
    - it is appended to ``task.warnings`` when a task is given, and logged;
    - execution continues after the block.

    Usage example
    -------------
        with warn_on_error(task):
            cache.invalidate(key)
    """
    try:
        yield
    except Exception as exc:
        warning = normalize_with_stack_trace(exc).add_flag(ErrorFlags.WARNING)
        if task is not None:
            task.add_warning(warning)
            task.log.warning("Ignored error: %s", describe(warning))
        else:
            _log.warning("Ignored error: %s", describe(warning))


@contextmanager
def suppress_not_found() -> Iterator[None]:
    """
    Swallow not-found sentinel errors; enrich and re-raise everything else.

    Usage example
    -------------
        user = None
        with suppress_not_found():
            user = session.execute(stmt).scalar_one()
    """
    try:
        yield
    except Exception as exc:
        if is_not_found(exc) or (isinstance(exc, EnrichedError) and is_not_found(exc.cause)):
            return
        if isinstance(exc, EnrichedError):
            raise
        raise normalize_with_stack_trace(exc) from exc
