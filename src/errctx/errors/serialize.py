"""Structured (dict) renderings of errors for the logging sink."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .enriched import EnrichedError
from .types import ErrorFlags, describe


def _flag_names(flags: ErrorFlags) -> List[str]:
    return [f.name.lower() for f in ErrorFlags if f.value and f.name and flags & f]


def error_to_record(err: Optional[BaseException]) -> Dict[str, Any]:
    """
    Render one error as a structured record.

    None renders as an empty record. Enriched errors expose their metadata,
    any other exception only its string form under ``"error"``.

    Usage example
    -------------
        logger.error("request failed", extra={"err": error_to_record(exc)})
    """
    record: Dict[str, Any] = {}
    if err is None:
        return record

    if isinstance(err, EnrichedError):
        record["error"] = describe(err.cause)
        if err.http_code > 0:
            record["http_code"] = err.http_code
        record["stack_trace"] = list(err.stack_trace)
        record["user_errmsgs"] = list(err.user_messages)
        record["error_context"] = dict(err.log_context)
        names = _flag_names(err.flags)
        if names:
            record["flags"] = names
    else:
        record["error"] = describe(err)
    return record


def errors_to_records(errs: Iterable[Optional[BaseException]]) -> List[Dict[str, Any]]:
    """Render a sequence of errors, keeping their order."""
    return [error_to_record(err) for err in errs]
