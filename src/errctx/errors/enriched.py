from __future__ import annotations

from http import HTTPStatus
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from sqlalchemy.exc import NoResultFound

from .stack import StackSource, collect_frames
from .types import ErrorFlags, FlagPolicy, InvalidWrapError, describe

_not_found_types: Tuple[Type[BaseException], ...] = (NoResultFound,)


def register_not_found(exc_type: Type[BaseException]) -> None:
    """Treat ``exc_type`` like a missing database row when normalizing."""
    global _not_found_types
    if exc_type not in _not_found_types:
        _not_found_types = _not_found_types + (exc_type,)


def is_not_found(err: Optional[BaseException]) -> bool:
    return err is not None and isinstance(err, _not_found_types)


def status_text(code: int) -> str:
    """Reason phrase for an HTTP status code, empty if the code is unknown."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""


class EnrichedError(Exception):
    """
    An exception decorated with diagnostic metadata.

    Wraps exactly one underlying exception (``cause``) and adds an HTTP status,
    user-facing messages, structured log context, stack frames and
    classification flags. Only ``user_messages`` and ``http_code`` are meant for
    end users; the rest is operator-facing.

    Mutators return ``self`` so calls can be chained.

    Usage example
    -------------
        err = normalize(exc).add_http_context(409).add_log_context("order_id", oid)
        raise err
    """

    flag_policy: ClassVar[FlagPolicy] = FlagPolicy.SET

    def __init__(self, cause: BaseException) -> None:
        super().__init__()
        self.cause: Optional[BaseException] = None
        self.http_code: int = 0
        self.user_messages: List[str] = []
        self.log_context: Dict[str, Any] = {}
        self.stack_trace: List[str] = []
        self.flags: ErrorFlags = ErrorFlags.NONE
        self.wrap(cause)

    def __str__(self) -> str:
        return describe(self.cause)

    def __repr__(self) -> str:
        return f"EnrichedError({self.cause!r}, http_code={self.http_code})"

    def wrap(self, err: Optional[BaseException]) -> "EnrichedError":
        if err is None:
            raise InvalidWrapError("Can't wrap None")
        if err is self.cause:
            raise InvalidWrapError("Can't wrap the error that is already wrapped")
        if isinstance(err, EnrichedError):
            raise InvalidWrapError("Can't wrap an EnrichedError in another EnrichedError")
        self.cause = err
        self.__cause__ = err
        self.args = (err,)
        return self

    def add_http_context(self, code: int) -> "EnrichedError":
        self.http_code = code
        return self.add_message(f"{code} - {status_text(code)}")

    http_error = add_http_context

    def add_message(self, msg: str) -> "EnrichedError":
        self.user_messages.append(msg)
        return self

    def add_log_context(self, key: str, val: Any) -> "EnrichedError":
        self.log_context[key] = val
        return self

    def add_flag(self, flag: ErrorFlags) -> "EnrichedError":
        """Combine ``flag`` into ``flags`` according to ``flag_policy``."""
        if self.flag_policy == FlagPolicy.INTERSECT:
            self.flags &= flag
        else:
            self.flags |= flag
        return self

    def has_flag(self, flag: ErrorFlags) -> bool:
        return bool(self.flags & flag)

    def with_stack_trace(self) -> "EnrichedError":
        return self.take_stack_trace(None)

    def take_stack_trace(self, stack: StackSource = None) -> "EnrichedError":
        """
        Append frames from ``stack`` to ``stack_trace``.

        ``stack`` is a traceback text dump, a sequence of ``FrameSummary`` or
        None. None captures the current call stack followed by the frames the
        cause was raised through.
        """
        self.stack_trace.extend(collect_frames(stack, self.cause.__traceback__))
        return self


def set_flag_policy(policy: FlagPolicy) -> None:
    """Set the process-wide default flag policy."""
    EnrichedError.flag_policy = FlagPolicy(policy)


def normalize(err: BaseException) -> EnrichedError:
    """
    Return ``err`` enriched, without capturing a stack trace.

    An ``EnrichedError`` is returned unchanged. A not-found sentinel gets HTTP
    404 and a matching user message.
    """
    if isinstance(err, EnrichedError):
        return err

    enriched = EnrichedError(err)
    if is_not_found(err):
        enriched.http_code = HTTPStatus.NOT_FOUND.value
        enriched.user_messages.append(f"404 - {HTTPStatus.NOT_FOUND.phrase}")
    return enriched


def normalize_with_stack_trace(err: BaseException) -> EnrichedError:
    """Like ``normalize``, also capturing the stack unless one is already attached."""
    enriched = normalize(err)
    if not enriched.stack_trace:
        enriched.with_stack_trace()
    return enriched


def new_error(message: str) -> EnrichedError:
    return normalize_with_stack_trace(RuntimeError(message))


def new_http_error(code: int) -> EnrichedError:
    return new_error(status_text(code)).add_http_context(code)
