from __future__ import annotations

import pytest
from sqlalchemy.exc import NoResultFound

from errctx.errors.enriched import (
    EnrichedError,
    is_not_found,
    new_error,
    new_http_error,
    normalize,
    normalize_with_stack_trace,
    register_not_found,
    status_text,
)
from errctx.errors import enriched as enriched_module
from errctx.errors.stack import PACKAGE_DIR
from errctx.errors.types import ErrorFlags, FlagPolicy, InvalidWrapError


def test_normalize_wraps_plain_exception() -> None:
    cause = ValueError("bad input")

    err = normalize(cause)

    assert isinstance(err, EnrichedError)
    assert err.cause is cause
    assert err.__cause__ is cause
    assert str(err) == "bad input"
    assert err.http_code == 0
    assert err.user_messages == []
    assert err.log_context == {}
    assert err.stack_trace == []
    assert err.flags == ErrorFlags.NONE


@pytest.mark.parametrize("cause", [ValueError("x"), RuntimeError(""), KeyError("k"), NoResultFound("none")])
def test_normalize_is_idempotent(cause: BaseException) -> None:
    err = normalize(cause)

    assert normalize(err) is err
    assert normalize_with_stack_trace(err) is err


def test_normalize_not_found_sentinel_maps_to_404() -> None:
    err = normalize(NoResultFound("No row was found when one was required"))

    assert err.http_code == 404
    assert err.user_messages == ["404 - Not Found"]


def test_register_not_found_extends_sentinels(monkeypatch) -> None:
    class MissingRecord(LookupError):
        pass

    monkeypatch.setattr(enriched_module, "_not_found_types", enriched_module._not_found_types)
    assert is_not_found(MissingRecord()) is False

    register_not_found(MissingRecord)

    assert is_not_found(MissingRecord()) is True
    assert normalize(MissingRecord("gone")).http_code == 404


def test_wrap_none_raises() -> None:
    with pytest.raises(InvalidWrapError, match="None"):
        EnrichedError(None)


def test_wrap_none_on_existing_error_raises_and_keeps_cause() -> None:
    cause = ValueError("x")
    err = EnrichedError(cause)

    with pytest.raises(InvalidWrapError, match="None"):
        err.wrap(None)
    assert err.cause is cause
    assert err.__cause__ is cause


def test_wrap_same_cause_raises() -> None:
    cause = ValueError("x")
    err = normalize(cause)

    with pytest.raises(InvalidWrapError, match="already wrapped"):
        err.wrap(cause)


def test_wrap_enriched_error_raises() -> None:
    inner = normalize(ValueError("inner"))

    with pytest.raises(InvalidWrapError, match="EnrichedError"):
        EnrichedError(inner)


def test_wrap_replaces_cause() -> None:
    err = normalize(ValueError("first"))
    second = TypeError("second")

    assert err.wrap(second) is err
    assert err.cause is second
    assert str(err) == "second"


def test_add_message_keeps_call_order() -> None:
    err = normalize(ValueError("x"))
    for i in range(5):
        err.add_message(f"msg {i}")

    assert err.user_messages == [f"msg {i}" for i in range(5)]


def test_add_http_context_sets_code_and_message() -> None:
    err = normalize(ValueError("x")).add_http_context(409)

    assert err.http_code == 409
    assert err.user_messages == ["409 - Conflict"]


def test_add_http_context_unknown_code_has_empty_phrase() -> None:
    err = normalize(ValueError("x")).http_error(799)

    assert err.http_code == 799
    assert err.user_messages == ["799 - "]
    assert status_text(799) == ""


def test_add_log_context_last_write_wins() -> None:
    err = normalize(ValueError("x")).add_log_context("order", 1).add_log_context("order", 2)

    assert err.log_context == {"order": 2}


def test_add_flag_set_policy_sets_bit() -> None:
    err = normalize(ValueError("x"))
    assert err.flag_policy == FlagPolicy.SET

    err.add_flag(ErrorFlags.WARNING)

    assert err.has_flag(ErrorFlags.WARNING) is True


def test_add_flag_intersect_policy_never_sticks_from_empty() -> None:
    err = normalize(ValueError("x"))
    err.flag_policy = FlagPolicy.INTERSECT

    err.add_flag(ErrorFlags.WARNING)

    assert err.has_flag(ErrorFlags.WARNING) is False
    assert err.flags == ErrorFlags.NONE


def test_add_flag_intersect_policy_keeps_existing_bit() -> None:
    err = normalize(ValueError("x"))
    err.flags = ErrorFlags.WARNING
    err.flag_policy = FlagPolicy.INTERSECT

    err.add_flag(ErrorFlags.WARNING)

    assert err.has_flag(ErrorFlags.WARNING) is True


def test_normalize_with_stack_trace_captures_caller_frame() -> None:
    err = normalize_with_stack_trace(ValueError("x"))

    assert any("test_normalize_with_stack_trace_captures_caller_frame @ " in f for f in err.stack_trace)
    assert not any(PACKAGE_DIR in f for f in err.stack_trace)


def test_normalize_with_stack_trace_includes_raise_site() -> None:
    def explode() -> None:
        raise ValueError("deep")

    try:
        explode()
    except ValueError as exc:
        err = normalize_with_stack_trace(exc)

    assert any(f.startswith("explode @ ") for f in err.stack_trace)


def test_new_error_and_new_http_error() -> None:
    err = new_error("something broke")
    assert isinstance(err.cause, RuntimeError)
    assert str(err) == "something broke"
    assert err.stack_trace

    http = new_http_error(503)
    assert str(http) == "Service Unavailable"
    assert http.http_code == 503
    assert http.user_messages == ["503 - Service Unavailable"]


def test_enriched_error_can_be_raised_and_caught() -> None:
    with pytest.raises(EnrichedError, match="boom"):
        raise normalize(RuntimeError("boom"))
