import pytest
from sqlalchemy.exc import NoResultFound

from errctx.errors.enriched import EnrichedError, normalize
from errctx.errors.guards import raise_on_error, suppress_not_found, warn_on_error
from errctx.errors.types import ErrorFlags
from errctx.task import Task


def test_raise_on_error_none_is_noop() -> None:
    raise_on_error(None)


def test_raise_on_error_raises_enriched_with_stack() -> None:
    cause = ValueError("bad")

    with pytest.raises(EnrichedError) as info:
        raise_on_error(cause)

    assert info.value.cause is cause
    assert info.value.stack_trace


def test_raise_on_error_keeps_enriched_identity() -> None:
    err = normalize(ValueError("bad"))

    with pytest.raises(EnrichedError) as info:
        raise_on_error(err)

    assert info.value is err


def test_warn_on_error_records_warning_on_task() -> None:
    task = Task.create()
    ran_after = False

    with warn_on_error(task):
        raise RuntimeError("cache miss")
    ran_after = True

    assert ran_after is True
    assert len(task.warnings) == 1
    warning = task.warnings[0]
    assert isinstance(warning, EnrichedError)
    assert str(warning) == "cache miss"
    assert warning.has_flag(ErrorFlags.WARNING)


def test_warn_on_error_without_task_suppresses() -> None:
    with warn_on_error():
        raise RuntimeError("ignored")


def test_warn_on_error_passes_clean_block() -> None:
    task = Task.create()

    with warn_on_error(task):
        value = 1 + 1

    assert value == 2
    assert task.warnings == []


def test_suppress_not_found_swallows_sentinel() -> None:
    row = "default"
    with suppress_not_found():
        raise NoResultFound("no row")

    assert row == "default"


def test_suppress_not_found_swallows_enriched_sentinel() -> None:
    with suppress_not_found():
        raise normalize(NoResultFound("no row"))


def test_suppress_not_found_reraises_other_errors_enriched() -> None:
    cause = ConnectionError("db unreachable")

    with pytest.raises(EnrichedError) as info:
        with suppress_not_found():
            raise cause

    assert info.value.cause is cause
    assert info.value.http_code == 0
