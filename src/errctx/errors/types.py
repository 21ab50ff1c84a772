from __future__ import annotations

from enum import Enum, IntFlag
from typing import Any


class ErrorFlags(IntFlag):
    """Classification bits carried by an enriched error."""
    NONE = 0
    WARNING = 1


class FlagPolicy(str, Enum):
    """
    How ``EnrichedError.add_flag`` combines a flag with the existing bits.

    SET
        Bitwise OR. The flag is set regardless of the previous bits.
    INTERSECT
        Bitwise AND, the historical behavior. Flags only survive when they were
        already present, so starting from no flags nothing ever sticks.
    """
    SET = "set"
    INTERSECT = "intersect"


class InvalidWrapError(RuntimeError):
    """Raised when an enriched error is asked to wrap something it must not."""


class Panic(Exception):
    """
    Carries an arbitrary payload out of a guarded callable.

    Usage example
    -------------
        raise Panic({"reason": "unreachable"})
    """

    def __init__(self, payload: Any) -> None:
        super().__init__(payload)
        self.payload = payload


class PanicError(RuntimeError):
    """Synthesized cause for a panic whose payload is not an exception."""


def panic(payload: Any) -> None:
    """Raise ``payload`` as a panic. Exceptions are raised as-is."""
    if isinstance(payload, BaseException):
        raise payload
    raise Panic(payload)


def describe(value: Any) -> str:
    """``str(value)``, falling back to the default object repr if that raises."""
    try:
        return str(value)
    except Exception:
        return object.__repr__(value)
