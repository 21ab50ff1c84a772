"""
errors subpackage: diagnostic enrichment of exceptions + the ambient logging stack.

Key primitives
--------------
- EnrichedError: an exception wrapping one cause with HTTP code, user messages,
  log context, stack frames and flags
- normalize() / normalize_with_stack_trace(): idempotent enrichment
- error_to_record() / errors_to_records(): structured renderings for logs
- ErrctxConfig: global config (log paths, JSONL, alerting, flag policy)
- configure_logging(): console + file logging, optional JSONL event logger
- AlertReporter: fire-and-forget forwarding of recovered panics
- warn_on_error() / suppress_not_found() / raise_on_error(): one-line guards
"""

from .types import ErrorFlags, FlagPolicy, InvalidWrapError, Panic, PanicError, panic
from .enriched import (
    EnrichedError,
    is_not_found,
    new_error,
    new_http_error,
    normalize,
    normalize_with_stack_trace,
    register_not_found,
    set_flag_policy,
)
from .stack import parse_stack_dump
from .serialize import error_to_record, errors_to_records
from .config import ConfigError, ErrctxConfig, configure_errors, load_config
from .logging import configure_logging, JsonlEventLogger
from .reporter import AlertReporter
from .guards import raise_on_error, suppress_not_found, warn_on_error

__all__ = [
    "AlertReporter",
    "ConfigError",
    "EnrichedError",
    "ErrctxConfig",
    "ErrorFlags",
    "FlagPolicy",
    "InvalidWrapError",
    "JsonlEventLogger",
    "Panic",
    "PanicError",
    "configure_errors",
    "configure_logging",
    "error_to_record",
    "errors_to_records",
    "is_not_found",
    "load_config",
    "new_error",
    "new_http_error",
    "normalize",
    "normalize_with_stack_trace",
    "panic",
    "parse_stack_dump",
    "raise_on_error",
    "register_not_found",
    "set_flag_policy",
    "suppress_not_found",
    "warn_on_error",
]
