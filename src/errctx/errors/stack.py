"""
Best-effort stack frame capture for enriched errors.

Frames are rendered as ``"<function> @ <file>:<line>"``. Frames living under
vendored dependencies or under this package are dropped, they only add noise
to operator logs. Parsing never raises: malformed input truncates the result.
"""

from __future__ import annotations

import inspect
import os
import re
import traceback
from types import TracebackType
from typing import Iterable, List, Optional, Sequence, Tuple, Union

TRACEBACK_HEADER = "Traceback (most recent call last):"

# directory holding the errctx package sources, with a trailing slash
PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__))).replace("\\", "/") + "/"

DEFAULT_EXCLUDE_MARKERS: Tuple[str, ...] = ("/site-packages/", "/dist-packages/", PACKAGE_DIR)

_FRAME_RE = re.compile(r'^\s*File "(?P<file>[^"]+)", line (?P<line>\d+), in (?P<func>.+?)\s*$')

StackSource = Union[str, Sequence[traceback.FrameSummary], None]

_exclude_markers: Tuple[str, ...] = DEFAULT_EXCLUDE_MARKERS


def set_exclude_markers(markers: Iterable[str]) -> None:
    """Replace the process-wide path markers used to drop frames."""
    global _exclude_markers
    _exclude_markers = tuple(m for m in markers if m)


def get_exclude_markers() -> Tuple[str, ...]:
    return _exclude_markers


def is_excluded(path: str, markers: Optional[Sequence[str]] = None) -> bool:
    """Return True if ``path`` belongs to a vendored or internal location."""
    normalized = path.replace("\\", "/")
    return any(marker in normalized for marker in (markers if markers is not None else _exclude_markers))


def format_frame(func: str, path: str, lineno: object) -> str:
    return f"{func} @ {path}:{lineno}"


def parse_stack_dump(text: str, markers: Optional[Sequence[str]] = None) -> List[str]:
    """
    Parse a text dump in the standard traceback layout.

    The dump must start with the ``Traceback (most recent call last):`` header,
    otherwise nothing is returned. Each ``File "...", line N, in func`` line is
    a frame; indented source and caret lines after it are skipped. Parsing
    stops at the first line of any other shape (usually the exception line).

    Usage example
    -------------
        frames = parse_stack_dump("".join(traceback.format_exception(exc)))
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != TRACEBACK_HEADER:
        return []

    frames: List[str] = []
    for raw in lines[1:]:
        match = _FRAME_RE.match(raw)
        if match is None:
            # source line or caret marker belonging to the previous frame
            if raw.startswith("    ") and raw.strip():
                continue
            break
        path = match.group("file")
        if is_excluded(path, markers):
            continue
        frames.append(format_frame(match.group("func"), path, match.group("line")))
    return frames


def frames_from_summary(
    summary: Iterable[traceback.FrameSummary], markers: Optional[Sequence[str]] = None
) -> List[str]:
    """Render already-extracted frames, dropping excluded paths."""
    return [
        format_frame(fs.name, fs.filename, fs.lineno)
        for fs in summary
        if not is_excluded(fs.filename, markers)
    ]


def capture_stack(
    tb: Optional[TracebackType] = None, markers: Optional[Sequence[str]] = None
) -> List[str]:
    """
    Capture the current call stack, followed by the frames of ``tb`` if given.

    Order is outermost call first, matching the standard traceback layout.
    When called while handling ``tb``, the frame that caught the exception is
    both on the current stack and at the head of ``tb``; it is listed once.
    """
    frames = list(traceback.walk_stack(inspect.currentframe().f_back))
    frames.reverse()
    if tb is not None:
        for i, (frame, _) in enumerate(frames):
            if frame is tb.tb_frame:
                del frames[i:]
                break
        frames.extend(traceback.walk_tb(tb))
    summary = traceback.StackSummary.extract(frames, lookup_lines=False)
    return frames_from_summary(summary, markers)


def collect_frames(stack: StackSource, tb: Optional[TracebackType] = None) -> List[str]:
    """Dispatch on the kind of stack source supplied by the caller."""
    if stack is None:
        return capture_stack(tb)
    if isinstance(stack, str):
        return parse_stack_dump(stack)
    return frames_from_summary(stack)
