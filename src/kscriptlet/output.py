"""
Status output for kscriptlet.

Status lines go to stderr so that a script's own stdout stays clean for
piping. Each line starts with the time since launch (MM:SS.cc), which shows
at a glance whether a run was slow in dependency resolution or in kotlinc.

Example output:
    00:00.02 Resolving com.squareup.okhttp3:okhttp:4.12.0...
    00:01.87       Done (1.85s)
    00:01.88 Compiling hello.kts...
    00:06.40       Done (4.52s)

Usage:
    from kscriptlet.output import log, set_verbose

    set_verbose(False)   # --silent
    log("Cleaning up cache...")
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_stream: Optional[TextIO] = None
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Reset the launch time used for timestamps.

    The CLI calls this first thing; library users that never call it get a
    timer started by the first status line.

    Args:
        output_stream: Write status lines here instead of sys.stderr
    """
    global _start_time, _stream
    _start_time = time.time()
    if output_stream is not None:
        _stream = output_stream


def set_verbose(verbose: bool) -> None:
    """Enable or disable status lines (warnings are always written)."""
    global _verbose
    _verbose = verbose


def format_timestamp() -> str:
    """Time since launch as MM:SS.cc."""
    if _start_time is None:
        init_timer()
    elapsed = time.time() - _start_time  # type: ignore
    return f"{int(elapsed // 60):02d}:{elapsed % 60:05.2f}"


def _write(message: str) -> None:
    # sys.stderr is looked up per call so pytest's capsys sees the output
    stream = _stream if _stream is not None else sys.stderr
    stream.write(f"{format_timestamp()} {message}\n")
    stream.flush()


def log(message: str) -> None:
    """Write a status line unless --silent is active."""
    if _verbose:
        _write(message)


def log_detail(message: str, indent: int = 6) -> None:
    """Write an indented status line belonging to the previous one."""
    if _verbose:
        _write(f"{' ' * indent}{message}")


def log_warning(message: str) -> None:
    """Write a warning. Not affected by --silent."""
    _write(f"WARNING: {message}")


class TimedLogger:
    """
    Announce a slow step and report how long it took.

    Usage:
        with TimedLogger("Compiling hello.kts"):
            toolchain.compile(...)

    "Done (x.xxs)" is only written when the block finishes without an
    exception; on failure the caller reports the error instead.
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.started = 0.0

    def __enter__(self) -> "TimedLogger":
        self.started = time.time()
        log(f"{self.operation}...")
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            log_detail(f"Done ({time.time() - self.started:.2f}s)")
