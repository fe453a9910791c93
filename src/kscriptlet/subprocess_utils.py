"""Subprocess utilities for platform-safe process execution.

Two flavours are needed:

- safe_run: captured tool invocations (resolver, compiler). stdin is
  redirected to DEVNULL so the tool cannot steal input meant for the
  script.
- run_inherited: the user's program and the interactive shell. stdin,
  stdout and stderr are inherited so the program behaves exactly as if it
  was launched directly.
"""

import subprocess
import sys
from typing import Any, Mapping, Optional


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _apply_creation_flags(kwargs: dict[str, Any]) -> None:
    default_flags = get_subprocess_creation_flags()
    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags


def safe_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run for a captured tool invocation.

    Automatically applies:
    - CREATE_NO_WINDOW on Windows (prevents console window)
    - stdin=DEVNULL unless stdin is given explicitly

    Args:
        cmd: Command and arguments (same as subprocess.run)
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result from subprocess.run

    Raises:
        OSError: If the executable cannot be launched
    """
    _apply_creation_flags(kwargs)
    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL
    return subprocess.run(cmd, **kwargs)


def run_inherited(cmd: list[str], env: Optional[Mapping[str, str]] = None) -> int:
    """Run a program attached to the current terminal and return its exit code.

    Args:
        cmd: Command and arguments
        env: Optional environment for the child process

    Returns:
        The child's exit code, propagated unchanged

    Raises:
        OSError: If the executable cannot be launched
    """
    kwargs: dict[str, Any] = {}
    if env is not None:
        kwargs["env"] = dict(env)
    # The user's program owns the console; no CREATE_NO_WINDOW here
    return subprocess.call(cmd, **kwargs)
