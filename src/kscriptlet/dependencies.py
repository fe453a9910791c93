"""Dependency resolution.

kscriptlet does not resolve Maven coordinates itself. It translates the
declared coordinates and repositories into a call of an external resolver
(Coursier) and returns the classpath the resolver prints:

    cs fetch --classpath -r https://jitpack.io com.github.foo:bar:1.0

Any failure is fatal and carries the resolver's own diagnostic verbatim.
There is no retry and no fallback repository; caching of downloaded
artifacts is the resolver's business.
"""

import logging
import shutil
import subprocess
from typing import List, Optional, Sequence

from .directives import Repository
from .errors import DependencyResolutionError
from .output import TimedLogger
from .subprocess_utils import safe_run

logger = logging.getLogger(__name__)

RESOLVER_CANDIDATES = ("cs", "coursier")


def find_resolver(override: Optional[str] = None) -> Optional[str]:
    """Locate the resolver executable.

    Args:
        override: Explicit executable (KSCRIPT_RESOLVER)

    Returns:
        Path or name of the executable, or None if none was found
    """
    if override:
        return override
    for candidate in RESOLVER_CANDIDATES:
        found = shutil.which(candidate)
        if found:
            return found
    return None


class DependencyResolver:
    """Turns coordinates and repositories into a classpath string."""

    def __init__(self, executable: Optional[str] = None, timeout: Optional[float] = None):
        """
        Args:
            executable: Resolver executable (default: cs/coursier on PATH)
            timeout: Optional timeout in seconds for one resolution
        """
        self.executable = executable
        self.timeout = timeout

    def build_command(self, executable: str, dependencies: Sequence[str], repositories: Sequence[Repository]) -> List[str]:
        cmd = [executable, "fetch", "--classpath"]
        for repository in repositories:
            cmd.extend(["-r", repository.url])
        cmd.extend(dependencies)
        return cmd

    def resolve(self, dependencies: Sequence[str], repositories: Sequence[Repository] = ()) -> str:
        """Resolve coordinates into a classpath.

        Args:
            dependencies: Artifact coordinates
            repositories: Additional repositories

        Returns:
            Classpath in the order emitted by the resolver ("" if there are no
            dependencies)

        Raises:
            DependencyResolutionError: If the resolver is missing, cannot be
                started, times out or exits non-zero
        """
        if not dependencies:
            return ""

        executable = find_resolver(self.executable)
        if executable is None:
            raise DependencyResolutionError(
                "No dependency resolver found. Install Coursier (https://get-coursier.io) or set KSCRIPT_RESOLVER."
            )

        cmd = self.build_command(executable, dependencies, repositories)
        logger.debug(f"Running resolver: {' '.join(cmd)}")

        with TimedLogger(f"Resolving {', '.join(dependencies)}"):
            try:
                result = safe_run(cmd, capture_output=True, text=True, timeout=self.timeout)
            except subprocess.TimeoutExpired as e:
                raise DependencyResolutionError(f"Dependency resolution timed out after {self.timeout}s") from e
            except OSError as e:
                raise DependencyResolutionError(f"Failed to run dependency resolver '{executable}': {e}") from e

            if result.returncode != 0:
                raise DependencyResolutionError(
                    f"Failed to resolve dependencies: {', '.join(dependencies)}",
                    diagnostic=result.stderr or result.stdout or "",
                )

        return result.stdout.strip()
