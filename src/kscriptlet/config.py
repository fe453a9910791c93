"""Runner configuration.

All process-wide state (cache directory, scratch directory, environment
overrides) lives in one RunnerConfig value that is built once at process
start and passed explicitly into every component. Nothing in the pipeline
reads os.environ on its own.

Environment variables:
    KSCRIPT_CACHE_DIR: Cache directory (default: ~/.kscript)
    CUSTOM_KSCRIPT_PREAMBLE: Kotlin code prepended to every script
    CUSTOM_KSCRIPT_NAME: Display name used in usage text (default: kscriptlet)
    KOTLIN_HOME: Kotlin installation directory
    KOTLIN_OPTS: Runtime options passed to the kotlin launcher
    KSCRIPT_RESOLVER: Dependency resolver executable (default: cs/coursier on PATH)
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_SELF_NAME = "kscriptlet"


def get_cache_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Get cache root directory respecting KSCRIPT_CACHE_DIR.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Path to cache root directory
    """
    env = os.environ if environ is None else environ
    cache_env = env.get("KSCRIPT_CACHE_DIR")
    if cache_env:
        return Path(cache_env).expanduser().resolve()
    return Path.home() / ".kscript"


class ScratchDirectory:
    """Process-scoped temporary directory, created on first use.

    Regular script files never need it, so nothing is created on disk until
    a component actually asks for the path.
    """

    def __init__(self, parent: Optional[Path] = None):
        self._parent = parent
        self._path: Optional[Path] = None

    @property
    def path(self) -> Path:
        if self._path is None:
            self._path = Path(tempfile.mkdtemp(prefix="kscriptlet_", dir=self._parent))
            logger.debug(f"Created scratch directory {self._path}")
        return self._path

    @property
    def created(self) -> bool:
        return self._path is not None

    def cleanup(self) -> None:
        """Remove the directory and everything in it, if it was created."""
        if self._path is not None:
            shutil.rmtree(self._path, ignore_errors=True)
            logger.debug(f"Removed scratch directory {self._path}")
            self._path = None

    def __enter__(self) -> "ScratchDirectory":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.cleanup()


@dataclass(frozen=True)
class RunnerConfig:
    """Process-wide configuration.

    Attributes:
        cache_dir: Flat directory holding compiled jars and URL downloads
        custom_preamble: Kotlin code prepended to every script, if set
        self_name: Display name used in usage text and messages
        kotlin_home: Kotlin installation directory, if known from the environment
        kotlin_opts: Runtime options passed to the kotlin launcher, if set
        resolver: Dependency resolver executable override, if set
        scratch: Process-scoped temporary directory
    """

    cache_dir: Path
    custom_preamble: Optional[str] = None
    self_name: str = DEFAULT_SELF_NAME
    kotlin_home: Optional[str] = None
    kotlin_opts: Optional[str] = None
    resolver: Optional[str] = None
    scratch: ScratchDirectory = field(default_factory=ScratchDirectory, compare=False, repr=False)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "RunnerConfig":
        """Build the configuration from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Returns:
            RunnerConfig for this process
        """
        env = os.environ if environ is None else environ
        return cls(
            cache_dir=get_cache_root(env),
            custom_preamble=env.get("CUSTOM_KSCRIPT_PREAMBLE") or None,
            self_name=env.get("CUSTOM_KSCRIPT_NAME") or DEFAULT_SELF_NAME,
            kotlin_home=env.get("KOTLIN_HOME") or None,
            kotlin_opts=env.get("KOTLIN_OPTS") or None,
            resolver=env.get("KSCRIPT_RESOLVER") or None,
        )

    @property
    def temp_dir(self) -> Path:
        """Process-scoped temporary directory (created lazily)."""
        return self.scratch.path

    def ensure_cache_dir(self) -> Path:
        """Create the cache directory if it does not yet exist."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir
