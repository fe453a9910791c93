"""Content-addressed jar cache.

The cache is one flat directory. A compiled jar is stored under the base
name of its script plus the checksum of the fully expanded source:

    ~/.kscript/
        hello.4d17bc247ef03305.jar
        scriptlet.9f2c81d0a1b3e4f5.jar      (base name already holds the checksum)
        url_cache.0a1b2c3d4e5f6071.kts
        self_update.sh

An existing file at the expected path is a hit and is trusted as-is; there is
no timestamp or integrity check. Jars are compiled to a staging file in the
same directory and renamed into place only after compilation succeeded, so
concurrent builds of the same script at worst do duplicate work and a reader
never sees a partially written jar. The only eviction is clear().
"""

import hashlib
import logging
import os
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import CompileError

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".jar"
CHECKSUM_LENGTH = 16


def checksum(text: str) -> str:
    """Checksum of source text: first 16 hex digits of its SHA-256.

    Args:
        text: Text to hash (encoded as UTF-8)

    Returns:
        Hex digest prefix
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:CHECKSUM_LENGTH]


class ArtifactCache:
    """Flat directory of compiled jars keyed by expanded-source checksum."""

    def __init__(self, cache_dir: Path):
        """Initialize the cache.

        Args:
            cache_dir: Cache directory (created on first write)
        """
        self.cache_dir = cache_dir

    def artifact_path(self, base_name: str, source_checksum: str) -> Path:
        """Compute the cache path for a compiled unit.

        The checksum suffix is omitted when the base name already ends with it
        (generated temp scripts are named after their own checksum).

        Args:
            base_name: File name of the source without extension
            source_checksum: Checksum of the expanded source

        Returns:
            Path of the jar inside the cache directory
        """
        if base_name.endswith(source_checksum):
            return self.cache_dir / f"{base_name}{ARTIFACT_SUFFIX}"
        return self.cache_dir / f"{base_name}.{source_checksum}{ARTIFACT_SUFFIX}"

    def lookup(self, artifact: Path) -> bool:
        """Return True if the artifact is present (trusted unconditionally)."""
        hit = artifact.is_file()
        logger.debug(f"Cache {'hit' if hit else 'miss'}: {artifact}")
        return hit

    @contextmanager
    def install(self, artifact: Path) -> Iterator[Path]:
        """Stage a new artifact and publish it atomically.

        Usage:
            with cache.install(jar) as staging:
                toolchain.compile(..., jar=staging, ...)

        The staging file is renamed onto ``artifact`` only if the block exits
        normally and the staging file exists. On any error it is removed and
        the exception propagates.

        Args:
            artifact: Final cache path

        Yields:
            Staging path in the same directory (same file system, so the
            final rename is atomic)
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        # Keep the .jar suffix: kotlinc only packages a jar for -d *.jar
        staging = artifact.with_name(f".{artifact.stem}.{uuid.uuid4().hex[:8]}.staging{ARTIFACT_SUFFIX}")
        try:
            yield staging
            if not staging.is_file():
                raise CompileError(f"Compiler produced no artifact at {staging}", returncode=0)
            os.replace(staging, artifact)
            logger.debug(f"Published {artifact}")
        finally:
            staging.unlink(missing_ok=True)

    def clear(self) -> int:
        """Delete every file directly inside the cache directory.

        Subdirectories and anything outside the cache directory are left
        untouched.

        Returns:
            Number of files deleted
        """
        if not self.cache_dir.is_dir():
            return 0
        deleted = 0
        for entry in self.cache_dir.iterdir():
            if entry.is_file() or entry.is_symlink():
                entry.unlink()
                deleted += 1
        logger.debug(f"Cleared {deleted} files from {self.cache_dir}")
        return deleted
