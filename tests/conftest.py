"""Pytest configuration and shared fixtures for kscriptlet tests.

Most tests run the real pipeline against a temporary cache directory with a
fake compiler and a fake dependency resolver, so no Kotlin installation or
network access is needed. Tests that need kotlinc live in tests/integration
and are skipped when it is missing.
"""

import os
import sys
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from kscriptlet import output
from kscriptlet.config import RunnerConfig, ScratchDirectory
from kscriptlet.directives import Repository
from kscriptlet.errors import CompileError


class FakeCompiler:
    """Records compile calls and writes a small jar listing the sources."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.calls: List[Dict] = []
        self.fail_with = fail_with

    def compile(self, compiler_options: Sequence[str], jar: Path, sources: Sequence[Path], classpath: Optional[str]) -> None:
        self.calls.append(
            {
                "compiler_options": list(compiler_options),
                "jar": jar,
                "sources": [source.name for source in sources],
                "texts": [source.read_text(encoding="utf-8") for source in sources],
                "classpath": classpath,
            }
        )
        if self.fail_with is not None:
            # Leave a partial file behind like a crashing compiler would
            jar.write_bytes(b"partial")
            raise self.fail_with
        with zipfile.ZipFile(jar, "w") as archive:
            for source in sources:
                archive.writestr(source.name, source.read_text(encoding="utf-8"))


class FakeResolver:
    """Maps each coordinate to /repo/<artifact>-<version>.jar."""

    def __init__(self, separator: str = os.pathsep):
        self.calls: List[tuple[List[str], List[Repository]]] = []
        self.separator = separator

    def resolve(self, dependencies: Sequence[str], repositories: Sequence[Repository] = ()) -> str:
        self.calls.append((list(dependencies), list(repositories)))
        jars = []
        for coordinate in dependencies:
            parts = coordinate.split(":")
            jars.append(f"/repo/{parts[1]}-{parts[-1]}.jar")
        return self.separator.join(jars)


@pytest.fixture(autouse=True)
def _restore_output():  # noqa: PT004
    """Reset global output state and make sure stdio is usable after each test."""
    output.set_verbose(True)
    yield
    output.set_verbose(True)
    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture
def config(tmp_path: Path) -> RunnerConfig:
    """RunnerConfig with cache and scratch directories under tmp_path."""
    scratch_parent = tmp_path / "scratch"
    scratch_parent.mkdir()
    cfg = RunnerConfig(cache_dir=tmp_path / "cache", scratch=ScratchDirectory(scratch_parent))
    yield cfg
    cfg.scratch.cleanup()


@pytest.fixture
def compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def failing_compiler() -> FakeCompiler:
    """Compiler that leaves a partial jar behind and raises CompileError."""
    return FakeCompiler(fail_with=CompileError("Compilation failed", returncode=1, output="error: expecting ')'"))
