"""kscriptlet - Run Kotlin scripts with embedded build directives.

This package turns a script file, URL, stdin, a process-substitution handle
or an inline Kotlin snippet into a cached, runnable jar:

- Directive extraction (//DEPS, //INCLUDE, //COMPILE, //JAR, ...)
- Recursive include expansion with cycle detection
- Dependency resolution through an external coordinate resolver
- Content-addressed jar cache
- Recursive compilation of auxiliary compile modules

Example:
    >>> from kscriptlet import BuildOrchestrator, RunnerConfig
    >>> from kscriptlet.toolchain import KotlinToolchain
    >>> config = RunnerConfig.from_environment()
    >>> toolchain = KotlinToolchain.locate(config)
    >>> result = BuildOrchestrator(config, toolchain).build("println(1+1)")
    >>> result.entry_symbol
    'Main_Scriptlet_...'
"""

__version__ = "2.6.0"

from kscriptlet.config import RunnerConfig
from kscriptlet.errors import (
    CompileError,
    ConfigurationError,
    DependencyResolutionError,
    DirectiveError,
    IncludeCycleError,
    KscriptletError,
    ResourceError,
)
from kscriptlet.orchestrator import BuildOptions, BuildOrchestrator, BuildResult

__all__ = [
    "BuildOptions",
    "BuildOrchestrator",
    "BuildResult",
    "CompileError",
    "ConfigurationError",
    "DependencyResolutionError",
    "DirectiveError",
    "IncludeCycleError",
    "KscriptletError",
    "ResourceError",
    "RunnerConfig",
    "__version__",
]
