"""Build orchestration.

BuildOrchestrator.build() drives one compilation unit through the pipeline:

    1. resolve the resource argument to a readable file
    2. inject preambles, expand includes, hoist directives
    3. checksum the expanded source and derive the cache path
    4. build every //COMPILE module, depth-first in declaration order
    5. resolve dependencies and compose the classpath
    6. compile into the cache unless the jar is already there
    7. return classpath, jar and entry symbol

Classpath composition for a unit is

    inherited + [child classpath + child jar]... + raw jars + dependencies

with duplicate entries collapsed (first occurrence wins). Each child is built
with the running chain as its inherited classpath, so a compile module's
classpath comes ahead of its parent's own dependencies.

Everything is sequential: a later module's classpath depends on the modules
built before it.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, TextIO, Union

from .cache import ArtifactCache, checksum
from .config import RunnerConfig
from .dependencies import DependencyResolver
from .directives import DirectiveSet, SourceKind
from .errors import IncludeCycleError
from .includes import IncludeResolver
from .output import TimedLogger
from .preamble import PreambleInjector
from .resources import SourceResource, fetch_url, is_url, resolve_reference, resolve_resource
from .toolchain import CP_SEPARATOR, entry_symbol, generate_wrapper, join_classpath, normalize_class_name

logger = logging.getLogger(__name__)


class Compiler(Protocol):
    """The part of the toolchain the orchestrator needs."""

    def compile(self, compiler_options: Sequence[str], jar: Path, sources: Sequence[Path], classpath: Optional[str]) -> None: ...


@dataclass(frozen=True)
class BuildOptions:
    """Per-invocation build options.

    Interactive and packaging modes are handled by the caller after build()
    returns, so they can never leak into compile modules.

    Attributes:
        text_support: Prepend the text-processing preamble (--text)
    """

    text_support: bool = False


@dataclass
class BuildResult:
    """Outcome of building one compilation unit.

    Attributes:
        resource: The resolved resource
        classpath: Classpath the unit was compiled against ("" if none)
        artifact: Path of the compiled jar in the cache
        entry_symbol: Class to hand to the kotlin launcher
        directives: Directives merged over the include graph
        checksum: Checksum of the expanded source
        cached: True if the jar was already in the cache
        include_origins: Locations of every included resource
    """

    resource: SourceResource
    classpath: str
    artifact: Path
    entry_symbol: str
    directives: DirectiveSet
    checksum: str
    cached: bool
    include_origins: List[str] = field(default_factory=list)

    @property
    def classpath_with_artifact(self) -> str:
        """Classpath contribution of this unit to a parent build."""
        return join_classpath(self.classpath, str(self.artifact))

    @property
    def runtime_options(self) -> List[str]:
        return self.directives.runtime_options

    @property
    def compiler_options(self) -> List[str]:
        return self.directives.compiler_options


def compose_classpath(*parts: str) -> str:
    """Concatenate classpath strings, dropping empty and duplicate entries."""
    entries: List[str] = []
    for part in parts:
        for entry in part.split(CP_SEPARATOR) if part else ():
            if entry and entry not in entries:
                entries.append(entry)
    return CP_SEPARATOR.join(entries)


class BuildOrchestrator:
    """Recursive build driver."""

    def __init__(
        self,
        config: RunnerConfig,
        compiler: Compiler,
        resolver: Optional[DependencyResolver] = None,
        cache: Optional[ArtifactCache] = None,
        stdin: Optional[TextIO] = None,
    ):
        """
        Args:
            config: Runner configuration
            compiler: Toolchain used to compile cache misses
            resolver: Dependency resolver (default: Coursier on PATH)
            cache: Artifact cache (default: config.cache_dir)
            stdin: Stream used for "-" resources (default: sys.stdin)
        """
        self.config = config
        self.compiler = compiler
        self.resolver = resolver or DependencyResolver(config.resolver)
        self.cache = cache or ArtifactCache(config.cache_dir)
        self.stdin = stdin

    def build(
        self,
        resource: Union[str, SourceResource],
        options: Optional[BuildOptions] = None,
        inherited_classpath: str = "",
    ) -> BuildResult:
        """Build a resource and everything it declares.

        Args:
            resource: Resource argument (file, URL, "-", code) or a resolved resource
            options: Build options, applied to this unit and its compile modules
            inherited_classpath: Classpath accumulated by the caller

        Returns:
            BuildResult for the unit

        Raises:
            KscriptletError: Any pipeline failure, including one in a compile module
        """
        return self._build(resource, options or BuildOptions(), inherited_classpath, ())

    def _build(
        self,
        resource: Union[str, SourceResource],
        options: BuildOptions,
        inherited_classpath: str,
        building: tuple[str, ...],
    ) -> BuildResult:
        if isinstance(resource, str):
            resource = resolve_resource(resource, self.config, self.stdin)
        if resource.origin in building:
            raise IncludeCycleError(building[building.index(resource.origin):] + (resource.origin,))
        building = building + (resource.origin,)

        # Preambles and includes
        text = resource.read_text()
        if options.text_support or self.config.custom_preamble:
            injector = PreambleInjector(self.config.temp_dir, self.config.custom_preamble)
            text = injector.inject(text, text_support=options.text_support)
        expansion = IncludeResolver(self.config.cache_dir, resource.kind).resolve(text, resource.include_context, resource.origin)
        directives = expansion.directives

        source_checksum = checksum(expansion.text)
        artifact = self.cache.artifact_path(resource.base_name, source_checksum)

        # Compile modules, depth-first in declaration order
        chain = inherited_classpath
        for reference in directives.compiles:
            location = resolve_reference(reference.target, reference.context)
            logger.debug(f"Building compile module {location} for {resource.base_name}")
            child = self._build(location, options, chain, building)
            chain = child.classpath_with_artifact

        jars = [self._resolve_jar(reference.target, reference.context) for reference in directives.jars]
        dependency_classpath = self.resolver.resolve(directives.dependencies, directives.repositories)
        classpath = compose_classpath(chain, *jars, dependency_classpath)

        class_name = normalize_class_name(resource.base_name)
        entry = entry_symbol(resource.kind, class_name, directives)

        cached = self.cache.lookup(artifact)
        if not cached:
            self._compile(resource, expansion.text, class_name, directives, classpath, artifact)

        return BuildResult(
            resource=resource,
            classpath=classpath,
            artifact=artifact,
            entry_symbol=entry,
            directives=directives,
            checksum=source_checksum,
            cached=cached,
            include_origins=expansion.include_origins,
        )

    def _resolve_jar(self, target: str, context: str) -> str:
        location = resolve_reference(target, context)
        if is_url(location):
            return str(fetch_url(location, self.config.cache_dir))
        return location

    def _compile(
        self,
        resource: SourceResource,
        text: str,
        class_name: str,
        directives: DirectiveSet,
        classpath: str,
        artifact: Path,
    ) -> None:
        # kotlinc derives the script class from the file name, so the expanded
        # source is written under the resource's base name
        work_dir = Path(tempfile.mkdtemp(prefix="compile_", dir=self.config.temp_dir))
        try:
            source_file = work_dir / f"{resource.base_name}{resource.kind.extension}"
            source_file.write_text(text, encoding="utf-8")
            sources = [source_file]
            if resource.kind == SourceKind.SCRIPT:
                sources.append(generate_wrapper(class_name, directives.package, work_dir))

            with TimedLogger(f"Compiling {source_file.name}"):
                with self.cache.install(artifact) as staging:
                    self.compiler.compile(directives.compiler_options, staging, sources, classpath or None)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
