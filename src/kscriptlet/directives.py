"""Build directive extraction.

Directives are build instructions embedded in script comments or file
annotations. They are consumed by kscriptlet, never by the compiler.

Supported markers (only recognized as the first token of a line):

    //DEPS com.squareup.okhttp3:okhttp:4.12.0, org.slf4j:slf4j-api:2.0.9
    //REPOS jitpack=https://jitpack.io
    //INCLUDE util.kt
    //COMPILE ../shared/Model.kt
    //JAR lib/legacy.jar
    //KOTLIN_OPTS -J-Xmx2g
    //COMPILER_OPTS -jvm-target 11
    //ENTRY MainKt

    @file:DependsOn("com.squareup.okhttp3:okhttp:4.12.0")
    @file:MavenRepository("jitpack", "https://jitpack.io")
    @file:Include("util.kt")
    @file:Compile("../shared/Model.kt")
    @file:Jar("lib/legacy.jar")
    @file:KotlinOpts("-J-Xmx2g")
    @file:CompilerOpts("-jvm-target 11")
    @file:EntryPoint("MainKt")

Parsing happens in two steps. tokenize() never raises: it turns every
recognized line into a DirectiveToken and skips everything else. The reduce
step in parse_directives() validates the tokens and builds the DirectiveSet.
"""

import logging
import re
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .errors import DirectiveError

logger = logging.getLogger(__name__)


class SourceKind(Enum):
    """Kind of Kotlin source, derived from the file extension."""

    SCRIPT = "kts"
    CLASS = "kt"

    @classmethod
    def from_path(cls, path: Path) -> "SourceKind":
        return cls.CLASS if path.suffix == ".kt" else cls.SCRIPT

    @property
    def extension(self) -> str:
        return f".{self.value}"


class TokenKind(Enum):
    """Kind of a recognized directive line."""

    DEPENDENCIES = "dependencies"
    REPOSITORY = "repository"
    INCLUDE = "include"
    COMPILE = "compile"
    JAR = "jar"
    RUNTIME_OPTIONS = "runtime_options"
    COMPILER_OPTIONS = "compiler_options"
    ENTRY_POINT = "entry_point"
    PACKAGE = "package"


@dataclass(frozen=True)
class DirectiveToken:
    """A single recognized directive line.

    Attributes:
        kind: Directive kind
        values: Raw, unvalidated values
        line_number: 1-based line number in the source text
    """

    kind: TokenKind
    values: tuple[str, ...]
    line_number: int


@dataclass(frozen=True)
class Repository:
    """A named artifact repository."""

    id: str
    url: str

    def __str__(self) -> str:
        return f"{self.id}={self.url}"


@dataclass(frozen=True)
class LocatedReference:
    """A path or URL together with the include context it was declared in.

    Attributes:
        target: The reference exactly as written in the directive
        context: Include context of the declaring resource (directory or URL)
    """

    target: str
    context: str


@dataclass
class DirectiveSet:
    """Validated build directives of a source unit.

    Attributes:
        dependencies: Artifact coordinates (first-seen order, no duplicates)
        repositories: Artifact repositories
        includes: Include targets
        compiles: Compile-module targets
        jars: Raw archive references
        runtime_options: Tokens passed to the kotlin launcher
        compiler_options: Tokens passed to kotlinc
        entry_point: Explicit entry class (class-style sources only)
        package: Package declared by the source, if any
    """

    dependencies: List[str] = field(default_factory=list)
    repositories: List[Repository] = field(default_factory=list)
    includes: List[LocatedReference] = field(default_factory=list)
    compiles: List[LocatedReference] = field(default_factory=list)
    jars: List[LocatedReference] = field(default_factory=list)
    runtime_options: List[str] = field(default_factory=list)
    compiler_options: List[str] = field(default_factory=list)
    entry_point: Optional[str] = None
    package: Optional[str] = None

    def merge(self, other: "DirectiveSet") -> None:
        """Union another set into this one, keeping first-seen order.

        Raises:
            DirectiveError: If both sets declare different entry points
        """
        _extend_unique(self.dependencies, other.dependencies)
        _extend_unique(self.repositories, other.repositories)
        _extend_unique(self.includes, other.includes)
        _extend_unique(self.compiles, other.compiles)
        _extend_unique(self.jars, other.jars)
        # Option tokens are positional ("-jvm-target 11"), so no dedup here
        self.runtime_options.extend(other.runtime_options)
        self.compiler_options.extend(other.compiler_options)
        if other.entry_point is not None:
            if self.entry_point is not None and self.entry_point != other.entry_point:
                raise DirectiveError(f"Conflicting entry points '{self.entry_point}' and '{other.entry_point}'")
            self.entry_point = other.entry_point
        if self.package is None:
            self.package = other.package


def _extend_unique(target: list, items: Iterable) -> None:
    for item in items:
        if item not in target:
            target.append(item)


_COMMENT_MARKERS = {
    "DEPS": TokenKind.DEPENDENCIES,
    "REPOS": TokenKind.REPOSITORY,
    "INCLUDE": TokenKind.INCLUDE,
    "COMPILE": TokenKind.COMPILE,
    "JAR": TokenKind.JAR,
    "KOTLIN_OPTS": TokenKind.RUNTIME_OPTIONS,
    "COMPILER_OPTS": TokenKind.COMPILER_OPTIONS,
    "ENTRY": TokenKind.ENTRY_POINT,
}

_ANNOTATIONS = {
    "DependsOn": TokenKind.DEPENDENCIES,
    "DependsOnMaven": TokenKind.DEPENDENCIES,
    "MavenRepository": TokenKind.REPOSITORY,
    "Include": TokenKind.INCLUDE,
    "Compile": TokenKind.COMPILE,
    "Jar": TokenKind.JAR,
    "KotlinOpts": TokenKind.RUNTIME_OPTIONS,
    "CompilerOpts": TokenKind.COMPILER_OPTIONS,
    "EntryPoint": TokenKind.ENTRY_POINT,
}

_COMMENT_RE = re.compile(r"^\s*//([A-Z_]+)(?:\s+(.*?))?\s*$")
_ANNOTATION_RE = re.compile(r"^\s*@file\s*:\s*(\w+)\s*\((.*)\)\s*$")
_STRING_LITERAL_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')
_PACKAGE_RE = re.compile(r"^\s*package\s+([A-Za-z_][\w.]*)")
_LIST_SEPARATOR_RE = re.compile(r"[,;\s]+")
_COORDINATE_RE = re.compile(r"^[^\s:@]+(?::[^\s:@]*){2,4}(?:@[^\s:@]+)?$")


def _split_list(text: str) -> tuple[str, ...]:
    return tuple(part for part in _LIST_SEPARATOR_RE.split(text) if part)


def _split_options(text: str) -> tuple[str, ...]:
    try:
        return tuple(shlex.split(text))
    except ValueError:
        # Unbalanced quotes: fall back to whitespace splitting
        return tuple(text.split())


def _comment_values(kind: TokenKind, rest: str) -> tuple[str, ...]:
    if kind in (TokenKind.DEPENDENCIES, TokenKind.REPOSITORY):
        return _split_list(rest)
    if kind in (TokenKind.RUNTIME_OPTIONS, TokenKind.COMPILER_OPTIONS):
        return _split_options(rest)
    return (rest.strip(),) if rest.strip() else ()


def _annotation_values(kind: TokenKind, arguments: str) -> tuple[str, ...]:
    literals = [match.group(1) for match in _STRING_LITERAL_RE.finditer(arguments)]
    if kind == TokenKind.REPOSITORY:
        if len(literals) >= 2:
            return (f"{literals[0]}={literals[1]}",)
        return tuple(literals)
    if kind in (TokenKind.RUNTIME_OPTIONS, TokenKind.COMPILER_OPTIONS):
        values: list[str] = []
        for literal in literals:
            values.extend(_split_options(literal))
        return tuple(values)
    if kind == TokenKind.DEPENDENCIES:
        values = []
        for literal in literals:
            values.extend(_split_list(literal))
        return tuple(values)
    return tuple(literal.strip() for literal in literals if literal.strip())


def tokenize_line(line: str, line_number: int) -> Optional[DirectiveToken]:
    """Recognize a single line. Never raises.

    Args:
        line: One line of source text
        line_number: 1-based line number

    Returns:
        DirectiveToken, or None if the line is not a recognized directive
    """
    match = _COMMENT_RE.match(line)
    if match:
        kind = _COMMENT_MARKERS.get(match.group(1))
        if kind is None:
            return None
        return DirectiveToken(kind, _comment_values(kind, match.group(2) or ""), line_number)

    match = _ANNOTATION_RE.match(line)
    if match:
        kind = _ANNOTATIONS.get(match.group(1))
        if kind is None:
            return None
        return DirectiveToken(kind, _annotation_values(kind, match.group(2)), line_number)

    match = _PACKAGE_RE.match(line)
    if match:
        return DirectiveToken(TokenKind.PACKAGE, (match.group(1),), line_number)

    return None


def tokenize(text: str) -> Iterator[DirectiveToken]:
    """Yield a token for every recognized directive line in text. Never raises."""
    for line_number, line in enumerate(text.splitlines(), start=1):
        token = tokenize_line(line, line_number)
        if token is not None:
            yield token


def is_valid_coordinate(coordinate: str) -> bool:
    """Check a group:artifact[:type[:classifier]]:version[@type] coordinate."""
    if not _COORDINATE_RE.match(coordinate):
        return False
    base = coordinate.split("@", 1)[0]
    return all(base.split(":"))


def parse_repository(value: str, line_number: Optional[int] = None) -> Repository:
    """Parse an id=url repository declaration.

    Raises:
        DirectiveError: If the value is not a non-empty id=url pair
    """
    repo_id, sep, url = value.partition("=")
    if not sep or not repo_id.strip() or not url.strip():
        raise DirectiveError(f"Invalid repository '{value}', expected id=url", line_number)
    return Repository(repo_id.strip(), url.strip())


def parse_directives(text: str, kind: SourceKind = SourceKind.SCRIPT, context: str = "") -> DirectiveSet:
    """Reduce the directive tokens of a source text into a validated DirectiveSet.

    Args:
        text: Raw source text
        kind: Kind of the compilation unit the text belongs to
        context: Include context attached to include/compile/jar references

    Returns:
        DirectiveSet with all directives found in text

    Raises:
        DirectiveError: On malformed coordinates or repositories, missing
            targets, or an entry point on a script-style source
    """
    directives = DirectiveSet()

    for token in tokenize(text):
        if token.kind == TokenKind.DEPENDENCIES:
            for coordinate in token.values:
                if not is_valid_coordinate(coordinate):
                    raise DirectiveError(f"Invalid dependency coordinate '{coordinate}'", token.line_number)
            _extend_unique(directives.dependencies, token.values)

        elif token.kind == TokenKind.REPOSITORY:
            if not token.values:
                raise DirectiveError("Repository directive without id=url", token.line_number)
            repositories = [parse_repository(value, token.line_number) for value in token.values]
            _extend_unique(directives.repositories, repositories)

        elif token.kind in (TokenKind.INCLUDE, TokenKind.COMPILE, TokenKind.JAR):
            if not token.values:
                raise DirectiveError(f"{token.kind.value} directive without target", token.line_number)
            target = {
                TokenKind.INCLUDE: directives.includes,
                TokenKind.COMPILE: directives.compiles,
                TokenKind.JAR: directives.jars,
            }[token.kind]
            _extend_unique(target, [LocatedReference(value, context) for value in token.values])

        elif token.kind == TokenKind.RUNTIME_OPTIONS:
            directives.runtime_options.extend(token.values)

        elif token.kind == TokenKind.COMPILER_OPTIONS:
            directives.compiler_options.extend(token.values)

        elif token.kind == TokenKind.ENTRY_POINT:
            if kind == SourceKind.SCRIPT:
                raise DirectiveError("Entry point directive is only supported for .kt class files", token.line_number)
            if len(token.values) != 1:
                raise DirectiveError("Entry point directive needs exactly one class name", token.line_number)
            entry = token.values[0]
            if directives.entry_point is not None and directives.entry_point != entry:
                raise DirectiveError(f"Conflicting entry points '{directives.entry_point}' and '{entry}'", token.line_number)
            directives.entry_point = entry

        elif token.kind == TokenKind.PACKAGE:
            if directives.package is None:
                directives.package = token.values[0]

    logger.debug(f"Parsed directives: {len(directives.dependencies)} deps, {len(directives.includes)} includes, {len(directives.compiles)} compile modules")
    return directives
