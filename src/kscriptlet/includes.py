"""Include expansion.

Replaces every //INCLUDE (or @file:Include) line with the content of the
referenced file or URL, recursively, and merges the directives of every
resource in the include graph into one DirectiveSet.

Cycle detection threads the chain of canonical resource identifiers that
are currently being expanded through the recursion, so A -> B -> A fails
with IncludeCycleError instead of recursing forever. A resource reached a
second time through a different branch (a diamond) is inlined only once,
since Kotlin rejects duplicate declarations.

After expansion the merged text is consolidated into one valid Kotlin unit:

    @file annotations   (de-duplicated)
    package             (first declaration wins)
    imports             (de-duplicated, first-seen order)
    body
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .directives import DirectiveSet, SourceKind, TokenKind, parse_directives, tokenize_line
from .errors import IncludeCycleError, ResourceError
from .resources import fetch_url, is_url, resolve_reference

logger = logging.getLogger(__name__)

_FILE_ANNOTATION_RE = re.compile(r"^\s*@file\s*:")
_PACKAGE_RE = re.compile(r"^\s*package\s+\S")
_IMPORT_RE = re.compile(r"^\s*import\s+\S")


@dataclass
class IncludeResult:
    """Result of include expansion.

    Attributes:
        text: Merged, consolidated source text
        directives: Union of the directives of every resource in the graph
        include_origins: Every included location, in expansion order
    """

    text: str
    directives: DirectiveSet
    include_origins: List[str] = field(default_factory=list)


class IncludeResolver:
    """Expands includes of one compilation unit."""

    def __init__(self, cache_dir: Path, kind: SourceKind = SourceKind.SCRIPT):
        """
        Args:
            cache_dir: Cache directory used for URL downloads
            kind: Kind of the compilation unit (governs directive validation)
        """
        self.cache_dir = cache_dir
        self.kind = kind

    def resolve(self, text: str, context: str, origin: str) -> IncludeResult:
        """Expand all includes in text.

        Args:
            text: Source text of the root resource
            context: Include context of the root resource
            origin: Canonical identifier of the root resource

        Returns:
            IncludeResult with merged text and hoisted directives

        Raises:
            IncludeCycleError: If a resource (transitively) includes itself
            ResourceError: If an include target cannot be read or fetched
            DirectiveError: If any resource in the graph has invalid directives
        """
        directives = DirectiveSet()
        origins: List[str] = []
        lines = self._expand(text, context, (origin,), directives, origins, set())
        if origins:
            logger.debug(f"Expanded {len(origins)} includes into {origin}")
        merged = consolidate(lines)
        # The entry symbol must use the package kotlinc compiles under
        directives.package = declared_package(merged)
        return IncludeResult(text=merged, directives=directives, include_origins=origins)

    def _expand(
        self,
        text: str,
        context: str,
        chain: tuple[str, ...],
        directives: DirectiveSet,
        origins: List[str],
        expanded: set[str],
    ) -> List[str]:
        directives.merge(parse_directives(text, self.kind, context))

        lines: List[str] = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            token = tokenize_line(line, line_number)
            if token is None or token.kind != TokenKind.INCLUDE:
                lines.append(line)
                continue

            for target in token.values:
                location = resolve_reference(target, context)
                if location in chain:
                    raise IncludeCycleError(chain[chain.index(location):] + (location,))
                if location in expanded:
                    logger.debug(f"Skipping already included {location}")
                    continue
                expanded.add(location)
                origins.append(location)

                included_text, included_context = self._load(location, target)
                lines.extend(self._expand(included_text, included_context, chain + (location,), directives, origins, expanded))
        return lines

    def _load(self, location: str, target: str) -> tuple[str, str]:
        if is_url(location):
            path = fetch_url(location, self.cache_dir)
            context = location
        else:
            path = Path(location)
            context = str(path.parent)
        try:
            return path.read_text(encoding="utf-8"), context
        except OSError as e:
            raise ResourceError(f"Could not read include '{target}' ({location}): {e}") from e


def consolidate(lines: Iterable[str]) -> str:
    """Reorder merged lines into one valid Kotlin compilation unit.

    Shebang lines are dropped, directive annotations are commented out (they
    have no runtime meaning), other file annotations and imports are hoisted
    and de-duplicated, and only the first package declaration is kept.
    """
    annotations: List[str] = []
    package: Optional[str] = None
    imports: List[str] = []
    body: List[str] = []

    for line in lines:
        stripped = line.strip()
        if stripped.startswith("#!"):
            continue
        if _FILE_ANNOTATION_RE.match(line):
            if tokenize_line(line, 0) is not None:
                body.append(f"// {stripped}")
            elif stripped not in annotations:
                annotations.append(stripped)
        elif _PACKAGE_RE.match(line):
            if package is None:
                package = stripped
        elif _IMPORT_RE.match(line):
            if stripped not in imports:
                imports.append(stripped)
        else:
            body.append(line)

    header = annotations + ([package] if package else []) + imports
    if header:
        header.append("")
    return "\n".join(header + body).strip("\n") + "\n"


def declared_package(text: str) -> Optional[str]:
    """Return the first package declared in text, if any."""
    for line_number, line in enumerate(text.splitlines(), start=1):
        token = tokenize_line(line, line_number)
        if token is not None and token.kind == TokenKind.PACKAGE:
            return token.values[0]
    return None
