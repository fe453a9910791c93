"""Script resource resolution.

Maps the <script> argument to a concrete, readable file plus the include
context used to resolve relative references found inside it.

Resolution rules (first match wins):
    1. "-" or "/dev/stdin"       -> stdin is copied into a temp script
    2. http:// or https:// URL   -> downloaded (URL-cached) into the cache dir
    3. readable *.kts / *.kt     -> used directly
    4. any other readable file   -> copied into a temp script (process substitution)
    5. anything else             -> treated as inline Kotlin code

Temp scripts are named scriptlet.<checksum>.kts, so identical snippets map to
identical file names and, through the content-addressed cache, to the same jar.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO
from urllib.parse import unquote, urljoin, urlparse

import requests

from .cache import checksum
from .config import RunnerConfig
from .directives import SourceKind
from .errors import ResourceError

logger = logging.getLogger(__name__)

STDIN_MARKERS = ("-", "/dev/stdin")
SCRIPT_EXTENSIONS = (".kts", ".kt")
URL_CACHE_PREFIX = "url_cache"
TEMP_SCRIPT_PREFIX = "scriptlet"
FETCH_TIMEOUT = 30


@dataclass(frozen=True)
class SourceResource:
    """A resolved script resource.

    Attributes:
        argument: The resource argument as given by the user
        path: Concrete readable file holding the source text
        base_name: Name used for the cache entry and the compiled class
        kind: Script-style (.kts) or class-style (.kt)
        include_context: Directory or URL relative references resolve against
        origin: Canonical identifier used for include-cycle detection
    """

    argument: str
    path: Path
    base_name: str
    kind: SourceKind
    include_context: str
    origin: str

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ResourceError(f"Could not read script '{self.argument}': {e}") from e


def is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def resolve_reference(target: str, context: str) -> str:
    """Resolve an include/compile/jar reference against an include context.

    Args:
        target: Reference as written in a directive (path, file: URL or URL)
        context: Directory path or URL of the declaring resource

    Returns:
        A URL, or an absolute normalized local path
    """
    if is_url(target):
        return target
    if target.startswith("file:"):
        return str(Path(unquote(urlparse(target).path)).resolve())
    if is_url(context):
        return urljoin(context, target)
    path = Path(target).expanduser()
    if not path.is_absolute():
        path = Path(context or ".") / path
    return str(path.resolve())


def url_base_name(url: str) -> str:
    """Derive a file base name from the final path segment of a URL."""
    segment = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    stem = segment.rsplit(".", 1)[0] if "." in segment else segment
    return stem or "url_script"


def fetch_url(url: str, cache_dir: Path, timeout: int = FETCH_TIMEOUT) -> Path:
    """Download a URL into the cache directory, reusing earlier downloads.

    The file name is derived from a digest of the URL, so a second request for
    the same URL does no network I/O. The download is written to a temporary
    name and renamed into place, so a failed transfer leaves nothing behind.

    Args:
        url: http(s) URL to fetch
        cache_dir: Cache directory
        timeout: Request timeout in seconds

    Returns:
        Path to the cached file

    Raises:
        ResourceError: If the download fails
    """
    suffix = Path(urlparse(url).path).suffix or ".kts"
    cached = cache_dir / f"{URL_CACHE_PREFIX}.{checksum(url)}{suffix}"
    if cached.is_file():
        logger.debug(f"URL cache hit for {url}: {cached}")
        return cached

    logger.debug(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ResourceError(f"Failed to fetch '{url}': {e}") from e

    cache_dir.mkdir(parents=True, exist_ok=True)
    temp_file = cached.with_name(f"{cached.name}.{os.getpid()}.download")
    try:
        temp_file.write_bytes(response.content)
        os.replace(temp_file, cached)
    except OSError as e:
        temp_file.unlink(missing_ok=True)
        raise ResourceError(f"Failed to store '{url}' in {cache_dir}: {e}") from e
    return cached


def create_temp_script(text: str, config: RunnerConfig, kind: SourceKind = SourceKind.SCRIPT) -> Path:
    """Write source text to scriptlet.<checksum>.<ext> in the scratch directory.

    The text is trimmed and newline-terminated first, which is also the shape
    include expansion produces, so a snippet without includes gets a checksum
    equal to the one in its file name.
    """
    text = text.strip() + "\n"
    path = config.temp_dir / f"{TEMP_SCRIPT_PREFIX}.{checksum(text)}{kind.extension}"
    if not path.is_file():
        path.write_text(text, encoding="utf-8")
    return path


def _temp_resource(argument: str, text: str, config: RunnerConfig, context: str) -> SourceResource:
    path = create_temp_script(text, config)
    return SourceResource(
        argument=argument,
        path=path,
        base_name=path.stem,
        kind=SourceKind.SCRIPT,
        include_context=context,
        origin=str(path),
    )


def _is_readable(path: Path) -> bool:
    try:
        # Pipes from process substitution are readable but not regular files
        return path.exists() and not path.is_dir() and os.access(path, os.R_OK)
    except OSError:
        return False


def resolve_resource(argument: str, config: RunnerConfig, stdin: Optional[TextIO] = None) -> SourceResource:
    """Resolve a script argument into a SourceResource.

    Args:
        argument: Script file, URL, "-" for stdin, or inline Kotlin code
        config: Runner configuration
        stdin: Stream read for "-" (defaults to sys.stdin)

    Returns:
        SourceResource backed by a readable file

    Raises:
        ResourceError: If no readable file results or a download fails
    """
    working_dir = str(Path.cwd())

    if argument in STDIN_MARKERS:
        stream = stdin if stdin is not None else sys.stdin
        return _temp_resource(argument, stream.read(), config, working_dir)

    if is_url(argument):
        config.ensure_cache_dir()
        path = fetch_url(argument, config.cache_dir)
        return SourceResource(
            argument=argument,
            path=path,
            base_name=url_base_name(argument),
            kind=SourceKind.from_path(Path(urlparse(argument).path)),
            include_context=argument,
            origin=argument,
        )

    candidate = Path(argument).expanduser()
    if candidate.suffix in SCRIPT_EXTENSIONS:
        if not _is_readable(candidate):
            raise ResourceError(f"Could not read script argument '{argument}'")
        resolved = candidate.resolve()
        return SourceResource(
            argument=argument,
            path=resolved,
            base_name=resolved.stem,
            kind=SourceKind.from_path(resolved),
            include_context=str(resolved.parent),
            origin=str(resolved),
        )

    if _is_readable(candidate):
        # Process substitution handles (/dev/fd/63) can only be read once
        try:
            with open(candidate, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ResourceError(f"Could not read script argument '{argument}': {e}") from e
        return _temp_resource(argument, text, config, working_dir)

    resource = _temp_resource(argument, argument, config, working_dir)
    if not _is_readable(resource.path):
        raise ResourceError(f"Could not read script argument '{argument}'")
    return resource
