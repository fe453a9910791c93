"""Version check and self-update.

The version check is advisory: it runs after the usage text and only prints
a hint when a newer release exists. Having no network connection is normal,
so connection failures are swallowed silently.

Self-update is delegated to SDKMAN: a small bash script is written to the
cache directory and executed.
"""

import logging
import stat
from pathlib import Path
from typing import Optional

import requests

from .config import RunnerConfig
from .errors import ResourceError
from .output import log, log_warning
from .subprocess_utils import run_inherited

logger = logging.getLogger(__name__)

RELEASE_URL = "https://raw.githubusercontent.com/holgerbrandl/kscript/releases/kscript"
VERSION_KEY = "KSCRIPT_VERSION"
CHECK_TIMEOUT = 5

SELF_UPDATE_SCRIPT = """\
#!/usr/bin/env bash
export SDKMAN_DIR="${HOME}/.sdkman"
source "${SDKMAN_DIR}/bin/sdkman-init.sh"
sdkman_auto_answer=true && sdk install kscript
"""


def parse_version(version: str) -> tuple[int, ...]:
    """Parse "2.6.0" into (2, 6, 0) for comparison.

    Raises:
        ValueError: If a component is not an integer
    """
    return tuple(int(part) for part in version.strip().lstrip("v").split("."))


def fetch_latest_version(url: str = RELEASE_URL, timeout: int = CHECK_TIMEOUT) -> Optional[str]:
    """Read the latest released version from the release launcher script.

    Returns:
        The version string, or None when there is no connectivity

    Raises:
        ResourceError: If the server answers with an error or the file has no
            version line
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except (requests.ConnectionError, requests.Timeout) as e:
        # Offline (including DNS failures): skip the check
        logger.debug(f"Version check skipped: {e}")
        return None
    except requests.RequestException as e:
        raise ResourceError(f"Version check failed: {e}") from e

    for line in response.text.splitlines():
        if line.startswith(VERSION_KEY):
            return line.split("=", 1)[1].strip().strip("\"'")
    raise ResourceError(f"No {VERSION_KEY} found at {url}")


def version_check(current: str, self_name: str, url: str = RELEASE_URL) -> Optional[str]:
    """Print a hint if a newer version is available.

    Never fails: the hint is only shown after --help, which must exit 0.
    Server errors are reported as a warning.

    Args:
        current: Installed version
        self_name: Command name used in the hint
        url: Release URL to check

    Returns:
        The newer version, or None if up to date, offline or the check failed
    """
    try:
        latest = fetch_latest_version(url)
    except ResourceError as e:
        log_warning(str(e))
        return None
    if latest is None:
        return None
    try:
        newer = parse_version(latest) > parse_version(current)
    except ValueError:
        log_warning(f"Unparsable version '{latest}' at {url}")
        return None
    if not newer:
        return None
    log(f"A new version (v{latest}) of {self_name} is available. Use '{self_name} --self-update' to update your local installation")
    return latest


def write_update_script(cache_dir: Path) -> Path:
    """Write the executable self-update script into the cache directory."""
    cache_dir.mkdir(parents=True, exist_ok=True)
    script = cache_dir / "self_update.sh"
    script.write_text(SELF_UPDATE_SCRIPT, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def self_update(config: RunnerConfig) -> int:
    """Install the latest release through SDKMAN.

    Returns:
        Exit code of the update script
    """
    log("Installing latest version...")
    script = write_update_script(config.cache_dir)
    returncode = run_inherited(["bash", str(script)])
    if returncode != 0:
        log_warning(f"Self-update exited with code {returncode}")
    return returncode
