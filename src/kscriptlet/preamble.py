"""Preamble injection.

Some modes need boilerplate in front of the user's script:

- CUSTOM_KSCRIPT_PREAMBLE: code supplied by a custom interpreter wrapper
- --text: the text-processing support API (dependency, import and a
  ``lines`` binding over the script arguments)

Instead of pasting the code into the script, each block is written to
include_cache.<checksum>.kt in the scratch directory and referenced with a
synthetic //INCLUDE line. Preamble code therefore goes through exactly the
same checksum, directive hoisting and cycle checks as any other include.
"""

import logging
from pathlib import Path
from typing import List, Optional

from .cache import checksum

logger = logging.getLogger(__name__)

PREAMBLE_PREFIX = "include_cache"

TEXT_SUPPORT_PREAMBLE = """\
//DEPS com.github.holgerbrandl:kscript-support:1.2.5

import kscript.text.*
val lines = resolveArgFile(args)
"""


def materialize_preamble(text: str, directory: Path) -> Path:
    """Persist a preamble block under its own checksum.

    Writing is skipped when the file already exists, so repeated runs reuse
    the same file instead of accumulating copies.

    Args:
        text: Preamble source
        directory: Target directory

    Returns:
        Path of the preamble file
    """
    path = directory / f"{PREAMBLE_PREFIX}.{checksum(text)}.kt"
    if not path.is_file():
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.debug(f"Wrote preamble {path}")
    return path


class PreambleInjector:
    """Prepends preamble includes to a script."""

    def __init__(self, directory: Path, custom_preamble: Optional[str] = None):
        """
        Args:
            directory: Where preamble files are written (process scratch dir)
            custom_preamble: Environment-supplied preamble, if any
        """
        self.directory = directory
        self.custom_preamble = custom_preamble

    def preambles(self, text_support: bool) -> List[str]:
        """Preamble blocks in the order they appear in the final source."""
        blocks = []
        if text_support:
            blocks.append(TEXT_SUPPORT_PREAMBLE)
        if self.custom_preamble:
            blocks.append(self.custom_preamble)
        return blocks

    def inject(self, source: str, text_support: bool = False) -> str:
        """Return source with one //INCLUDE line per active preamble prepended.

        Args:
            source: Script text
            text_support: Whether the text-processing preamble is enabled

        Returns:
            Script text, unchanged if no preamble applies
        """
        blocks = self.preambles(text_support)
        if not blocks:
            return source
        include_lines = [f"//INCLUDE {materialize_preamble(block, self.directory)}" for block in blocks]
        return "\n".join(include_lines) + "\n" + source
