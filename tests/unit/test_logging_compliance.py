"""Static checks that library code keeps the script's stdout clean.

A script's own output is often piped into other tools, so everything
kscriptlet reports goes to stderr through the output module or the logging
module. Only cli.py may print (usage text, and only to stderr).
"""

import re
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).parent.parent.parent / "src" / "kscriptlet"


def _source_lines():
    for file_path in sorted(SRC_DIR.rglob("*.py")):
        if "__pycache__" in str(file_path):
            continue
        for line_num, line in enumerate(file_path.read_text(encoding="utf-8").split("\n"), start=1):
            if line.strip().startswith("#"):
                continue
            yield file_path, line_num, line


class TestLoggingCompliance:
    """Test cases for logging vs print statement compliance."""

    def test_source_directory_exists(self):
        assert SRC_DIR.exists(), f"Source directory not found: {SRC_DIR}"

    def test_no_print_outside_cli(self):
        """Verify no print() calls exist in non-CLI code."""
        violations = [
            f"{path}:{num}: {line.strip()}"
            for path, num, line in _source_lines()
            if path.name != "cli.py" and re.search(r"(?<![\w.])print\s*\(", line)
        ]
        if violations:
            pytest.fail("Found print() in library code:\n" + "\n".join(violations) + "\n\nUse output.log() or logging.debug().")

    def test_cli_prints_only_to_stderr(self):
        violations = [
            f"{path}:{num}: {line.strip()}"
            for path, num, line in _source_lines()
            if path.name == "cli.py" and re.search(r"(?<![\w.])print\s*\(", line) and "file=sys.stderr" not in line
        ]
        assert violations == []

    def test_no_direct_stdout_writes(self):
        """Verify nothing writes to sys.stdout directly."""
        violations = [f"{path}:{num}: {line.strip()}" for path, num, line in _source_lines() if "sys.stdout" in line]
        assert violations == []
