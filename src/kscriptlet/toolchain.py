"""Kotlin toolchain collaborator.

Wraps the kotlinc/kotlin executables of a Kotlin installation:

- locating KOTLIN_HOME
- compiling an expanded source into a jar
- running the compiled program with inherited stdio
- launching the interactive shell with a script's classpath
- deriving the entry symbol of a compiled unit

Entry symbols:
    Script-style sources (.kts) compile to a class named after the file, with
    a constructor taking the arguments. A small wrapper class Main_<Name> is
    compiled alongside; its main() loads the script class by name and
    instantiates it, which gives the launcher one predictable symbol no
    matter what the user called the file.

    Class-style sources (.kt) use the //ENTRY class if given, otherwise the
    file facade class <Name>Kt, both qualified with the declared package.
"""

import logging
import os
import re
import shutil
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import RunnerConfig
from .directives import DirectiveSet, SourceKind
from .errors import CompileError, ConfigurationError
from .subprocess_utils import run_inherited, safe_run

logger = logging.getLogger(__name__)

CP_SEPARATOR = os.pathsep
WRAPPER_PREFIX = "Main_"

_NON_IDENTIFIER_RE = re.compile(r"[^A-Za-z0-9]")


def normalize_class_name(base_name: str) -> str:
    """Turn a file base name into the class name kotlinc gives the script.

    Every non-alphanumeric character becomes "_", the first letter is upper
    cased and a leading digit is escaped with "_". Distinct base names can
    collide ("a-b" and "a_b").

    Examples:
        >>> normalize_class_name("3d-utils")
        '_3d_utils'
        >>> normalize_class_name("hello.world")
        'Hello_world'
    """
    name = _NON_IDENTIFIER_RE.sub("_", base_name)
    name = name[:1].upper() + name[1:]
    if name[:1].isdigit():
        name = "_" + name
    return name


def _qualify(package: Optional[str], name: str) -> str:
    return f"{package}.{name}" if package else name


def entry_symbol(kind: SourceKind, class_name: str, directives: DirectiveSet) -> str:
    """Fully qualified invocable class of a compiled unit.

    Args:
        kind: Kind of the compiled source
        class_name: Normalized class name of the source
        directives: Directives of the unit (package, entry point)

    Returns:
        Class name to pass to the kotlin launcher
    """
    if kind == SourceKind.SCRIPT:
        return f"{WRAPPER_PREFIX}{class_name}"
    return _qualify(directives.package, directives.entry_point or f"{class_name}Kt")


def generate_wrapper(class_name: str, package: Optional[str], directory: Path) -> Path:
    """Write the Main_<Name> wrapper for a script-style source.

    Args:
        class_name: Normalized class name of the script
        package: Package declared by the script, if any
        directory: Directory to write the wrapper into

    Returns:
        Path of the generated .kt file
    """
    wrapper_name = f"{WRAPPER_PREFIX}{class_name}"
    class_reference = _qualify(package, class_name)
    source = f"""\
class {wrapper_name} {{
    companion object {{
        @JvmStatic
        fun main(args: Array<String>) {{
            val script = {wrapper_name}::class.java.classLoader.loadClass("{class_reference}")
            script.getDeclaredConstructor(Array<String>::class.java).newInstance(args)
        }}
    }}
}}
"""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{wrapper_name}.kt"
    path.write_text(source, encoding="utf-8")
    return path


def join_classpath(*segments: Optional[str]) -> str:
    """Join classpath strings, skipping empty segments."""
    return CP_SEPARATOR.join(segment for segment in segments if segment)


def find_kotlin_home(config: RunnerConfig) -> str:
    """Determine the Kotlin installation directory.

    Uses KOTLIN_HOME if set, otherwise infers it from the real location of
    kotlinc on PATH (<home>/bin/kotlinc).

    Raises:
        ConfigurationError: If the location cannot be determined
    """
    if config.kotlin_home:
        return config.kotlin_home

    kotlinc = shutil.which("kotlinc")
    if kotlinc:
        home = Path(kotlinc).resolve().parent.parent
        if (home / "lib").is_dir():
            logger.debug(f"Inferred KOTLIN_HOME={home}")
            return str(home)

    raise ConfigurationError("KOTLIN_HOME is not set and could not be inferred from context")


class KotlinToolchain:
    """kotlinc/kotlin of one Kotlin installation."""

    def __init__(self, kotlin_home: str):
        self.kotlin_home = Path(kotlin_home)

    @classmethod
    def locate(cls, config: RunnerConfig) -> "KotlinToolchain":
        return cls(find_kotlin_home(config))

    def tool(self, name: str) -> str:
        """Path of a launcher in <home>/bin, falling back to PATH lookup."""
        suffix = ".bat" if sys.platform == "win32" else ""
        candidate = self.kotlin_home / "bin" / f"{name}{suffix}"
        if candidate.is_file():
            return str(candidate)
        return shutil.which(name) or name

    def script_runtime_jar(self) -> Path:
        return self.kotlin_home / "lib" / "kotlin-script-runtime.jar"

    def compile(self, compiler_options: Sequence[str], jar: Path, sources: Sequence[Path], classpath: Optional[str]) -> None:
        """Compile sources into a jar.

        Args:
            compiler_options: Extra kotlinc options
            jar: Output jar path
            sources: Source files
            classpath: Compile classpath, if any

        Raises:
            CompileError: If kotlinc cannot be started or exits non-zero
        """
        cmd = [self.tool("kotlinc"), *compiler_options, "-d", str(jar)]
        if classpath:
            cmd.extend(["-classpath", classpath])
        cmd.extend(str(source) for source in sources)
        logger.debug(f"Running compiler: {' '.join(cmd)}")

        try:
            result = safe_run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise CompileError(f"Failed to run kotlinc: {e}") from e

        if result.returncode != 0:
            names = ", ".join(source.name for source in sources)
            output = "\n".join(part for part in (result.stdout, result.stderr) if part)
            raise CompileError(f"Compilation of {names} failed", returncode=result.returncode, output=output)

    def run(self, classpath: str, entry: str, args: Sequence[str], runtime_options: Sequence[str]) -> int:
        """Run a compiled program attached to the terminal.

        Returns:
            The program's exit code, unchanged

        Raises:
            ConfigurationError: If the kotlin launcher cannot be started
        """
        cmd: List[str] = [self.tool("kotlin"), *runtime_options, "-classpath", classpath, entry, *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return run_inherited(cmd)
        except OSError as e:
            raise ConfigurationError(f"Failed to run kotlin launcher: {e}") from e

    def interactive_shell(self, jar: Path, classpath: Optional[str], compiler_options: Sequence[str], runtime_options: Sequence[str]) -> int:
        """Start the Kotlin REPL with the script jar and its classpath.

        Raises:
            ConfigurationError: If kotlinc cannot be started
        """
        cmd = [self.tool("kotlinc"), *compiler_options, *runtime_options, "-classpath", join_classpath(str(jar), classpath)]
        logger.debug(f"Starting shell: {' '.join(cmd)}")
        try:
            return run_inherited(cmd)
        except OSError as e:
            raise ConfigurationError(f"Failed to start interactive shell: {e}") from e
