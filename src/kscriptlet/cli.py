"""
Command-line interface for kscriptlet.

This module provides the `kscriptlet` command: it builds a script through
the BuildOrchestrator and then runs it, opens an interactive shell on it, or
performs one of the action-only modes (cache clearing, self-update).

Exit codes:
    0    success, or an action-only mode
    1    configuration or pipeline error (missing KOTLIN_HOME, bad directive, ...)
    130  interrupted
    *    otherwise the script's own exit code
"""

import argparse
import shlex
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from rich.console import Console

from . import __version__
from .cache import ArtifactCache
from .config import RunnerConfig
from .errors import ConfigurationError, KscriptletError
from .orchestrator import BuildOptions, BuildOrchestrator, BuildResult
from .output import init_timer, log, set_verbose
from .toolchain import KotlinToolchain, join_classpath
from .updates import self_update, version_check

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130

HELP_FLAGS = ("--help", "-h", "--version", "-v")

USAGE = """\
{name} - Enhanced scripting support for Kotlin on *nix-based systems.

Usage:
 {name} [options] <script> [<script_args>]...
 {name} --clear-cache
 {name} --self-update

The <script> can be a script file (*kts), a script URL, - for stdin, a *.kt source file with a main method, or some kotlin code.

Use '--clear-cache' to wipe cached script jars and urls
Use '--self-update' to update to the latest version

Options:
 -i --interactive        Create interactive shell with dependencies as declared in script
 -t --text               Enable stdin support API for more streamlined text processing
 --idea                  Open script in temporary Intellij session
 -s --silent             Suppress status logging to stderr
 --package               Package script and dependencies into self-dependent binary
 -J<arg>                 -J is stripped and <arg> passed to Java as-is (if no KOTLIN_OPTS is given)
 -Dname=value            Set a system JVM property (if no KOTLIN_OPTS is given)

License   : MIT
Version   : v{version}
"""

_console = Console(stderr=True, highlight=False)


@dataclass
class RunArgs:
    """Parsed arguments of one invocation."""

    script: Optional[str] = None
    script_args: List[str] = field(default_factory=list)
    interactive: bool = False
    text: bool = False
    idea: bool = False
    silent: bool = False
    package: bool = False
    clear_cache: bool = False
    self_update: bool = False
    java_opts: List[str] = field(default_factory=list)
    system_props: List[str] = field(default_factory=list)


def usage(self_name: str) -> str:
    return USAGE.format(name=self_name, version=__version__).strip()


def split_arguments(argv: Sequence[str]) -> tuple[List[str], List[str]]:
    """Split argv into our own arguments and the script's arguments.

    Everything up to and including the first argument that is not an option
    (a bare "-" counts as the script) belongs to us; the rest is passed to
    the script untouched.

    Examples:
        >>> split_arguments(["-s", "hello.kts", "-x", "1"])
        (['-s', 'hello.kts'], ['-x', '1'])
    """
    index = 0
    while index < len(argv) and argv[index].startswith("-") and argv[index] != "-":
        index += 1
    return list(argv[: index + 1]), list(argv[index + 1 :])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kscriptlet", add_help=False)
    parser.add_argument("-i", "--interactive", action="store_true")
    parser.add_argument("-t", "--text", action="store_true")
    parser.add_argument("--idea", action="store_true")
    parser.add_argument("-s", "--silent", action="store_true")
    parser.add_argument("--package", action="store_true")
    parser.add_argument("--clear-cache", action="store_true", dest="clear_cache")
    parser.add_argument("--self-update", action="store_true", dest="self_update")
    parser.add_argument("-J", action="append", default=[], dest="java_opts")
    parser.add_argument("-D", action="append", default=[], dest="system_props")
    parser.add_argument("script", nargs="?")
    return parser


def parse_args(argv: Sequence[str]) -> RunArgs:
    """Parse command-line arguments.

    Raises:
        SystemExit: On unknown options (argparse exits with code 2)
    """
    own_args, script_args = split_arguments(argv)
    namespace = _build_parser().parse_args(own_args)
    return RunArgs(script_args=script_args, **vars(namespace))


def runtime_options(config: RunnerConfig, args: RunArgs, result: BuildResult) -> List[str]:
    """Options for the kotlin launcher.

    KOTLIN_OPTS replaces the -J/-D command-line passthrough; options declared
    in the script are always appended.
    """
    if config.kotlin_opts:
        options = shlex.split(config.kotlin_opts)
    else:
        options = [f"-J{opt}" for opt in args.java_opts] + [f"-D{prop}" for prop in args.system_props]
    return options + list(result.runtime_options)


def print_error(self_name: str, message: str) -> None:
    _console.print(f"[{self_name}] [ERROR] {message}", style="bold red", markup=False, soft_wrap=True)


def run_script(args: RunArgs, config: RunnerConfig) -> int:
    """Build the script and run it (or open the interactive shell).

    Returns:
        Exit code of the script or shell

    Raises:
        KscriptletError: On any configuration or pipeline failure
    """
    if args.idea:
        raise ConfigurationError("--idea is not supported by this installation")
    if args.package:
        raise ConfigurationError("--package is not supported by this installation")

    toolchain = KotlinToolchain.locate(config)
    orchestrator = BuildOrchestrator(config, toolchain)
    result = orchestrator.build(args.script, BuildOptions(text_support=args.text))
    options = runtime_options(config, args, result)

    if args.interactive:
        log(f"Creating REPL from {args.script}")
        return toolchain.interactive_shell(result.artifact, result.classpath or None, result.compiler_options, options)

    classpath = join_classpath(str(result.artifact), str(toolchain.script_runtime_jar()), result.classpath)
    return toolchain.run(classpath, result.entry_symbol, args.script_args, options)


def run(argv: Sequence[str], config: Optional[RunnerConfig] = None) -> int:
    """Execute one invocation and return its exit code.

    Args:
        argv: Command-line arguments without the program name
        config: Configuration (defaults to RunnerConfig.from_environment())
    """
    init_timer()
    config = config or RunnerConfig.from_environment()

    try:
        if len(argv) == 1 and argv[0] in HELP_FLAGS:
            print(usage(config.self_name), file=sys.stderr)
            version_check(__version__, config.self_name)
            return EXIT_SUCCESS

        args = parse_args(argv)
        set_verbose(not args.silent)

        config.ensure_cache_dir()

        if args.clear_cache:
            log("Cleaning up cache...")
            ArtifactCache(config.cache_dir).clear()
            return EXIT_SUCCESS

        if args.self_update:
            self_update(config)
            return EXIT_SUCCESS

        if args.script is None:
            print(usage(config.self_name), file=sys.stderr)
            return EXIT_ERROR

        return run_script(args, config)

    except KscriptletError as e:
        print_error(config.self_name, str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        print_error(config.self_name, "Interrupted")
        return EXIT_INTERRUPTED
    finally:
        config.scratch.cleanup()


def main() -> None:
    """Console script entry point."""
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
