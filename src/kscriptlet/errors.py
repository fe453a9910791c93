"""Exception taxonomy for kscriptlet.

Every failure of the build pipeline is fatal to the current invocation. The
CLI is the only place these exceptions are turned into messages and exit
codes; library code raises and propagates them unchanged.
"""

from typing import Optional, Sequence


class KscriptletError(Exception):
    """Base class for all kscriptlet errors."""

    pass


class ConfigurationError(KscriptletError):
    """Raised when a required toolchain location cannot be determined."""

    pass


class ResourceError(KscriptletError):
    """Raised when a script resource cannot be read or fetched."""

    pass


class IncludeCycleError(ResourceError):
    """Raised when the include graph contains a cycle.

    Attributes:
        chain: Canonical identifiers from the first occurrence of the repeated
            resource down to the reference that closes the cycle.
    """

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__("Include cycle detected: " + " -> ".join(self.chain))


class DirectiveError(KscriptletError):
    """Raised for malformed directives or unsupported directive combinations.

    Attributes:
        line_number: 1-based line of the offending directive, if known
    """

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class DependencyResolutionError(KscriptletError):
    """Raised when the external dependency resolver fails.

    Attributes:
        diagnostic: The resolver's own error output, verbatim
    """

    def __init__(self, message: str, diagnostic: str = ""):
        self.diagnostic = diagnostic
        if diagnostic:
            message = f"{message}\n{diagnostic}"
        super().__init__(message)


class CompileError(KscriptletError):
    """Raised when the compiler toolchain returns a non-zero result.

    Attributes:
        returncode: Exit code of the compiler process
        output: Combined compiler output
    """

    def __init__(self, message: str, returncode: int = 1, output: str = ""):
        self.returncode = returncode
        self.output = output
        if output:
            message = f"{message}\n{output}"
        super().__init__(message)
