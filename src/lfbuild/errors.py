"""Build failure taxonomy.

Every failure raised by a build flow derives from BuildError so the CLI can
report it uniformly. No component recovers locally or retries; each error
carries enough context (at minimum the offending path) to diagnose it.
"""

from pathlib import Path
from typing import Optional, Union


class BuildError(Exception):
    """Base exception for build failures."""
    pass


class ConfigError(BuildError):
    """Raised when the build configuration is missing or invalid."""
    pass


class ResourceExhaustionError(BuildError):
    """Raised when a temporary workspace or file cannot be allocated."""

    def __init__(self, location: Union[str, Path], reason: str):
        self.location = str(location)
        self.reason = reason
        super().__init__(
            f"Unable to allocate temporary resource in {self.location}: {reason}"
        )


class GenerationFailure(BuildError):
    """Raised when a code generation subprocess does not exit cleanly.

    Attributes:
        schema_path: Schema file the generator was run against
        exit_code: Process exit code (None if it never ran or was killed)
        stderr: Captured standard error of the generator
        timed_out: Whether the generator was killed after its timeout
    """

    def __init__(
        self,
        schema_path: Union[str, Path],
        exit_code: Optional[int],
        stderr: str = "",
        timed_out: bool = False
    ):
        self.schema_path = str(schema_path)
        self.exit_code = exit_code
        self.stderr = stderr
        self.timed_out = timed_out

        if timed_out:
            detail = "generator timed out"
        elif exit_code is None:
            detail = "generator could not be started"
        else:
            detail = f"generator exited with code {exit_code}"

        message = f"Unable to generate code from {self.schema_path} ({detail})"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class CompilationFailure(BuildError):
    """Raised when the external compiler fails.

    Attributes:
        output_name: Name of the artifact being compiled
        exit_code: Compiler exit code (None if it never ran or was killed)
        stderr: Captured compiler diagnostics
    """

    def __init__(
        self,
        output_name: str,
        exit_code: Optional[int],
        stderr: str = ""
    ):
        self.output_name = output_name
        self.exit_code = exit_code
        self.stderr = stderr

        message = f"Compilation failed for {output_name}"
        if exit_code is not None:
            message += f" (exit code {exit_code})"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class DependencyResolutionFailure(BuildError):
    """Raised when a dependency closure cannot be computed.

    Attributes:
        subject: The namespace or file the resolver could not satisfy
    """

    def __init__(self, subject: Union[str, Path], reason: str):
        self.subject = str(subject)
        self.reason = reason
        super().__init__(f"Cannot resolve dependencies for {self.subject}: {reason}")
