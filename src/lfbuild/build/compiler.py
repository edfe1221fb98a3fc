"""Compiler Invocation.

This module runs the external JavaScript compiler over an ordered input set
with a composed flag table.

Design:
    - Renders the flag table and input files as compiler arguments
    - Moves arguments into a flag file when the input list is long (avoids
      command line length limits)
    - Captures compiled output from stdout, or lets the compiler write it to
      an explicit output file
    - Raises CompilationFailure with the compiler's diagnostics on failure
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from ..config.build_config import BuildConfig
from ..errors import CompilationFailure
from ..process_utils import run_process
from .flag_composer import flags_to_args

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """Result of a compiler invocation."""

    output_name: str
    output_path: Optional[Path]
    stdout: str
    stderr: str
    returncode: int


class ICompiler(ABC):
    """Interface for the external compiler."""

    @abstractmethod
    async def compile(
        self,
        inputs: Sequence[Path],
        flags: Mapping[str, Any],
        output_name: str,
        output_path: Optional[Path] = None
    ) -> CompileResult:
        """Compile an ordered input set into one artifact.

        Args:
            inputs: Source files, in submission order
            flags: Composed flag table
            output_name: Name of the artifact (for diagnostics)
            output_path: File the compiler writes to; when None the compiled
                output is returned in CompileResult.stdout

        Returns:
            CompileResult of the successful invocation

        Raises:
            CompilationFailure: If the compiler fails
        """
        pass


class ClosureCompiler(ICompiler):
    """Runs the Closure Compiler jar.

    Example usage:
        compiler = ClosureCompiler(Path("tools/compiler.jar"))
        result = await compiler.compile(files, flags, "lf.js")
        bundle = result.stdout
    """

    def __init__(
        self,
        compiler_path: Path,
        java: str = "java",
        timeout: Optional[float] = None,
        response_file_threshold: int = 200
    ):
        """Initialize the compiler.

        Args:
            compiler_path: Path to the compiler jar
            java: Java executable used to run the jar
            timeout: Seconds before the compiler is killed (None waits forever)
            response_file_threshold: Input count above which arguments are
                passed through a flag file
        """
        self.compiler_path = Path(compiler_path)
        self.java = java
        self.timeout = timeout
        self.response_file_threshold = response_file_threshold

    @classmethod
    def from_config(cls, config: BuildConfig) -> "ClosureCompiler":
        return cls(
            config.compiler_path,
            java=config.java,
            timeout=config.compile_timeout,
            response_file_threshold=config.response_file_threshold,
        )

    @property
    def command(self) -> List[str]:
        return [self.java, "-jar", str(self.compiler_path)]

    @staticmethod
    def build_args(
        inputs: Sequence[Path],
        flags: Mapping[str, Any],
        output_path: Optional[Path] = None
    ) -> List[str]:
        """Arguments for one invocation: flags, then inputs, then output."""
        args = flags_to_args(flags)
        args.extend(f'--js={path}' for path in inputs)
        if output_path is not None:
            args.append(f'--js_output_file={output_path}')
        return args

    async def compile(
        self,
        inputs: Sequence[Path],
        flags: Mapping[str, Any],
        output_name: str,
        output_path: Optional[Path] = None
    ) -> CompileResult:
        if not self.compiler_path.exists():
            raise CompilationFailure(
                output_name,
                None,
                f"Compiler not found: {self.compiler_path}. Ensure it is installed."
            )

        args = self.build_args(inputs, flags, output_path)
        response_file = None
        if len(inputs) > self.response_file_threshold:
            response_file = self._write_response_file(args)
            args = [f'--flagfile={response_file}']

        logger.info(f"Compiling {output_name} from {len(inputs)} files")
        try:
            result = await run_process(self.command + args, timeout=self.timeout)
        except OSError as e:
            logger.error(f"Unable to start compiler: {e}")
            raise CompilationFailure(output_name, None, str(e)) from e
        finally:
            if response_file is not None:
                response_file.unlink(missing_ok=True)

        if result.timed_out:
            raise CompilationFailure(
                output_name, None, f"Compilation timeout after {self.timeout}s"
            )
        if result.returncode != 0:
            logger.error(f"Compilation failed for {output_name}")
            raise CompilationFailure(output_name, result.returncode, result.stderr)

        if result.stderr.strip():
            logger.info(result.stderr.strip())

        return CompileResult(
            output_name=output_name,
            output_path=output_path,
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.returncode,
        )

    def _write_response_file(self, args: List[str]) -> Path:
        """Write arguments to a compiler flag file.

        Args:
            args: Arguments to move out of the command line

        Returns:
            Path to generated flag file
        """
        fd, name = tempfile.mkstemp(prefix="lfbuild-", suffix=".flags")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write('\n'.join(_quote_flag(arg) for arg in args))
        return Path(name)


def _quote_flag(arg: str) -> str:
    if not any(ch.isspace() for ch in arg) and '"' not in arg:
        return arg
    escaped = arg.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'
