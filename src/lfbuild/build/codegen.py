"""Code Generation Invoker.

This module runs the external schema-to-code generator, one process per
schema descriptor.

Design:
    - Each invocation passes exactly four arguments: the schema file, the
      target namespace, the output directory, and --nocombine=true so every
      generated unit lands in its own file
    - The caller is suspended until the generator process exits
    - Exit code 0 is success; anything else raises GenerationFailure naming
      the schema file
    - No retries; a timeout kills the generator's process tree
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..config.build_config import BuildConfig, SchemaDescriptor
from ..errors import GenerationFailure
from ..process_utils import run_process

logger = logging.getLogger(__name__)


class GenerationState(Enum):
    """Terminal state of a generation task."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GenerationTask:
    """One spawned generator process and its outcome."""

    schema: SchemaDescriptor
    output_dir: Path
    pid: Optional[int] = None
    state: GenerationState = GenerationState.PENDING
    exit_code: Optional[int] = None


class CodeGenerator:
    """Runs the external code generator for a single schema.

    Example usage:
        generator = CodeGenerator(["node", "spac/spac.js"], timeout=300)
        task = await generator.generate(schema, Path("/tmp/lfbuild-x"))
    """

    def __init__(self, command: List[str], timeout: Optional[float] = None):
        """Initialize the invoker.

        Args:
            command: Command prefix that runs the generator
            timeout: Seconds before a generator is killed (None waits forever)
        """
        self.command = list(command)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: BuildConfig) -> "CodeGenerator":
        return cls(config.codegen_command, timeout=config.codegen_timeout)

    @staticmethod
    def build_args(schema: SchemaDescriptor, output_dir: Path) -> List[str]:
        """Arguments passed to the generator for one schema."""
        return [
            f'--schema={schema.file}',
            f'--namespace={schema.namespace}',
            f'--outputdir={output_dir}',
            '--nocombine=true',
        ]

    async def generate(self, schema: SchemaDescriptor, output_dir: Path) -> GenerationTask:
        """Generate code for one schema into output_dir.

        Args:
            schema: Schema file and namespace to generate
            output_dir: Directory receiving the generated files

        Returns:
            The settled GenerationTask

        Raises:
            GenerationFailure: If the generator cannot start, exits nonzero,
                or times out
        """
        task = GenerationTask(schema=schema, output_dir=output_dir)
        cmd = self.command + self.build_args(schema, output_dir)

        def record_pid(pid: int) -> None:
            task.pid = pid

        try:
            result = await run_process(cmd, timeout=self.timeout, on_spawn=record_pid)
        except OSError as e:
            task.state = GenerationState.FAILED
            logger.error(f"Unable to start code generator for {schema.file}: {e}")
            raise GenerationFailure(schema.file, None, str(e)) from e

        task.exit_code = result.returncode
        if not result.success:
            task.state = GenerationState.FAILED
            logger.error(f"Unable to generate code from {schema.file}")
            raise GenerationFailure(
                schema.file,
                result.returncode,
                result.stderr,
                timed_out=result.timed_out,
            )

        task.state = GenerationState.SUCCEEDED
        logger.debug(f"Generated {schema.namespace} from {schema.file}")
        return task
