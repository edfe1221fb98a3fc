"""Parallel Generation Coordinator.

Fans the code generator out over every schema descriptor at once and fans
the outcomes back in to a single result.

Design:
    - One task per schema, all started together, no concurrency cap (schema
      lists are tens of entries, not thousands)
    - Succeeds only if every task succeeds
    - No task is ever abandoned. On the first failure the sibling policy
      decides what happens to generators still running:
        DRAIN  - let them run to completion, then raise the first failure
        CANCEL - cancel them (killing their processes), then raise
    - Either way the call returns only after every generator has settled, so
      nothing reads the output directory while a writer is still active
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from tqdm import tqdm

from ..config.build_config import SchemaDescriptor
from .codegen import CodeGenerator, GenerationTask

logger = logging.getLogger(__name__)


class SiblingPolicy(Enum):
    """What happens to in-flight generators after the first failure."""

    DRAIN = "drain"
    CANCEL = "cancel"


class GenerationCoordinator:
    """Runs a CodeGenerator over many schemas concurrently.

    Example usage:
        coordinator = GenerationCoordinator(CodeGenerator.from_config(config))
        tasks = await coordinator.generate_all(config.test_schemas, workspace.path)
    """

    def __init__(
        self,
        generator: CodeGenerator,
        policy: SiblingPolicy = SiblingPolicy.DRAIN,
        show_progress: bool = False
    ):
        """Initialize the coordinator.

        Args:
            generator: Invoker used for each schema
            policy: Treatment of running siblings after the first failure
            show_progress: Display a progress bar while generating
        """
        self.generator = generator
        self.policy = policy
        self.show_progress = show_progress

    async def generate_all(
        self,
        schemas: Sequence[SchemaDescriptor],
        output_dir: Path
    ) -> List[GenerationTask]:
        """Generate code for every schema into a shared output directory.

        Args:
            schemas: Schema descriptors to generate
            output_dir: Directory receiving all generated files

        Returns:
            Settled tasks, in the same order as schemas

        Raises:
            GenerationFailure: The first failure observed, once all generators
                have settled
        """
        schemas = list(schemas)
        if not schemas:
            return []

        logger.info(f"Generating code for {len(schemas)} schemas into {output_dir}")
        tasks = [
            asyncio.ensure_future(self.generator.generate(schema, output_dir))
            for schema in schemas
        ]
        order = {task: index for index, task in enumerate(tasks)}
        first_error: Optional[BaseException] = None

        progress = tqdm(
            total=len(tasks),
            desc="Generating",
            unit="schema",
            disable=not self.show_progress,
        )
        try:
            pending = set(tasks)
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in sorted(done, key=order.__getitem__):
                    progress.update(1)
                    if task.cancelled():
                        continue
                    error = task.exception()
                    if error is None or first_error is not None:
                        continue

                    first_error = error
                    logger.error(f"Code generation failed: {error}")
                    if self.policy == SiblingPolicy.CANCEL and pending:
                        logger.info(f"Cancelling {len(pending)} running generators")
                        await _cancel_all(pending)
                        progress.update(len(pending))
                        pending = set()
        except asyncio.CancelledError:
            await _cancel_all(tasks)
            raise
        finally:
            progress.close()

        if first_error is not None:
            raise first_error

        return [task.result() for task in tasks]


async def _cancel_all(tasks) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
