"""
Build pipeline for the library and test bundles.

This module coordinates the two build flows. Compilation itself is delegated
to the external compiler; the pipeline owns assembling inputs, composing
flags, running generation and compilation in order, and turning their
outcomes into a single result.

Library flow (build_lib):
1. Scan the dependency closure of the library sources
2. Append the library's own sources (static glob)
3. Compose flags for the requested mode
4. Compile once into the named bundle
5. Strip license headers from the compiled output
6. Write the bundle to the dist directory

Test flow (build_test):
1. Allocate a temporary workspace
2. Generate code for every test schema, concurrently, into the workspace
3. Resolve the target's transitive closure (sources + workspace)
4. Compose compiled-mode flags with the test-only flags on top
5. Compile once into a throwaway file in the workspace
6. Return once compilation has succeeded
"""

import logging
import time
from pathlib import Path
from typing import List, Optional

from ..config.build_config import BuildConfig
from .codegen import CodeGenerator
from .compiler import ClosureCompiler, ICompiler
from .coordinator import GenerationCoordinator, SiblingPolicy
from .dependency_resolver import ClosureDependencyResolver, IDependencyResolver, glob_sources
from .flag_composer import BuildMode, FlagTable, compose, get_compiler_flags
from .license_stripper import strip_license
from .workspace import allocate_workspace

logger = logging.getLogger(__name__)

# Generated test code is consumed reflectively, so locally scoped property
# definitions must survive renaming.
TEST_ONLY_FLAGS: FlagTable = {
    'export_local_property_definitions': None,
}


class BuildPipeline:
    """
    Runs the library and test build flows for one configuration.

    Collaborators default to the concrete implementations built from the
    configuration and can be injected for testing.

    Example usage:
        pipeline = BuildPipeline(load_build_config(Path(".")))
        bundle = asyncio.run(pipeline.build_lib(BuildMode.COMPILED))
        asyncio.run(pipeline.build_test("lf.testing.hrSchema.getSchemaBuilder"))
    """

    def __init__(
        self,
        config: BuildConfig,
        resolver: Optional[IDependencyResolver] = None,
        compiler: Optional[ICompiler] = None,
        generator: Optional[CodeGenerator] = None,
        policy: SiblingPolicy = SiblingPolicy.DRAIN,
        show_progress: bool = False,
        keep_temp: bool = False,
        workspace_parent: Optional[Path] = None
    ):
        """
        Initialize the pipeline.

        Args:
            config: Static build configuration
            resolver: Dependency resolver (defaults to ClosureDependencyResolver)
            compiler: Compiler (defaults to ClosureCompiler)
            generator: Code generator (defaults to one built from config)
            policy: Treatment of running generators after the first failure
            show_progress: Display generation progress
            keep_temp: Leave the test workspace on disk after the build
            workspace_parent: Directory for test workspaces (system temp if None)
        """
        self.config = config
        self.resolver = resolver or ClosureDependencyResolver.from_config(config)
        self.compiler = compiler or ClosureCompiler.from_config(config)
        self._generator = generator
        self.policy = policy
        self.show_progress = show_progress
        self.keep_temp = keep_temp
        self.workspace_parent = workspace_parent

    @property
    def generator(self) -> CodeGenerator:
        if self._generator is None:
            self._generator = CodeGenerator.from_config(self.config)
        return self._generator

    def get_compiler_flags(self, mode: BuildMode) -> FlagTable:
        """Flags submitted by the library flow for a mode."""
        return get_compiler_flags(self.config, mode)

    def get_test_compiler_flags(self) -> FlagTable:
        """Flags submitted by the test flow."""
        return compose(get_compiler_flags(self.config, BuildMode.COMPILED), TEST_ONLY_FLAGS)

    def submitted_inputs_lib(self) -> List[Path]:
        """Files submitted by the library flow: scanned closure, then own sources.

        Duplicates are passed through unchanged.
        """
        closure = self.resolver.scan_full_set()
        return closure + glob_sources(self.config.project_dir, self.config.lib_glob)

    async def build_lib(self, mode: BuildMode) -> Path:
        """
        Build the library bundle.

        Args:
            mode: Build mode selecting the flag overlay

        Returns:
            Path of the written bundle

        Raises:
            DependencyResolutionFailure: If the closure cannot be computed
            CompilationFailure: If the compiler fails
        """
        start_time = time.time()
        bundle_name = self.config.bundle_name

        logger.info("[1/4] Scanning library dependencies...")
        inputs = self.submitted_inputs_lib()
        flags = self.get_compiler_flags(mode)

        logger.info(f"[2/4] Compiling {bundle_name} ({mode.value}, {len(inputs)} files)...")
        result = await self.compiler.compile(inputs, flags, bundle_name)

        logger.info("[3/4] Stripping license headers...")
        output = ''.join(strip_license([result.stdout]))

        logger.info("[4/4] Writing bundle...")
        dist_dir = self.config.dist_dir or self.config.project_dir / 'dist'
        dist_dir.mkdir(parents=True, exist_ok=True)
        bundle_path = dist_dir / bundle_name
        bundle_path.write_text(output, encoding='utf-8')

        logger.info(f"Built {bundle_path} in {time.time() - start_time:.2f}s")
        return bundle_path

    async def build_test(self, target: str) -> None:
        """
        Build the test bundle for a target.

        No step starts before the previous one has finished, and a failure
        at any step aborts the flow.

        Args:
            target: Namespace provided by the target, or path to its file

        Raises:
            ResourceExhaustionError: If the workspace cannot be allocated
            GenerationFailure: If any schema fails to generate
            DependencyResolutionFailure: If the target closure cannot be computed
            CompilationFailure: If the compiler fails
        """
        start_time = time.time()
        schemas = self.config.test_schemas

        logger.info("[1/4] Allocating temporary workspace...")
        with allocate_workspace(parent=self.workspace_parent, keep=self.keep_temp) as workspace:
            logger.info(f"[2/4] Generating {len(schemas)} test schemas...")
            if schemas:
                coordinator = GenerationCoordinator(
                    self.generator, policy=self.policy, show_progress=self.show_progress
                )
                await coordinator.generate_all(schemas, workspace.path)

            logger.info(f"[3/4] Resolving dependencies for {target}...")
            inputs = self.resolver.resolve_target(target, workspace.path)

            logger.info(f"[4/4] Compiling {target} ({len(inputs)} files)...")
            output_path = workspace.new_file(suffix='.js')
            await self.compiler.compile(
                inputs,
                self.get_test_compiler_flags(),
                output_path.name,
                output_path=output_path,
            )

        logger.info(f"Test build for {target} succeeded in {time.time() - start_time:.2f}s")
