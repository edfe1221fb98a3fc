"""
Build system components for lfbuild.

This module provides the build orchestration implementation including:
- Compiler flag composition
- Temporary workspace allocation
- Code generation (single schema and parallel fan-out)
- Dependency closure resolution
- Compiler invocation and license stripping
- The library and test build pipelines
"""

from .codegen import CodeGenerator, GenerationState, GenerationTask
from .compiler import ClosureCompiler, CompileResult, ICompiler
from .coordinator import GenerationCoordinator, SiblingPolicy
from .dependency_resolver import (
    ClosureDependencyResolver,
    IDependencyResolver,
    SourceInfo,
    glob_sources,
)
from .flag_composer import BuildMode, compose, flags_to_args, get_compiler_flags
from .license_stripper import strip_license, strip_license_text
from .pipeline import TEST_ONLY_FLAGS, BuildPipeline
from .workspace import TemporaryWorkspace, allocate_workspace

__all__ = [
    'BuildMode',
    'BuildPipeline',
    'ClosureCompiler',
    'ClosureDependencyResolver',
    'CodeGenerator',
    'CompileResult',
    'GenerationCoordinator',
    'GenerationState',
    'GenerationTask',
    'ICompiler',
    'IDependencyResolver',
    'SiblingPolicy',
    'SourceInfo',
    'TEST_ONLY_FLAGS',
    'TemporaryWorkspace',
    'allocate_workspace',
    'compose',
    'flags_to_args',
    'get_compiler_flags',
    'glob_sources',
    'strip_license',
    'strip_license_text',
]
