"""
Command-line interface for lfbuild.

This module provides the `lfbuild` CLI tool for building the library and
test bundles.
"""

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from lfbuild import __version__
from lfbuild.build import BuildMode, BuildPipeline, CodeGenerator, SiblingPolicy
from lfbuild.cli_utils import ErrorFormatter, PathValidator, setup_logging
from lfbuild.config import SchemaDescriptor, load_build_config
from lfbuild.errors import BuildError


@dataclass
class LibArgs:
    """Arguments for the lib command."""

    project_dir: Path
    mode: BuildMode = BuildMode.COMPILED
    verbose: bool = False


@dataclass
class BuildTestArgs:
    """Arguments for the test command."""

    project_dir: Path
    target: str
    keep_temp: bool = False
    cancel_on_failure: bool = False
    verbose: bool = False


@dataclass
class CodegenArgs:
    """Arguments for the codegen command."""

    project_dir: Path
    schema: Path
    namespace: str
    output_dir: Path
    verbose: bool = False


def lib_command(args: LibArgs) -> None:
    """Build the library bundle.

    Examples:
        lfbuild lib                    # Optimized bundle for current directory
        lfbuild lib --mode debug       # Debug bundle
        lfbuild lib path/to/project    # Build specific project
    """
    print(f"lfbuild v{__version__}")
    print()

    try:
        config = load_build_config(args.project_dir)
        pipeline = BuildPipeline(config)

        print(f"Building {config.bundle_name} ({args.mode.value})...")
        start_time = time.time()
        bundle_path = asyncio.run(pipeline.build_lib(args.mode))
        build_time = time.time() - start_time

        ErrorFormatter.print_success("Build successful!")
        print()
        print(f"Bundle: {bundle_path}")
        print(f"Build time: {build_time:.2f}s")
        sys.exit(0)

    except BuildError as e:
        ErrorFormatter.handle_build_error(e)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def test_command(args: BuildTestArgs) -> None:
    """Build the test bundle for a target.

    Examples:
        lfbuild test -t lf.testing.hrSchema.getSchemaBuilder
        lfbuild test -t testing/hr_schema_test.js --keep-temp
    """
    print(f"lfbuild v{__version__}")
    print()

    try:
        config = load_build_config(args.project_dir)
        policy = SiblingPolicy.CANCEL if args.cancel_on_failure else SiblingPolicy.DRAIN
        pipeline = BuildPipeline(
            config,
            policy=policy,
            show_progress=args.verbose,
            keep_temp=args.keep_temp,
        )

        print(f"Building test target {args.target}...")
        start_time = time.time()
        asyncio.run(pipeline.build_test(args.target))
        build_time = time.time() - start_time

        ErrorFormatter.print_success("Test build successful!")
        print()
        print(f"Build time: {build_time:.2f}s")
        sys.exit(0)

    except BuildError as e:
        ErrorFormatter.handle_build_error(e)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def codegen_command(args: CodegenArgs) -> None:
    """Generate code for a single schema.

    Examples:
        lfbuild codegen --schema testing/hr_schema.yaml --namespace hr.db --output-dir gen
    """
    try:
        config = load_build_config(args.project_dir)
        generator = CodeGenerator.from_config(config)
        schema = SchemaDescriptor(file=args.schema.resolve(), namespace=args.namespace)

        args.output_dir.mkdir(parents=True, exist_ok=True)
        asyncio.run(generator.generate(schema, args.output_dir.resolve()))

        ErrorFormatter.print_success(f"Generated {args.namespace} into {args.output_dir}")
        sys.exit(0)

    except BuildError as e:
        ErrorFormatter.handle_build_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory containing lfbuild.ini (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def main(argv: Optional[list] = None) -> None:
    """lfbuild - build orchestration for the library and test bundles."""
    parser = argparse.ArgumentParser(
        prog="lfbuild",
        description="Build the library and test bundles",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"lfbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Lib command
    lib_parser = subparsers.add_parser(
        "lib",
        help="Build the library bundle",
    )
    _add_common_arguments(lib_parser)
    lib_parser.add_argument(
        "-m",
        "--mode",
        choices=[mode.value for mode in BuildMode],
        default=BuildMode.COMPILED.value,
        help="Build mode (default: compiled)",
    )

    # Test command
    test_parser = subparsers.add_parser(
        "test",
        help="Build the test bundle for a target",
    )
    _add_common_arguments(test_parser)
    test_parser.add_argument(
        "-t",
        "--target",
        required=True,
        help="Namespace or source file of the target to compile",
    )
    test_parser.add_argument(
        "--keep-temp",
        action="store_true",
        help="Keep the temporary workspace after the build",
    )
    test_parser.add_argument(
        "--cancel-on-failure",
        action="store_true",
        help="Kill running code generators as soon as one fails",
    )

    # Codegen command
    codegen_parser = subparsers.add_parser(
        "codegen",
        help="Generate code for a single schema",
    )
    _add_common_arguments(codegen_parser)
    codegen_parser.add_argument(
        "--schema",
        required=True,
        type=Path,
        help="Schema file to generate code from",
    )
    codegen_parser.add_argument(
        "--namespace",
        required=True,
        help="Namespace of the generated code",
    )
    codegen_parser.add_argument(
        "-o",
        "--output-dir",
        required=True,
        type=Path,
        help="Directory receiving the generated files",
    )

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    PathValidator.validate_project_dir(parsed_args.project_dir)
    setup_logging(parsed_args.verbose)

    # Execute command
    if parsed_args.command == "lib":
        lib_command(LibArgs(
            project_dir=parsed_args.project_dir,
            mode=BuildMode.from_string(parsed_args.mode),
            verbose=parsed_args.verbose,
        ))
    elif parsed_args.command == "test":
        test_command(BuildTestArgs(
            project_dir=parsed_args.project_dir,
            target=parsed_args.target,
            keep_temp=parsed_args.keep_temp,
            cancel_on_failure=parsed_args.cancel_on_failure,
            verbose=parsed_args.verbose,
        ))
    elif parsed_args.command == "codegen":
        codegen_command(CodegenArgs(
            project_dir=parsed_args.project_dir,
            schema=parsed_args.schema,
            namespace=parsed_args.namespace,
            output_dir=parsed_args.output_dir,
            verbose=parsed_args.verbose,
        ))


if __name__ == "__main__":
    main()
