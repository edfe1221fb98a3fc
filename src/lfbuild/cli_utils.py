"""CLI utility functions for lfbuild.

This module provides common utilities used across CLI commands including:
- Logging setup
- Error handling and formatting
- Project directory validation
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import Optional

from lfbuild.config import CONFIG_FILE_NAME
from lfbuild.errors import BuildError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_console_handler: Optional[logging.Handler] = None


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr.

    Calling it again replaces the handler installed by the previous call.

    Args:
        verbose: Log phase progress (INFO) instead of only warnings
    """
    global _console_handler

    logger = logging.getLogger()
    logger.setLevel(logging.INFO if verbose else logging.WARNING)

    if _console_handler is not None:
        logger.removeHandler(_console_handler)

    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_console_handler)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Build failed!")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        """Print formatted success message."""
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        """Print formatted warning message."""
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_build_error(error: BuildError) -> None:
        """Report a failed build flow and exit with status 1."""
        ErrorFormatter.print_error("Build failed!", str(error))
        sys.exit(1)

    @staticmethod
    def handle_file_not_found(error: FileNotFoundError) -> None:
        """Handle FileNotFoundError with standard formatting."""
        ErrorFormatter.print_error("Error: File not found", str(error))
        print(f"Make sure you're in a project directory with an {CONFIG_FILE_NAME} file.")
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates project paths and directories."""

    @staticmethod
    def validate_project_dir(project_dir: Path) -> None:
        """Validate that project directory exists and is a directory.

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not project_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
        if not project_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
