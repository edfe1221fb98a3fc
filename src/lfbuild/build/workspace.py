"""Temporary workspace allocation.

A workspace is a uniquely named scratch directory owned by a single build
invocation. Generated sources and throwaway compiler output live in it.
Uniqueness is delegated to the tempfile module.

Usage:
    with allocate_workspace() as workspace:
        output = workspace.new_file(suffix=".js")
        ...
    # directory removed here, on success or failure
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..errors import ResourceExhaustionError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "lfbuild-"


class TemporaryWorkspace:
    """Scoped scratch directory for one build invocation.

    Leaving the context removes the directory unless keep is set, in which
    case it is left on disk for inspection.
    """

    def __init__(self, path: Path, keep: bool = False):
        self.path = path
        self.keep = keep
        self._released = False

    def new_file(self, suffix: str = "", prefix: str = "out-") -> Path:
        """Allocate a uniquely named empty file inside the workspace.

        Args:
            suffix: File name suffix (e.g. ".js")
            prefix: File name prefix

        Returns:
            Path to the new file

        Raises:
            ResourceExhaustionError: If the file cannot be created
        """
        try:
            fd, name = tempfile.mkstemp(suffix=suffix, prefix=prefix, dir=self.path)
        except OSError as e:
            raise ResourceExhaustionError(self.path, str(e)) from e
        os.close(fd)
        return Path(name)

    def release(self) -> None:
        """Remove the workspace directory. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        if self.keep:
            logger.info(f"Keeping temporary workspace {self.path}")
            return

        shutil.rmtree(self.path, ignore_errors=True)
        logger.debug(f"Removed temporary workspace {self.path}")

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> "TemporaryWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"TemporaryWorkspace({str(self.path)!r}, keep={self.keep})"


def allocate_workspace(
    prefix: str = WORKSPACE_PREFIX,
    parent: Optional[Path] = None,
    keep: bool = False
) -> TemporaryWorkspace:
    """Allocate a uniquely named temporary directory.

    Args:
        prefix: Directory name prefix
        parent: Directory to create the workspace in (system temp dir if None)
        keep: Leave the directory on disk when the workspace is released

    Returns:
        TemporaryWorkspace owning the new directory

    Raises:
        ResourceExhaustionError: If the directory cannot be created
    """
    location = parent if parent is not None else tempfile.gettempdir()
    try:
        path = tempfile.mkdtemp(prefix=prefix, dir=parent)
    except OSError as e:
        logger.error(f"Failed to allocate workspace in {location}: {e}")
        raise ResourceExhaustionError(location, str(e)) from e

    logger.debug(f"Allocated temporary workspace {path}")
    return TemporaryWorkspace(Path(path), keep=keep)
