"""
Dependency discovery for Closure-style JavaScript sources.

This module handles:
- Scanning source roots for goog.provide / goog.module / goog.require
- Computing the dependency closure needed by the library sources
- Computing the transitive closure needed to compile a single target,
  optionally searching an extra directory of generated code
- Returning every closure in dependency order (dependencies first)
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..config.build_config import BuildConfig
from ..errors import DependencyResolutionFailure
from .js_source import strip_comments

logger = logging.getLogger(__name__)


def glob_sources(base_dir: Path, pattern: str) -> List[Path]:
    """Sorted files under base_dir matching a glob pattern."""
    return sorted(path for path in Path(base_dir).glob(pattern) if path.is_file())


@dataclass
class SourceInfo:
    """Namespaces declared and consumed by one source file."""

    path: Path
    provides: List[str] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)


class IDependencyResolver(ABC):
    """Interface for computing the files handed to the compiler."""

    @abstractmethod
    def scan_full_set(self) -> List[Path]:
        """Get the dependency closure required by the library sources.

        Returns:
            Ordered list of files, dependencies first

        Raises:
            DependencyResolutionFailure: If the closure cannot be computed
        """
        pass

    @abstractmethod
    def resolve_target(self, target: str, extra_search_dir: Optional[Path] = None) -> List[Path]:
        """Get the transitive closure of files needed to compile a target.

        Args:
            target: Namespace provided by the target, or path to its file
            extra_search_dir: Additional directory searched for providers

        Returns:
            Ordered list of files ending with the target, dependencies first

        Raises:
            DependencyResolutionFailure: If the target or a dependency
                cannot be found, or dependencies are circular
        """
        pass


class ClosureDependencyResolver(IDependencyResolver):
    """
    Resolves dependencies by scanning goog.provide / goog.require calls.

    The resolver:
    1. Scans every .js file under the search roots
    2. Maps each provided namespace to the file providing it
    3. Walks requires depth first, in source order, emitting each file after
       its dependencies
    4. Puts the closure library's base.js first when it is present
    """

    PROVIDE_PATTERN = re.compile(r"""goog\.(?:provide|module)\(\s*['"]([\w.$]+)['"]\s*\)""")
    REQUIRE_PATTERN = re.compile(r"""goog\.require(?:Type)?\(\s*['"]([\w.$]+)['"]\s*\)""")

    # Directories to exclude from scanning
    EXCLUDED_DIRS = {'.git', '__pycache__', 'dist'}

    def __init__(
        self,
        project_dir: Path,
        search_roots: Iterable[Path],
        lib_glob: str = "lib/**/*.js",
        closure_library_path: Optional[Path] = None
    ):
        """
        Initialize the resolver.

        Args:
            project_dir: Root project directory (lib_glob is relative to it)
            search_roots: Directories scanned for providers
            lib_glob: Glob matching the library's own sources
            closure_library_path: Closure library directory holding base.js
        """
        self.project_dir = Path(project_dir)
        self.search_roots = [Path(root) for root in search_roots]
        self.lib_glob = lib_glob
        self.closure_library_path = closure_library_path

    @classmethod
    def from_config(cls, config: BuildConfig) -> "ClosureDependencyResolver":
        return cls(
            project_dir=config.project_dir,
            search_roots=config.search_roots,
            lib_glob=config.lib_glob,
            closure_library_path=config.closure_library_path,
        )

    def scan_full_set(self) -> List[Path]:
        lib_files = glob_sources(self.project_dir, self.lib_glob)
        sources = self._scan_roots(self.search_roots)
        for path in lib_files:
            if path not in sources:
                sources[path] = self.parse_file(path)

        closure = self._closure(lib_files, sources)
        lib_set = set(lib_files)
        full_set = [path for path in closure if path not in lib_set]

        logger.info(
            f"Library closure: {len(full_set)} dependencies for {len(lib_files)} library files"
        )
        return full_set

    def resolve_target(self, target: str, extra_search_dir: Optional[Path] = None) -> List[Path]:
        roots = list(self.search_roots)
        if extra_search_dir is not None:
            roots.append(Path(extra_search_dir))
        sources = self._scan_roots(roots)

        target_file = self._find_target(target, sources)
        closure = self._closure([target_file], sources)

        logger.info(f"Resolved {len(closure)} files for target {target}")
        return closure

    @classmethod
    def parse_file(cls, path: Path) -> SourceInfo:
        """
        Extract provided and required namespaces from a source file.

        Commented-out goog calls are ignored.

        Args:
            path: JavaScript source file

        Returns:
            SourceInfo for the file
        """
        try:
            content = path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            raise DependencyResolutionFailure(path, f"unreadable source file: {e}") from e

        content = strip_comments(content)

        return SourceInfo(
            path=path,
            provides=cls.PROVIDE_PATTERN.findall(content),
            requires=cls.REQUIRE_PATTERN.findall(content),
        )

    def _scan_roots(self, roots: List[Path]) -> Dict[Path, SourceInfo]:
        sources: Dict[Path, SourceInfo] = {}
        for root in roots:
            if not root.exists():
                logger.debug(f"Skipping missing search root {root}")
                continue
            for path in sorted(root.rglob('*.js')):
                if self.EXCLUDED_DIRS.intersection(path.relative_to(root).parts[:-1]):
                    continue
                if path not in sources:
                    sources[path] = self.parse_file(path)
        return sources

    def _find_target(self, target: str, sources: Dict[Path, SourceInfo]) -> Path:
        if target.endswith('.js'):
            path = Path(target)
            if not path.is_absolute():
                path = self.project_dir / path
            if not path.is_file():
                raise DependencyResolutionFailure(target, "target file does not exist")
            if path not in sources:
                sources[path] = self.parse_file(path)
            return path

        for info in sources.values():
            if target in info.provides:
                return info.path
        raise DependencyResolutionFailure(target, "no file provides this namespace")

    def _closure(self, entries: List[Path], sources: Dict[Path, SourceInfo]) -> List[Path]:
        providers: Dict[str, Path] = {}
        for info in sources.values():
            for namespace in info.provides:
                if namespace in providers and providers[namespace] != info.path:
                    logger.debug(
                        f"Namespace {namespace} provided by both {providers[namespace]} "
                        f"and {info.path}, using the former"
                    )
                    continue
                providers[namespace] = info.path

        ordered: List[Path] = []
        visited: Set[Path] = set()
        visiting: List[Path] = []

        def visit(path: Path) -> None:
            if path in visited:
                return
            if path in visiting:
                cycle = visiting[visiting.index(path):] + [path]
                raise DependencyResolutionFailure(
                    path, "circular dependency: " + " -> ".join(p.name for p in cycle)
                )

            visiting.append(path)
            for namespace in sources[path].requires:
                dependency = providers.get(namespace)
                if dependency is None:
                    raise DependencyResolutionFailure(
                        path, f"missing provider for namespace '{namespace}'"
                    )
                visit(dependency)
            visiting.pop()

            visited.add(path)
            ordered.append(path)

        for entry in entries:
            visit(entry)

        base_js = self._base_js()
        if base_js is not None:
            ordered = [base_js] + [path for path in ordered if path != base_js]
        return ordered

    def _base_js(self) -> Optional[Path]:
        if self.closure_library_path is None:
            return None
        base_js = self.closure_library_path / 'base.js'
        return base_js if base_js.is_file() else None
