"""
lfbuild.ini configuration loader.

This module reads the static build configuration (compiler paths, flag
tables, test schemas) from an INI file into an immutable BuildConfig value
that is passed explicitly into every build invocation.

Example lfbuild.ini:
    [paths]
    compiler = tools/closure-compiler.jar
    closure_library = node_modules/google-closure-library/closure/goog
    codegen = spac/spac.js

    [flags.common]
    compilation_level = ADVANCED
    jscomp_error =
        accessControls
        checkTypes

    [flags.debug]
    debug

    [schema:hr]
    file = testing/hr_schema.yaml
    namespace = hr.db
"""

import configparser
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import ConfigError

CONFIG_FILE_NAME = "lfbuild.ini"


@dataclass(frozen=True)
class SchemaDescriptor:
    """One code generation unit: a schema file and its target namespace."""

    file: Path
    namespace: str


@dataclass(frozen=True)
class BuildConfig:
    """Static configuration consumed by the build pipeline.

    Flag tables are stored as read-only mappings; compose them into a fresh
    table per build rather than mutating them.
    """

    project_dir: Path
    compiler_path: Path
    closure_library_path: Optional[Path] = None
    codegen_path: Optional[Path] = None
    dist_dir: Optional[Path] = None
    java: str = "java"
    node: str = "node"
    bundle_name: str = "lf.js"
    lib_glob: str = "lib/**/*.js"
    source_roots: Tuple[Path, ...] = ()
    flags_common: Mapping[str, Any] = field(default_factory=dict)
    flags_debug: Mapping[str, Any] = field(default_factory=dict)
    flags_opt: Mapping[str, Any] = field(default_factory=dict)
    test_schemas: Tuple[SchemaDescriptor, ...] = ()
    codegen_timeout: Optional[float] = 300.0
    compile_timeout: Optional[float] = 600.0
    response_file_threshold: int = 200

    def __post_init__(self) -> None:
        for name in ("flags_common", "flags_debug", "flags_opt"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "source_roots", tuple(self.source_roots))
        object.__setattr__(self, "test_schemas", tuple(self.test_schemas))
        if self.dist_dir is None:
            object.__setattr__(self, "dist_dir", self.project_dir / "dist")

    @property
    def codegen_command(self) -> List[str]:
        """Command prefix that runs the external code generator.

        Raises:
            ConfigError: If no generator is configured
        """
        if self.codegen_path is None:
            raise ConfigError("No code generator configured ([paths] codegen)")
        return [self.node, str(self.codegen_path)]

    @property
    def search_roots(self) -> List[Path]:
        """Directories scanned for JavaScript sources, closure library first."""
        roots = []
        if self.closure_library_path is not None:
            roots.append(self.closure_library_path)
        roots.extend(self.source_roots)
        return roots

    @classmethod
    def from_ini(cls, ini_path: Path) -> "BuildConfig":
        """Load configuration from an lfbuild.ini file.

        Relative paths are resolved against the directory holding the file.

        Args:
            ini_path: Path to the configuration file

        Returns:
            Populated BuildConfig

        Raises:
            ConfigError: If the file is missing, unparsable or incomplete
        """
        ini_path = Path(ini_path)
        if not ini_path.exists():
            raise ConfigError(f"Configuration file not found: {ini_path}")

        parser = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )
        # Flag names are case sensitive
        parser.optionxform = str  # type: ignore[assignment,method-assign]

        try:
            parser.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigError(f"Failed to parse {ini_path}: {e}") from e

        # Interpolation errors surface only when a value is read
        try:
            return cls._from_parser(parser, ini_path)
        except configparser.Error as e:
            raise ConfigError(f"Invalid value in {ini_path}: {e}") from e

    @classmethod
    def _from_parser(
        cls, parser: configparser.ConfigParser, ini_path: Path
    ) -> "BuildConfig":
        project_dir = ini_path.parent.resolve()
        paths = parser["paths"] if parser.has_section("paths") else {}
        build = parser["build"] if parser.has_section("build") else {}

        compiler = paths.get("compiler")
        if not compiler:
            raise ConfigError(f"{ini_path} is missing required setting [paths] compiler")

        def resolve(value: Optional[str]) -> Optional[Path]:
            if not value:
                return None
            return (project_dir / value.strip()).resolve()

        try:
            codegen_timeout = _parse_timeout(build.get("codegen_timeout"), 300.0)
            compile_timeout = _parse_timeout(build.get("compile_timeout"), 600.0)
            threshold = int(build.get("response_file_threshold") or 200)
        except ValueError as e:
            raise ConfigError(f"Invalid [build] setting in {ini_path}: {e}") from e

        source_roots = [
            resolve(root) for root in _split_lines(build.get("source_roots") or "")
        ]

        return cls(
            project_dir=project_dir,
            compiler_path=resolve(compiler),  # type: ignore[arg-type]
            closure_library_path=resolve(paths.get("closure_library")),
            codegen_path=resolve(paths.get("codegen")),
            dist_dir=resolve(paths.get("dist")) or project_dir / "dist",
            java=(build.get("java") or "java").strip(),
            node=(build.get("node") or "node").strip(),
            bundle_name=(build.get("bundle_name") or "lf.js").strip(),
            lib_glob=(build.get("lib_glob") or "lib/**/*.js").strip(),
            source_roots=tuple(root for root in source_roots if root is not None),
            flags_common=_read_flag_table(parser, "flags.common"),
            flags_debug=_read_flag_table(parser, "flags.debug"),
            flags_opt=_read_flag_table(parser, "flags.opt"),
            test_schemas=tuple(_read_schemas(parser, project_dir)),
            codegen_timeout=codegen_timeout,
            compile_timeout=compile_timeout,
            response_file_threshold=threshold,
        )


def load_build_config(project_dir: Path) -> BuildConfig:
    """Load lfbuild.ini from a project directory."""
    return BuildConfig.from_ini(Path(project_dir) / CONFIG_FILE_NAME)


def parse_flag_value(raw: Optional[str]) -> Any:
    """Convert a raw INI value into a flag value.

    A key without a value is the None sentinel (a bare switch). A value that
    spans lines is a list with one entry per non-empty line. The words true
    and false become booleans. Anything else is kept as a string.

    Example:
        >>> parse_flag_value("\\naccessControls\\ncheckTypes")
        ['accessControls', 'checkTypes']
    """
    if raw is None:
        return None
    if raw.startswith("\n") or "\n" in raw.strip():
        return _split_lines(raw)

    value = raw.strip()
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    return value


def _read_flag_table(parser: configparser.ConfigParser, section: str) -> Dict[str, Any]:
    if not parser.has_section(section):
        return {}
    return {key: parse_flag_value(parser[section][key]) for key in parser[section]}


def _read_schemas(
    parser: configparser.ConfigParser, project_dir: Path
) -> List[SchemaDescriptor]:
    schemas = []
    for section in parser.sections():
        if not section.startswith("schema:"):
            continue
        file_value = parser[section].get("file")
        namespace = parser[section].get("namespace")
        if not file_value or not namespace:
            raise ConfigError(
                f"Section [{section}] requires both 'file' and 'namespace'"
            )
        schemas.append(
            SchemaDescriptor(
                file=(project_dir / file_value.strip()).resolve(),
                namespace=namespace.strip(),
            )
        )
    return schemas


def _split_lines(value: str) -> List[str]:
    return [line.strip() for line in value.splitlines() if line.strip()]


def _parse_timeout(value: Optional[str], default: float) -> Optional[float]:
    if value is None or not value.strip():
        return default
    if value.strip().lower() == "none":
        return None
    return float(value)
