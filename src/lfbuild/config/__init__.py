"""Configuration loading for lfbuild."""

from .build_config import (
    CONFIG_FILE_NAME,
    BuildConfig,
    SchemaDescriptor,
    load_build_config,
    parse_flag_value,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "BuildConfig",
    "SchemaDescriptor",
    "load_build_config",
    "parse_flag_value",
]
