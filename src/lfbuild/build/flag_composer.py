"""Compiler Flag Composer.

This module merges compiler flag tables and renders them as command line
arguments for the external compiler.

Design:
    - A flag table maps flag names to values
    - Tables compose left to right, the last table to set a key wins
    - A None value is a bare switch (e.g. --debug)
    - A list value repeats the flag once per item (e.g. --jscomp_error)
    - Tables are composed fresh for every build, never cached
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from ..config.build_config import BuildConfig

FlagValue = Union[str, bool, None, List[str]]
FlagTable = Dict[str, FlagValue]


class BuildMode(Enum):
    """Selects which overlay is composed onto the common flag table."""

    DEBUG = "debug"
    COMPILED = "compiled"

    @classmethod
    def from_string(cls, value: str) -> "BuildMode":
        """Convert a CLI spelling to a BuildMode.

        Raises:
            ValueError: If the value is not a known mode
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(
                f"Unknown build mode '{value}' (expected one of: {choices})"
            ) from None


def compose(*tables: Mapping[str, Any]) -> FlagTable:
    """Merge flag tables into a single new table.

    Args:
        *tables: Flag tables, evaluated left to right

    Returns:
        Union of all keys; for shared keys the rightmost table's value

    Example:
        >>> compose({'a': '1', 'b': '2'}, {'b': '3'})
        {'a': '1', 'b': '3'}
    """
    merged: FlagTable = {}
    for table in tables:
        for key, value in table.items():
            merged[key] = value
    return merged


def get_compiler_flags(config: BuildConfig, mode: BuildMode) -> FlagTable:
    """Compose the common flag table with the overlay for a build mode.

    Args:
        config: Build configuration holding the flag tables
        mode: Active build mode

    Returns:
        Freshly composed flag table
    """
    if mode == BuildMode.DEBUG:
        return compose(config.flags_common, config.flags_debug)
    return compose(config.flags_common, config.flags_opt)


def flags_to_args(flags: Mapping[str, Any]) -> List[str]:
    """Render a flag table as compiler arguments, in table order.

    Args:
        flags: Flag table to render

    Returns:
        List of --name[=value] arguments

    Example:
        >>> flags_to_args({'debug': None, 'js': ['a.js', 'b.js']})
        ['--debug', '--js=a.js', '--js=b.js']
    """
    args = []
    for name, value in flags.items():
        if value is None or value is True:
            args.append(f'--{name}')
        elif value is False:
            args.append(f'--{name}=false')
        elif isinstance(value, (list, tuple)):
            args.extend(f'--{name}={item}' for item in value)
        else:
            args.append(f'--{name}={value}')
    return args
