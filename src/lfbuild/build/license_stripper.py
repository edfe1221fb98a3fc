"""License header removal for compiled output.

The compiler preserves every /** @license ... */ block it sees, so a bundle
built from many sources repeats the same header many times. The stripper
removes those blocks from each output unit and leaves everything else,
including string literals, unit boundaries and ordering, untouched.
"""

import re
from typing import Iterable, Iterator

from .js_source import replace_comments

LICENSE_TAG = "@license"


def _drop_license_block(match: re.Match) -> str:
    comment = match.group('block_comment')
    if comment is not None and LICENSE_TAG in comment:
        return ""
    return match.group(0)


def strip_license_text(text: str) -> str:
    """Remove every license comment block from a piece of text.

    Example:
        >>> strip_license_text("/** @license MIT */\\nvar a=1;")
        'var a=1;'
    """
    return replace_comments(text, _drop_license_block)


def strip_license(units: Iterable[str]) -> Iterator[str]:
    """Strip license blocks from a stream of output units.

    Args:
        units: Compiler output units, in order

    Yields:
        One stripped unit per input unit, in the same order
    """
    for unit in units:
        yield strip_license_text(unit)
