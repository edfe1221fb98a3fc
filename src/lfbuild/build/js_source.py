"""
Comment handling for JavaScript source text.

A single left-to-right scan recognises string literals ('...', "..." and
`...`) alongside comments, so a comment opener inside a string is never
taken for a real comment.
"""

import re
from typing import Callable

TOKEN_PATTERN = re.compile(
    r"""
    (?P<string>
        '(?:\\.|[^'\\\n])*'
      | "(?:\\.|[^"\\\n])*"
      | `(?:\\.|[^`\\])*`
    )
  | (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*.*?\*/)(?P<trailing>[ \t]*\n?)
    """,
    re.VERBOSE | re.DOTALL,
)


def replace_comments(text: str, replace: Callable[[re.Match], str]) -> str:
    """Rewrite every comment in text, leaving string literals untouched.

    Args:
        text: JavaScript source
        replace: Called with each comment match; returns its replacement.
            Block comment matches include the spaces and newline that follow
            them in the 'trailing' group.

    Returns:
        The rewritten text
    """
    def substitute(match: re.Match) -> str:
        if match.group('string') is not None:
            return match.group(0)
        return replace(match)

    return TOKEN_PATTERN.sub(substitute, text)


def strip_comments(text: str) -> str:
    """Remove all comments, keeping line breaks so line structure survives."""
    def blank(match: re.Match) -> str:
        if match.group('block_comment') is not None:
            return ' ' + match.group('trailing')
        return ''

    return replace_comments(text, blank)
