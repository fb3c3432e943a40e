"""
Whitespace and soft-hyphen cleanup for text leaving the content tree.
"""

import re


_INVISIBLE = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
_NBSP = re.compile("[\u00a0\u202f]")
_RUNS = re.compile(r"[ \t\r\f\v]+")
_ALL_RUNS = re.compile(r"\s+")
_SOFT_HYPHEN = "\u00ad"


def normalize_whitespace(value: str, *, keep_newlines: bool = True) -> str:
    """Collapse spacing runs to one ASCII space and drop invisible characters.

    Args:
        value: Raw text.
        keep_newlines: When False, line breaks collapse like any other space.
    Returns:
        Stripped text.

    Example:
        >>> normalize_whitespace("a\\u00a0 b\\u200bc")
        'a bc'
        >>> normalize_whitespace("a\\n b", keep_newlines=False)
        'a b'
    """

    text = _INVISIBLE.sub("", _NBSP.sub(" ", value))
    pattern = _RUNS if keep_newlines else _ALL_RUNS
    return pattern.sub(" ", text).strip()


def strip_soft_hyphens(value: str) -> str:
    """Remove soft hyphens inserted for line breaking."""

    return value.replace(_SOFT_HYPHEN, "")


def clean_lines(value: str) -> str:
    """Trim every line and drop the blank ones.

    Example:
        >>> clean_lines("  a \\n\\n b")
        'a\\nb'
    """

    lines = (normalize_whitespace(line) for line in value.splitlines())
    return "\n".join(line for line in lines if line)
