"""
Text helpers for hyphenation and paragraph prep.
"""

from __future__ import annotations

import re
from functools import lru_cache

from pyphen import Pyphen


WORD_RE = re.compile(r"[A-Za-z]{7,}")


@lru_cache(maxsize=8)
def hyphenator(lang: str) -> Pyphen:
    """Return a cached Pyphen dictionary for ``lang``."""

    return Pyphen(lang=lang)


def hyphenate_text(text: str, dic: Pyphen) -> str:
    """Insert soft hyphens into long words of plain text.

    Only the markup handed to ReportLab is hyphenated; content nodes keep
    their original text.

    Example:
        >>> hyphenate_text('everlasting', Pyphen(lang='en_US'))
        'ev\\xader\\xadlast\\xading'
    """

    def repl(match: re.Match[str]) -> str:
        return dic.inserted(match.group(0), hyphen="\u00ad")

    return WORD_RE.sub(repl, text)
