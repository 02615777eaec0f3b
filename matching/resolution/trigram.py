"""
Character trigram similarity with pg_trgm semantics.

Words are lowercased runs of alphanumerics, each padded with two leading
blanks and one trailing blank before 3-grams are taken:

    "cat" -> {"  c", " ca", "cat", "at "}

The in-process fallback scan uses similarity() so it ranks exactly like a
PostgreSQL trigram index would.
"""

import math
import re

_WORD_RE = re.compile(r"[^\W_]+")


def trigrams(text: str) -> frozenset[str]:
    """Trigram set of a string (empty for strings with no alphanumerics)."""
    grams = set()
    for word in _WORD_RE.findall(text.lower()):
        padded = f"  {word} "
        grams.update(padded[i:i + 3] for i in range(len(padded) - 2))
    return frozenset(grams)


def similarity(a: str, b: str) -> float:
    """pg_trgm similarity(): shared trigrams over all distinct trigrams."""
    ta, tb = trigrams(a), trigrams(b)
    if not ta or not tb:
        return 0.0
    shared = len(ta & tb)
    return shared / (len(ta) + len(tb) - shared)


def cosine_similarity(a: str, b: str) -> float:
    """Cosine of the two trigram indicator vectors."""
    ta, tb = trigrams(a), trigrams(b)
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / math.sqrt(len(ta) * len(tb))
