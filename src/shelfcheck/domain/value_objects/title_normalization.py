"""Title normalization for matching owned releases against catalog entries.

Hey future me - local tags and MusicBrainz almost never agree on the exact title!
"OK Computer (Remastered)" on disk is "OK Computer" in MusicBrainz, "Abbey Road (1969)"
is "Abbey Road", and multi-disc rips come as "The Wall [Disc 1]". This module strips that
noise so the set-difference in the discography analyzer compares like with like.

Examples:
    >>> normalize_release_title("OK Computer (Remastered)")
    'ok computer'
    >>> normalize_release_title("Abbey Road (1969)")
    'abbey road'
    >>> normalize_release_title("The Wall [Disc 1]")
    'the wall'
    >>> normalize_track_title("Don't Stop Me Now")
    'dont stop me now'
"""

import re

# =============================================================================
# PATTERNS
# Order matters: year and edition markers are removed BEFORE punctuation stripping,
# otherwise the parentheses they are anchored on are already gone.
# =============================================================================

_YEAR_IN_PARENS = re.compile(r"\s*\(\d{4}\)\s*")
_EDITION_MARKER = re.compile(
    r"\s*\((Deluxe|Remaster(ed)?|Anniversary|Expanded|Special|Limited|Explicit)"
    r"\s*(Edition|Version)?\)\s*",
    re.IGNORECASE,
)
_DISC_MARKER = re.compile(r"\s*\[?(Disc|CD)\s*\d+\]?\s*", re.IGNORECASE)
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Search cleaning only strips TRAILING markers - a title like "(Disc 1) Sessions" is rare
# but we don't want to turn it into an empty Lucene phrase.
_TRAILING_YEAR = re.compile(r"\s*\(\d{4}\)\s*$")
_TRAILING_EDITION = re.compile(
    r"\s*\((Deluxe|Remaster(ed)?|Anniversary|Expanded|Special|Limited)"
    r"\s*(Edition|Version)?\)\s*$",
    re.IGNORECASE,
)
_TRAILING_DISC = re.compile(r"\s*\[?(Disc|CD)\s*\d+\]?\s*$", re.IGNORECASE)


def normalize_release_title(title: str | None) -> str:
    """Normalize an album/EP/single title for set comparison."""
    if not title:
        return ""

    cleaned = _YEAR_IN_PARENS.sub(" ", title)
    cleaned = _EDITION_MARKER.sub(" ", cleaned)
    cleaned = _DISC_MARKER.sub(" ", cleaned)
    cleaned = _PUNCTUATION.sub("", cleaned.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_track_title(title: str | None) -> str:
    """Normalize a track title: lowercase, no punctuation, single spaces."""
    if not title:
        return ""

    cleaned = _PUNCTUATION.sub("", title.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def clean_title_for_search(title: str) -> str:
    """Strip trailing year/edition/disc suffixes before a catalog search."""
    cleaned = _TRAILING_YEAR.sub("", title)
    cleaned = _TRAILING_EDITION.sub("", cleaned)
    cleaned = _TRAILING_DISC.sub("", cleaned)
    return cleaned.strip()


__all__ = [
    "clean_title_for_search",
    "normalize_release_title",
    "normalize_track_title",
]
