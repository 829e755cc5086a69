"""Release group types and discography categories (MusicBrainz dual type system).

Hey future me - MusicBrainz gives every release group TWO type dimensions:
1. PRIMARY TYPE: the main category (Album, EP, Single, ...)
2. SECONDARY TYPES: modifiers (Compilation, Live, Soundtrack, ...)

Completeness only cares about three buckets: studio albums, EPs, singles. A live album
is primary=Album + secondary=[Live] and must NOT count as a missing studio album,
otherwise every artist with a bootleg-heavy discography looks 20% complete.

Example combinations:
- "Nevermind": primary=Album, secondary=[]              -> ReleaseCategory.ALBUM
- "MTV Unplugged in New York": primary=Album, [Live]    -> excluded
- "Greatest Hits": primary=Album, [Compilation]         -> excluded
- "Teen Spirit" single: primary=Single                  -> ReleaseCategory.SINGLE

Usage:
    from shelfcheck.domain.value_objects.album_types import classify_release_group

    category = classify_release_group("Album", ["Live"])  # None
"""

from collections.abc import Iterable
from enum import Enum


class PrimaryAlbumType(str, Enum):
    """Primary release group type - exactly one per release group.

    Values are the lowercase MusicBrainz spellings.
    """

    ALBUM = "album"
    """Standard full-length album."""

    EP = "ep"
    """Extended Play - longer than a single, shorter than an album."""

    SINGLE = "single"
    """Single release - typically 1-3 tracks."""

    BROADCAST = "broadcast"
    """Radio broadcast recording."""

    OTHER = "other"
    """Anything that doesn't fit other categories."""

    @classmethod
    def from_string(cls, value: str | None) -> "PrimaryAlbumType | None":
        """Parse a MusicBrainz primary type, returning None if absent or unknown.

        Unlike a library import, a release group without primary type must not be
        silently promoted to ALBUM - it would inflate the album total.
        """
        if not value:
            return None

        normalized = value.lower().strip()
        try:
            return cls(normalized)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


class SecondaryAlbumType(str, Enum):
    """Secondary release group type - modifiers that can be combined."""

    COMPILATION = "compilation"
    SOUNDTRACK = "soundtrack"
    LIVE = "live"
    REMIX = "remix"
    DJ_MIX = "dj-mix"
    MIXTAPE = "mixtape/street"
    DEMO = "demo"
    SPOKENWORD = "spokenword"
    INTERVIEW = "interview"
    AUDIOBOOK = "audiobook"
    AUDIO_DRAMA = "audio drama"
    FIELD_RECORDING = "field recording"

    @classmethod
    def from_string(cls, value: str | None) -> "SecondaryAlbumType | None":
        """Parse string to enum, returning None if unknown."""
        if not value:
            return None

        normalized = value.lower().strip()
        try:
            return cls(normalized)
        except ValueError:
            pass

        # MusicBrainz spells this one "Mixtape/Street", older dumps just "Mixtape"
        if normalized == "mixtape":
            return cls.MIXTAPE
        return None

    def __str__(self) -> str:
        return self.value


class ReleaseCategory(str, Enum):
    """Discography bucket a release group is counted in."""

    ALBUM = "album"
    EP = "ep"
    SINGLE = "single"

    @property
    def weight(self) -> int:
        """Weight of one release of this category in the weighted percentage."""
        return CATEGORY_WEIGHTS[self]

    def __str__(self) -> str:
        return self.value


# Albums count triple, EPs double, singles once.
CATEGORY_WEIGHTS: dict[ReleaseCategory, int] = {
    ReleaseCategory.ALBUM: 3,
    ReleaseCategory.EP: 2,
    ReleaseCategory.SINGLE: 1,
}

# Secondary types that disqualify a primary=Album group from the studio album bucket.
EXCLUDED_ALBUM_SECONDARY_TYPES: frozenset[SecondaryAlbumType] = frozenset(
    {
        SecondaryAlbumType.COMPILATION,
        SecondaryAlbumType.LIVE,
        SecondaryAlbumType.SOUNDTRACK,
    }
)

# =============================================================================
# MEDIUM FORMATS
# Hey future me - these drive the opt-in "exclude vinyl-only" filter. Matching is
# case-insensitive SUBSTRING matching ("12\" Vinyl" contains "vinyl"), so keep entries
# as MusicBrainz spells them. Cassette counts as "digital" here: it's obtainable, and
# the filter exists for audiophile vinyl-only pressings, not for old tapes.
# =============================================================================

DIGITAL_FORMATS: tuple[str, ...] = (
    "CD",
    "Digital Media",
    "Enhanced CD",
    "CD-R",
    "HDCD",
    "DualDisc",
    "SACD",
    "Hybrid SACD",
    "SHM-CD",
    "Blu-spec CD",
    "Blu-spec CD2",
    "USB Flash Drive",
    "slotMusic",
    "UMD",
    "Cassette",
    '8cm CD',
)

VINYL_FORMATS: tuple[str, ...] = (
    "Vinyl",
    '7" Vinyl',
    '10" Vinyl',
    '12" Vinyl',
    "Flexi-disc",
    "Shellac",
    "Acetate",
    "Lathe Cut",
)


def classify_release_group(
    primary_type: str | None, secondary_types: Iterable[str] | None = None
) -> ReleaseCategory | None:
    """Map a release group's MusicBrainz types to a discography category.

    Args:
        primary_type: MusicBrainz "primary-type" (e.g. "Album")
        secondary_types: MusicBrainz "secondary-types" (e.g. ["Live"])

    Returns:
        The category, or None when the group is not counted at all
        (non-studio albums, broadcasts, "Other", missing type).
    """
    primary = PrimaryAlbumType.from_string(primary_type)
    if primary is None:
        return None

    if primary is PrimaryAlbumType.ALBUM:
        secondaries = {
            parsed
            for parsed in (
                SecondaryAlbumType.from_string(value) for value in secondary_types or ()
            )
            if parsed is not None
        }
        if secondaries & EXCLUDED_ALBUM_SECONDARY_TYPES:
            return None
        return ReleaseCategory.ALBUM

    if primary is PrimaryAlbumType.EP:
        return ReleaseCategory.EP
    if primary is PrimaryAlbumType.SINGLE:
        return ReleaseCategory.SINGLE
    return None


def is_digital_format(medium_format: str | None) -> bool:
    """Check whether a medium format counts as digitally obtainable.

    An empty format means "unknown", which is treated as obtainable. Unknown formats
    that are not vinyl are obtainable too.
    """
    if not medium_format:
        return True

    lowered = medium_format.lower()
    if any(fmt.lower() in lowered for fmt in DIGITAL_FORMATS):
        return True
    if any(fmt.lower() in lowered for fmt in VINYL_FORMATS):
        return False
    return "vinyl" not in lowered


__all__ = [
    "CATEGORY_WEIGHTS",
    "DIGITAL_FORMATS",
    "EXCLUDED_ALBUM_SECONDARY_TYPES",
    "PrimaryAlbumType",
    "ReleaseCategory",
    "SecondaryAlbumType",
    "VINYL_FORMATS",
    "classify_release_group",
    "is_digital_format",
]
