"""Unit tests for release group classification and medium formats.

Hey future me - these tests pin down which MusicBrainz release groups count towards
discography completeness. A wrong answer here silently skews every artist's percentage,
so the live/compilation exclusions are tested explicitly.
"""

import pytest

from shelfcheck.domain.value_objects.album_types import (
    CATEGORY_WEIGHTS,
    PrimaryAlbumType,
    ReleaseCategory,
    SecondaryAlbumType,
    classify_release_group,
    is_digital_format,
)


class TestPrimaryAlbumType:
    """Tests for PrimaryAlbumType enum."""

    def test_from_string_is_case_insensitive(self) -> None:
        """MusicBrainz spells types capitalized, we store them lowercase."""
        assert PrimaryAlbumType.from_string("Album") == PrimaryAlbumType.ALBUM
        assert PrimaryAlbumType.from_string("EP") == PrimaryAlbumType.EP
        assert PrimaryAlbumType.from_string(" single ") == PrimaryAlbumType.SINGLE

    def test_from_string_unknown_returns_none(self) -> None:
        """Unknown or missing types must NOT default to album."""
        assert PrimaryAlbumType.from_string(None) is None
        assert PrimaryAlbumType.from_string("") is None
        assert PrimaryAlbumType.from_string("gibberish") is None


class TestSecondaryAlbumType:
    """Tests for SecondaryAlbumType enum."""

    def test_from_string_known_values(self) -> None:
        assert SecondaryAlbumType.from_string("Live") == SecondaryAlbumType.LIVE
        assert SecondaryAlbumType.from_string("Compilation") == SecondaryAlbumType.COMPILATION
        assert SecondaryAlbumType.from_string("DJ-mix") == SecondaryAlbumType.DJ_MIX

    def test_from_string_mixtape_alias(self) -> None:
        """Older dumps say "Mixtape", current MusicBrainz says "Mixtape/Street"."""
        assert SecondaryAlbumType.from_string("Mixtape") == SecondaryAlbumType.MIXTAPE
        assert SecondaryAlbumType.from_string("Mixtape/Street") == SecondaryAlbumType.MIXTAPE

    def test_from_string_unknown_returns_none(self) -> None:
        assert SecondaryAlbumType.from_string("nonsense") is None
        assert SecondaryAlbumType.from_string(None) is None


class TestClassifyReleaseGroup:
    """Tests for classify_release_group()."""

    def test_studio_album(self) -> None:
        assert classify_release_group("Album", []) == ReleaseCategory.ALBUM
        assert classify_release_group("Album") == ReleaseCategory.ALBUM

    @pytest.mark.parametrize("secondary", ["Live", "Compilation", "Soundtrack"])
    def test_excluded_album_secondaries(self, secondary: str) -> None:
        """Live albums, compilations and soundtracks never count as studio albums."""
        assert classify_release_group("Album", [secondary]) is None

    def test_other_secondaries_keep_album(self) -> None:
        """A remix or demo album is still counted."""
        assert classify_release_group("Album", ["Remix"]) == ReleaseCategory.ALBUM
        assert classify_release_group("Album", ["Unknown-Type"]) == ReleaseCategory.ALBUM

    def test_ep_and_single(self) -> None:
        assert classify_release_group("EP", ["Live"]) == ReleaseCategory.EP
        assert classify_release_group("Single", []) == ReleaseCategory.SINGLE

    @pytest.mark.parametrize("primary", [None, "", "Broadcast", "Other", "weird"])
    def test_uncounted_primaries(self, primary: str | None) -> None:
        assert classify_release_group(primary, []) is None


class TestCategoryWeights:
    """Albums count triple, EPs double, singles once."""

    def test_weights(self) -> None:
        assert ReleaseCategory.ALBUM.weight == 3
        assert ReleaseCategory.EP.weight == 2
        assert ReleaseCategory.SINGLE.weight == 1
        assert set(CATEGORY_WEIGHTS) == set(ReleaseCategory)


class TestIsDigitalFormat:
    """Tests for the vinyl-only filter's format check."""

    @pytest.mark.parametrize(
        "fmt", ["CD", "Digital Media", "Enhanced CD", "SACD", "Cassette", "cd"]
    )
    def test_digital_formats(self, fmt: str) -> None:
        assert is_digital_format(fmt) is True

    @pytest.mark.parametrize("fmt", ["Vinyl", '12" Vinyl', '7" Vinyl', "Shellac"])
    def test_vinyl_formats(self, fmt: str) -> None:
        assert is_digital_format(fmt) is False

    def test_unknown_format_is_obtainable(self) -> None:
        """Empty means unknown; unknown non-vinyl formats are obtainable."""
        assert is_digital_format(None) is True
        assert is_digital_format("") is True
        assert is_digital_format("Laserdisc") is True
