"""Tests for bd_claim.store.versioning and the store's version gate."""

import pytest

from bd_claim.models import ClaimFailed, ErrorCode
from bd_claim.store import MIN_COMPATIBLE_BD_VERSION, SQLiteIssueStore, is_version_compatible, parse_version


class TestParseVersion:
    """parse_version."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("0.27.2", (0, 27, 2)),
            ("v1.2.3", (1, 2, 3)),
            ("V1.2.3", (1, 2, 3)),
            ("2.5", (2, 5, 0)),
            ("3", (3, 0, 0)),
            ("1.2.3-rc1", (1, 2, 3)),
            ("1.x.0", (1, 0, 0)),
            ("1.2.3.4", (1, 2, 3)),
        ],
    )
    def test_parse(self, raw: str, expected: tuple[int, int, int]) -> None:
        """Components use leading digits; missing ones are zero."""
        assert parse_version(raw) == expected


class TestIsVersionCompatible:
    """is_version_compatible."""

    @pytest.mark.parametrize("version", ["0.27.2", "0.20.0", "0.20.1", "1.0.0", "v0.27.2"])
    def test_compatible(self, version: str) -> None:
        """Versions at or above the minimum pass."""
        assert is_version_compatible(version)

    @pytest.mark.parametrize("version", ["0.19.9", "0.10.0"])
    def test_incompatible(self, version: str) -> None:
        """Versions below the minimum fail."""
        assert not is_version_compatible(version)

    def test_custom_minimum(self) -> None:
        """The minimum can be overridden."""
        assert is_version_compatible("2.0.0", "1.0.0")
        assert not is_version_compatible("0.99.0", "1.0.0")

    def test_default_minimum(self) -> None:
        """Default minimum is 0.20.0."""
        assert MIN_COMPATIBLE_BD_VERSION == "0.20.0"


class TestStoreVersionGate:
    """SQLiteIssueStore.get_bd_version / check_version_compatibility."""

    def test_reads_version(self, beads_db) -> None:
        """bd_version is read from metadata."""
        beads_db.set_version("0.27.2")
        assert SQLiteIssueStore(beads_db.path).get_bd_version() == "0.27.2"

    def test_no_row_is_none(self, beads_db) -> None:
        """Missing key yields None."""
        assert SQLiteIssueStore(beads_db.path).get_bd_version() is None

    def test_no_table_is_none(self, beads_db) -> None:
        """Missing metadata table yields None."""
        beads_db.drop_metadata()
        assert SQLiteIssueStore(beads_db.path).get_bd_version() is None

    def test_compatible_passes(self, beads_db) -> None:
        """A recent version passes the gate."""
        beads_db.set_version("0.27.2")
        SQLiteIssueStore(beads_db.path).check_version_compatibility()

    def test_unversioned_passes(self, beads_db) -> None:
        """An unversioned database is accepted."""
        SQLiteIssueStore(beads_db.path).check_version_compatibility()

    def test_old_version_rejected(self, beads_db) -> None:
        """An old version is SCHEMA_INCOMPATIBLE naming both versions."""
        beads_db.set_version("0.19.9")
        with pytest.raises(ClaimFailed) as exc_info:
            SQLiteIssueStore(beads_db.path).check_version_compatibility()
        assert exc_info.value.code is ErrorCode.SCHEMA_INCOMPATIBLE
        assert "0.19.9" in exc_info.value.message
        assert "0.20.0" in exc_info.value.message
