import pytest

from versioned_session.core.types import (
    CommitHash, CommitRecord, DiffEntry, DiffType, MergeResult, StatusEntry
)

from ..factories import CommitHashFactory


class TestCommitHash:
    """Test CommitHash value object."""

    def test_valid_commit_hash(self):
        value = "0123456789abcdefghijklmnopqrstuv"
        commit_hash = CommitHash(value=value)
        assert commit_hash.value == value
        assert str(commit_hash) == value
        assert commit_hash.short == "01234567"

    def test_invalid_length(self):
        with pytest.raises(ValueError, match="32-character"):
            CommitHash(value="a" * 31)

        with pytest.raises(ValueError, match="32-character"):
            CommitHash(value="")

    def test_invalid_characters(self):
        # 'w' through 'z' are outside base32
        with pytest.raises(ValueError, match="0-9 and a-v"):
            CommitHash(value="w" * 32)

    def test_equality(self):
        hash1 = CommitHash(value="a" * 32)
        hash2 = CommitHash(value="a" * 32)
        hash3 = CommitHash(value="b" * 32)

        assert hash1 == hash2
        assert hash1 != hash3
        assert len({hash1, hash2, hash3}) == 2

    def test_factory_produces_valid_hashes(self):
        for commit_hash in CommitHashFactory.create_batch(20):
            assert len(commit_hash.value) == 32


class TestDiffEntry:
    """Test splitting diff rows."""

    def test_added_row(self):
        entry = DiffEntry.from_row({
            "to_id": 4,
            "to_first_name": "Taylor",
            "to_last_name": "Bantle",
            "to_commit": "WORKING",
            "to_commit_date": None,
            "from_id": None,
            "from_first_name": None,
            "from_last_name": None,
            "from_commit": "a" * 32,
            "from_commit_date": None,
            "diff_type": "added",
        })

        assert entry.diff_type == DiffType.ADDED
        assert entry.to_commit == "WORKING"
        assert entry.from_commit == "a" * 32
        assert entry.row == {"id": 4, "first_name": "Taylor", "last_name": "Bantle"}
        assert "commit" not in entry.to_values
        assert "commit_date" not in entry.from_values

    def test_removed_row_uses_from_side(self):
        entry = DiffEntry.from_row({
            "to_employee_id": None,
            "from_employee_id": 0,
            "diff_type": "removed",
        })

        assert entry.diff_type == DiffType.REMOVED
        assert entry.row == {"employee_id": 0}

    def test_unknown_diff_type(self):
        with pytest.raises(ValueError):
            DiffEntry.from_row({"diff_type": "renamed"})


class TestRecords:
    """Test record formatting."""

    def test_commit_record_str(self):
        record = CommitRecord(hash=CommitHash("c" * 32), author="Tim", message="Created tables")
        assert str(record) == f"{'c' * 32}: Created tables by Tim"

    def test_status_entry_str(self):
        assert str(StatusEntry(table_name="employees", status="modified")) == "employees: modified"

    def test_merge_result_conflicts(self):
        assert not MergeResult(commit_hash=None, fast_forward=True, conflict_count=0).has_conflicts
        assert MergeResult(commit_hash=None, fast_forward=False, conflict_count=2).has_conflicts
