"""Tests for the flat-file credential store."""

import pytest

from core.exceptions import StorageError
from storage.credential_store import CredentialStore


def test_missing_file_reads_as_empty(store):
    assert store.load() == []
    assert len(store) == 0


def test_load_strips_blank_lines_and_carriage_returns(store):
    store.path.write_text("A\r\n\r\nB\n\n  \nC", encoding="utf-8")

    assert store.load() == ["A", "B", "C"]


def test_append_persists_newline_delimited_with_trailing_newline(store):
    assert store.append("A") is True
    assert store.append("B") is True
    assert store.append("A") is False

    assert store.path.read_text(encoding="utf-8") == "A\nB\n"
    assert store.credentials == ["A", "B"]


def test_remove_at_persists_immediately(store):
    store.path.write_text("A\nB\nC\n", encoding="utf-8")
    store.load()

    removed = store.remove_at(1)

    assert removed == "B"
    assert store.path.read_text(encoding="utf-8") == "A\nC\n"
    assert CredentialStore(str(store.path)).load() == ["A", "C"]


def test_removing_last_credential_leaves_empty_file(store):
    store.path.write_text("A\n", encoding="utf-8")

    store.remove_at(0)

    assert store.path.read_text(encoding="utf-8") == ""
    assert store.load() == []


def test_replace_at_skips_duplicate_elsewhere(store):
    store.path.write_text("A\nB\nC\n", encoding="utf-8")

    assert store.replace_at(0, "C") is False
    assert store.load() == ["A", "B", "C"]

    assert store.replace_at(0, "D") is True
    assert store.load() == ["D", "B", "C"]


def test_insert_at_fills_vacated_slot(store):
    store.path.write_text("A\nC\n", encoding="utf-8")

    assert store.insert_at(1, "B") is True
    assert store.load() == ["A", "B", "C"]
    assert store.insert_at(0, "B") is False


def test_mutations_reread_file_written_by_someone_else(store):
    store.path.write_text("A\n", encoding="utf-8")
    store.load()
    store.path.write_text("A\nB\n", encoding="utf-8")

    store.append("C")

    assert store.load() == ["A", "B", "C"]


def test_index_of(store):
    store.path.write_text("A\nB\n", encoding="utf-8")
    store.load()

    assert store.index_of("B") == 1
    assert store.index_of("Z") is None


def test_unreadable_store_raises_storage_error(tmp_path):
    # a directory in place of the file cannot be read as text
    directory = tmp_path / "data.txt"
    directory.mkdir()

    with pytest.raises(StorageError):
        CredentialStore(str(directory)).load()
