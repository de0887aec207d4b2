"""Integration tests for the SQLite storage layer."""

import sqlite3

import pytest

from partcache.database import SqliteStorage, row_to_dict
from partcache.exceptions import StorageUnavailableError

TABLE = "upload_parts"


def get_table_columns(db_path, table_name: str) -> set:
    conn = sqlite3.connect(db_path)
    try:
        return {row[1] for row in conn.execute(f"PRAGMA table_info({table_name})")}
    finally:
        conn.close()


def get_index_names(db_path, table_name: str) -> set:
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name=?",
            (table_name,)
        )
        return {row[0] for row in rows}
    finally:
        conn.close()


def make_row(**overrides):
    values = {
        "file_hash": "abc",
        "file_size": 100,
        "cid": 1,
        "filename": "a.mp4",
        "expire_time": 2000,
        "created_at": 1000,
    }
    values.update(overrides)
    return values


class TestSchema:
    """Test schema creation on open."""

    def test_open_creates_parent_directory_and_table(self, storage, db_path):
        assert db_path.exists()
        assert get_table_columns(db_path, TABLE) == {
            "id", "created_at", "file_hash", "file_size", "cid", "filename", "expire_time"
        }

    def test_open_creates_lookup_indexes(self, storage, db_path):
        indexes = get_index_names(db_path, TABLE)
        assert "idx_upload_parts_hash_size" in indexes
        assert "idx_upload_parts_cid" in indexes

    def test_reopen_keeps_existing_rows(self, db_path):
        with SqliteStorage(str(db_path)) as first:
            first.insert(TABLE, make_row())

        with SqliteStorage(str(db_path)) as second:
            rows = second.query_many(TABLE, "file_hash = ?", ("abc",))
            assert len(rows) == 1

    def test_created_at_defaults_when_omitted(self, storage):
        values = make_row()
        del values["created_at"]
        row_id = storage.insert(TABLE, values)

        row = storage.query_one(TABLE, "id = ?", (row_id,))
        assert row["created_at"] is not None
        assert row["created_at"] > 0


class TestCrud:
    """Test the narrow storage interface."""

    def test_insert_returns_increasing_ids(self, storage):
        first = storage.insert(TABLE, make_row())
        second = storage.insert(TABLE, make_row(cid=2))
        assert second > first

    def test_update_by_id_changes_only_given_columns(self, storage):
        row_id = storage.insert(TABLE, make_row())

        changed = storage.update_by_id(TABLE, row_id, {"expire_time": 5000})

        assert changed == 1
        row = row_to_dict(storage.query_one(TABLE, "id = ?", (row_id,)))
        assert row["expire_time"] == 5000
        assert row["cid"] == 1
        assert row["filename"] == "a.mp4"

    def test_update_by_id_missing_row(self, storage):
        assert storage.update_by_id(TABLE, 999, {"expire_time": 5000}) == 0

    def test_query_one_respects_order(self, storage):
        storage.insert(TABLE, make_row(cid=1))
        storage.insert(TABLE, make_row(cid=2))

        row = storage.query_one(TABLE, "file_hash = ?", ("abc",), order_by="id DESC")
        assert row["cid"] == 2

    def test_query_one_no_match(self, storage):
        assert storage.query_one(TABLE, "file_hash = ?", ("missing",)) is None

    def test_query_many_no_match(self, storage):
        assert storage.query_many(TABLE, "file_hash = ?", ("missing",)) == []

    def test_delete_where_returns_count(self, storage):
        storage.insert(TABLE, make_row(expire_time=100))
        storage.insert(TABLE, make_row(expire_time=200))
        storage.insert(TABLE, make_row(expire_time=300))

        assert storage.delete_where(TABLE, "expire_time <= ?", (200,)) == 2
        assert len(storage.query_many(TABLE, "1 = 1")) == 1

    def test_transaction_groups_statements(self, storage):
        with storage.transaction() as conn:
            storage.insert(TABLE, make_row(cid=1), conn=conn)
            storage.insert(TABLE, make_row(cid=2), conn=conn)

        assert len(storage.query_many(TABLE, "1 = 1")) == 2

    def test_transaction_rolls_back_on_error(self, storage):
        with pytest.raises(RuntimeError):
            with storage.transaction() as conn:
                storage.insert(TABLE, make_row(cid=1), conn=conn)
                raise RuntimeError("boom")

        assert storage.query_many(TABLE, "1 = 1") == []


class TestRowToDict:

    def test_row_to_dict_with_none(self):
        assert row_to_dict(None) is None

    def test_row_to_dict_with_row(self, storage):
        row_id = storage.insert(TABLE, make_row())
        result = row_to_dict(storage.query_one(TABLE, "id = ?", (row_id,)))
        assert isinstance(result, dict)
        assert result["id"] == row_id
        assert result["file_hash"] == "abc"


class TestStorageUnavailable:
    """Test translation of storage failures."""

    def test_operations_after_close_raise(self, db_path):
        handle = SqliteStorage(str(db_path))
        handle.open()
        handle.close()

        with pytest.raises(StorageUnavailableError):
            handle.query_many(TABLE, "1 = 1")

    def test_operations_before_open_raise(self, db_path):
        handle = SqliteStorage(str(db_path))
        with pytest.raises(StorageUnavailableError):
            handle.insert(TABLE, make_row())

    def test_unopenable_path_raises(self, tmp_path):
        # A directory cannot be opened as a database file
        handle = SqliteStorage(str(tmp_path))
        with pytest.raises(StorageUnavailableError):
            handle.open()
        assert not handle.is_open

    def test_lock_timeout_raises(self, storage, db_path):
        blocker = sqlite3.connect(str(db_path), isolation_level=None)
        try:
            blocker.execute("BEGIN IMMEDIATE")

            with pytest.raises(StorageUnavailableError):
                storage.insert(TABLE, make_row())
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        assert storage.query_many(TABLE, "1 = 1") == []

    def test_garbage_file_at_open_raises(self, db_path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db_path.write_bytes(b"this is not a sqlite database, just some bytes" * 4)

        handle = SqliteStorage(str(db_path))
        with pytest.raises(StorageUnavailableError):
            handle.open()
        assert not handle.is_open

    def test_garbage_file_after_open_raises(self, storage, db_path):
        for suffix in ("-wal", "-shm"):
            sidecar = db_path.with_name(db_path.name + suffix)
            if sidecar.exists():
                sidecar.unlink()
        db_path.write_bytes(b"this is not a sqlite database, just some bytes" * 4)

        with pytest.raises(StorageUnavailableError):
            storage.query_many(TABLE, "1 = 1")

    def test_constraint_violation_is_not_storage_failure(self, storage):
        values = make_row()
        del values["file_hash"]

        with pytest.raises(sqlite3.IntegrityError):
            storage.insert(TABLE, values)
