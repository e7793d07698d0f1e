"""Tests for the progress snapshot storage."""

import os
import stat
from unittest.mock import patch

import pytest

from pathshared.storage import LocalSnapshotStorage, validate_snapshot_id


class TestValidateSnapshotId:
    @pytest.mark.parametrize("snapshot_id", ["alice", "player_1", "a-b-c", "x" * 64])
    def test_accepts_safe_ids(self, snapshot_id):
        validate_snapshot_id(snapshot_id)

    @pytest.mark.parametrize("snapshot_id", ["", "../escape", "a/b", "x" * 65, "name.json", "spaced id"])
    def test_rejects_unsafe_ids(self, snapshot_id):
        with pytest.raises(ValueError, match="Invalid snapshot id"):
            validate_snapshot_id(snapshot_id)


class TestLocalSnapshotStorage:
    def test_creates_directory_on_first_write(self, tmp_path):
        data_dir = tmp_path / "progress"
        storage = LocalSnapshotStorage(str(data_dir))

        storage.save_snapshot("alice", "{}")

        assert data_dir.is_dir()
        assert (data_dir / "alice.json").exists()

    def test_load_returns_saved_content(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))
        content = '{"stats":{"games_played":3}}'

        storage.save_snapshot("alice", content)

        assert storage.load_snapshot("alice") == content

    def test_load_missing_returns_none(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path / "progress"))
        assert storage.load_snapshot("nobody") is None

    def test_overwrites_existing_file(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))

        storage.save_snapshot("alice", "original")
        storage.save_snapshot("alice", "updated")

        assert storage.load_snapshot("alice") == "updated"

    def test_delete_removes_file(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))
        storage.save_snapshot("alice", "{}")

        storage.delete_snapshot("alice")

        assert storage.load_snapshot("alice") is None

    def test_delete_missing_is_noop(self, tmp_path):
        LocalSnapshotStorage(str(tmp_path)).delete_snapshot("nobody")

    def test_rejects_traversal(self, tmp_path):
        data_dir = tmp_path / "progress"
        storage = LocalSnapshotStorage(str(data_dir))

        with pytest.raises(ValueError, match="Invalid snapshot id"):
            storage.save_snapshot("../escape", "malicious")

        assert not data_dir.exists()

    def test_writes_utf8_content(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))
        content = '{"share":"🧩 Path 5×5"}'

        storage.save_snapshot("alice", content)

        assert (tmp_path / "alice.json").read_text(encoding="utf-8") == content

    def test_players_write_separate_files(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))

        storage.save_snapshot("alice", "a")
        storage.save_snapshot("bob", "b")

        assert (tmp_path / "alice.json").read_text() == "a"
        assert (tmp_path / "bob.json").read_text() == "b"


class TestLocalSnapshotStorageErrorHandling:
    def test_cleans_up_temp_on_fdopen_failure(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))

        with (
            patch("os.fdopen", side_effect=OSError("fdopen failure")),
            pytest.raises(OSError, match="fdopen failure"),
        ):
            storage.save_snapshot("alice", "content")

        assert not (tmp_path / "alice.json").exists()
        assert list(tmp_path.glob(".snapshot_*.tmp")) == []

    def test_cleans_up_temp_on_fsync_failure(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))

        with (
            patch("os.fsync", side_effect=OSError("fsync failure")),
            pytest.raises(OSError, match="fsync failure"),
        ):
            storage.save_snapshot("alice", "content")

        assert not (tmp_path / "alice.json").exists()
        assert list(tmp_path.glob(".snapshot_*.tmp")) == []

    def test_closes_fd_on_fdopen_failure(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))

        with (
            patch("os.fdopen", side_effect=OSError("fdopen failure")) as mock_fdopen,
            patch("os.close", wraps=os.close) as mock_close,
            pytest.raises(OSError, match="fdopen failure"),
        ):
            storage.save_snapshot("alice", "content")

        mock_close.assert_called_once_with(mock_fdopen.call_args[0][0])

    def test_failed_write_keeps_previous_snapshot(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))
        storage.save_snapshot("alice", "first")

        with (
            patch("os.fsync", side_effect=OSError("fsync failure")),
            pytest.raises(OSError, match="fsync failure"),
        ):
            storage.save_snapshot("alice", "second")

        assert storage.load_snapshot("alice") == "first"


class TestLocalSnapshotStoragePermissions:
    def test_directory_is_owner_only(self, tmp_path):
        data_dir = tmp_path / "progress"
        LocalSnapshotStorage(str(data_dir)).save_snapshot("alice", "{}")

        assert stat.S_IMODE(data_dir.stat().st_mode) == 0o700

    def test_file_is_owner_only(self, tmp_path):
        storage = LocalSnapshotStorage(str(tmp_path))

        storage.save_snapshot("alice", "first")
        storage.save_snapshot("alice", "second")

        file_mode = (tmp_path / "alice.json").stat().st_mode
        assert stat.S_IMODE(file_mode) == 0o600
        assert not file_mode & stat.S_IRGRP
        assert not file_mode & stat.S_IROTH
