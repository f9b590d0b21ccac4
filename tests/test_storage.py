"""Tests for run log persistence."""

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from jobrunner.core.config import LogStorageConfig
from jobrunner.core.errors import DeliveryError, ErrorCode, LogPersistError
from jobrunner.storage import (
    DELIVERY_ERRORS_HEADER,
    log_filename,
    persist_log,
    render_log_content,
    sanitize_filename,
)


class TestFilenames:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("backup", "backup"),
            ("db backup", "db-backup"),
            ("a/b:c*d", "a-b-c-d"),
            ("v1.2", "v1-2"),
        ],
    )
    def test_sanitize(self, name: str, expected: str) -> None:
        assert sanitize_filename(name) == expected

    def test_log_filename(self, base_time) -> None:
        assert (
            log_filename("db backup", base_time)
            == "db-backup.2025-06-15T12-00-00.123+0200.log"
        )


class TestRenderLogContent:
    def test_without_errors(self) -> None:
        assert render_log_content("report\n", []) == "report\n"

    def test_with_errors(self) -> None:
        errors = [
            DeliveryError("discord", "failed POSTing Discord webhook (HTTP 500)"),
            DeliveryError("mail", "refused"),
        ]
        content = render_log_content("report\n", errors)
        assert content == (
            "report\n"
            "\n"
            f"{DELIVERY_ERRORS_HEADER}\n"
            "\n"
            "discord: failed POSTing Discord webhook (HTTP 500)\n"
            "mail: refused\n"
        )


class TestPersistLog:
    """Tests for persist_log()."""

    def test_no_log_dir(self) -> None:
        assert persist_log(LogStorageConfig(), "x.log", "content") is None

    def test_writes_file(self, tmp_path: Path) -> None:
        path = persist_log(LogStorageConfig(log_dir=tmp_path), "job.log", "hello\n")
        assert path == tmp_path / "job.log"
        assert path.read_text() == "hello\n"

    def test_creates_missing_directory(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs" / "jobs"
        path = persist_log(LogStorageConfig(log_dir=log_dir), "job.log", "x")
        assert path is not None
        assert log_dir.is_dir()

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        (tmp_path / "job.log").write_text("old content that is longer")
        persist_log(LogStorageConfig(log_dir=tmp_path), "job.log", "new")
        assert (tmp_path / "job.log").read_text() == "new"

    def test_file_mode(self, tmp_path: Path) -> None:
        old_umask = os.umask(0)
        try:
            path = persist_log(LogStorageConfig(log_dir=tmp_path), "job.log", "x")
        finally:
            os.umask(old_umask)
        assert path is not None
        assert stat.S_IMODE(path.stat().st_mode) == 0o660

    def test_chowns_to_owner(self, tmp_path: Path) -> None:
        config = LogStorageConfig(log_dir=tmp_path / "new", owner_uid=1000, owner_gid=1000)
        with patch("jobrunner.storage.os.chown") as mock_chown:
            persist_log(config, "job.log", "x")

        chowned = [call.args for call in mock_chown.call_args_list]
        assert chowned == [
            (tmp_path / "new", 1000, 1000),
            (tmp_path / "new" / "job.log", 1000, 1000),
        ]

    def test_uid_only_keeps_group(self, tmp_path: Path) -> None:
        config = LogStorageConfig(log_dir=tmp_path, owner_uid=1000)
        with patch("jobrunner.storage.os.chown") as mock_chown:
            persist_log(config, "job.log", "x")
        mock_chown.assert_called_once_with(tmp_path / "job.log", 1000, -1)

    def test_directory_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(LogPersistError) as exc_info:
            persist_log(LogStorageConfig(log_dir=blocker / "logs"), "job.log", "x")
        assert exc_info.value.code is ErrorCode.LOG_DIR_FAILED

    def test_chown_failure(self, tmp_path: Path) -> None:
        config = LogStorageConfig(log_dir=tmp_path, owner_uid=1000)
        with patch("jobrunner.storage.os.chown", side_effect=PermissionError("denied")):
            with pytest.raises(LogPersistError) as exc_info:
                persist_log(config, "job.log", "x")
        assert exc_info.value.code is ErrorCode.LOG_WRITE_FAILED
