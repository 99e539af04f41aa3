"""
Tests for logging configuration.
"""

import logging
import os
import time

import pytest

from contact_mirror.utils.logging import (
    LOG_FILE_PREFIX,
    ColoredFormatter,
    cleanup_old_logs,
    daily_log_path,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    setup_logging,
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove logging environment variables."""
    for name in (
        "CONTACT_MIRROR_LOG_LEVEL",
        "CONTACT_MIRROR_DEBUG",
        "CONTACT_MIRROR_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLogLevelFromEnv:
    """Tests for get_log_level_from_env()."""

    def test_default_info(self, clean_env):
        """Test the default level."""
        assert get_log_level_from_env() == logging.INFO

    def test_level_name(self, clean_env):
        """Test a named level."""
        clean_env.setenv("CONTACT_MIRROR_LOG_LEVEL", "warning")
        assert get_log_level_from_env() == logging.WARNING

    def test_unknown_level(self, clean_env):
        """Test that unknown names fall back to INFO."""
        clean_env.setenv("CONTACT_MIRROR_LOG_LEVEL", "LOUD")
        assert get_log_level_from_env() == logging.INFO

    def test_debug_flag(self, clean_env):
        """Test that the debug flag forces DEBUG."""
        clean_env.setenv("CONTACT_MIRROR_LOG_LEVEL", "ERROR")
        clean_env.setenv("CONTACT_MIRROR_DEBUG", "1")
        assert get_log_level_from_env() == logging.DEBUG


class TestLogFilePath:
    """Tests for get_log_file_path()."""

    def test_no_dir(self, clean_env):
        """Test that file logging is off without a directory."""
        assert get_log_file_path() is None

    def test_daily_file(self, clean_env, tmp_path):
        """Test the daily file name."""
        path = get_log_file_path(tmp_path)
        assert path == daily_log_path(tmp_path)
        assert path.name.startswith(LOG_FILE_PREFIX)
        assert path.suffix == ".log"

    def test_env_override(self, clean_env, tmp_path):
        """Test the environment variable override."""
        clean_env.setenv("CONTACT_MIRROR_LOG_FILE", str(tmp_path / "x.log"))
        assert get_log_file_path(tmp_path / "ignored") == tmp_path / "x.log"

    def test_env_disabled(self, clean_env, tmp_path):
        """Test disabling file logging from the environment."""
        clean_env.setenv("CONTACT_MIRROR_LOG_FILE", "none")
        assert get_log_file_path(tmp_path) is None


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_console_only(self, clean_env):
        """Test console logging without a log directory."""
        logger = setup_logging(level=logging.WARNING, use_colors=False)

        assert logger.name == "contact_mirror"
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING
        assert logger.propagate is False

    def test_verbose_forces_debug(self, clean_env):
        """Test that verbose mode lowers the console level."""
        logger = setup_logging(level=logging.ERROR, verbose=True)
        assert logger.handlers[0].level == logging.DEBUG

    def test_file_handler(self, clean_env, tmp_path):
        """Test that a log file is written at DEBUG."""
        logger = setup_logging(level=logging.ERROR, log_dir=tmp_path / "logs")
        get_logger("sync.engine").debug("written to file")
        for handler in logger.handlers:
            handler.flush()

        log_file = daily_log_path(tmp_path / "logs")
        assert "written to file" in log_file.read_text()

    def test_file_logging_disabled(self, clean_env, tmp_path):
        """Test turning file logging off."""
        logger = setup_logging(log_dir=tmp_path, enable_file_logging=False)
        assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    def test_repeated_setup_replaces_handlers(self, clean_env):
        """Test that handlers do not accumulate."""
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1


class TestGetLogger:
    """Tests for get_logger()."""

    def test_prefixes_name(self):
        """Test that names are placed under the package logger."""
        assert get_logger("cli").name == "contact_mirror.cli"

    def test_keeps_package_name(self):
        """Test that module names are kept as they are."""
        assert get_logger("contact_mirror.cli.main").name == "contact_mirror.cli.main"


class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def test_no_colors_when_disabled(self):
        """Test plain output when colors are off."""
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_colors=False)
        record = logging.makeLogRecord(
            {"levelname": "ERROR", "levelno": logging.ERROR, "msg": "boom"}
        )
        assert formatter.format(record) == "ERROR: boom"

    def test_colors_level_name_only(self):
        """Test that the original record keeps its plain level name."""
        formatter = ColoredFormatter("%(levelname)s: %(message)s")
        formatter.use_colors = True
        record = logging.makeLogRecord(
            {"levelname": "WARNING", "levelno": logging.WARNING, "msg": "careful"}
        )

        output = formatter.format(record)

        assert "\033[33mWARNING\033[0m" in output
        assert record.levelname == "WARNING"


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs()."""

    def test_keeps_newest(self, tmp_path):
        """Test that only the newest files are kept."""
        now = time.time()
        for day in range(5):
            path = tmp_path / f"{LOG_FILE_PREFIX}2026010{day}.log"
            path.write_text("x")
            os.utime(path, (now - 1000 + day, now - 1000 + day))
        (tmp_path / "other.log").write_text("x")

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 3
        remaining = sorted(p.name for p in tmp_path.iterdir())
        assert remaining == [
            f"{LOG_FILE_PREFIX}20260103.log",
            f"{LOG_FILE_PREFIX}20260104.log",
            "other.log",
        ]

    def test_zero_keeps_all(self, tmp_path):
        """Test that keep_count 0 disables cleanup."""
        (tmp_path / f"{LOG_FILE_PREFIX}20260101.log").write_text("x")
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_dir(self, tmp_path):
        """Test that a missing directory is ignored."""
        assert cleanup_old_logs(tmp_path / "none") == 0
