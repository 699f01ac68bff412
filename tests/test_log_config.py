"""Tests for movein.log_config -- log rotation and scrubbing."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

import pytest

from movein.log_config import ScrubFilter, configure_logging, scrub


class TestScrub:
    def test_redacts_session_header(self):
        result = scrub("headers={'x-user-id': 'u-42abc'}")
        assert "u-42abc" not in result
        assert "***REDACTED***" in result

    def test_redacts_user_id(self):
        assert "u-42" not in scrub('{"userId": "u-42"}')

    def test_redacts_dashed_ssn(self):
        assert "123-45-6780" not in scrub("appFields ssn=123-45-6780 sent")

    def test_redacts_bare_ssn(self):
        assert "123456780" not in scrub("ssn 123456780")

    def test_keeps_meter_ids(self):
        # ESIIDs are 17+ digits and must survive.
        msg = "Confirmed meter 10443720001234567"
        assert scrub(msg) == msg

    def test_redacts_bearer(self):
        assert "abc.def" not in scrub("Authorization: Bearer abc.def")

    def test_preserves_non_sensitive(self):
        msg = "Fetched 5 electricity plans for 75205"
        assert scrub(msg) == msg

    def test_filter_modifies_record(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "ssn %s for %s", ("123-45-6780", "Ana"), None)
        assert ScrubFilter().filter(record) is True
        assert "123-45-6780" not in record.getMessage()
        assert "Ana" in record.getMessage()


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers = list(root.handlers)
        level = root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers = handlers
        for handler in root.handlers:
            handler.filters = [f for f in handler.filters if not isinstance(f, ScrubFilter)]
        root.setLevel(level)

    def _drop_rotating(self):
        root = logging.getLogger()
        root.handlers = [h for h in root.handlers if not isinstance(h, RotatingFileHandler)]

    def test_creates_log_file(self, tmp_path):
        self._drop_rotating()
        path = configure_logging(str(tmp_path / "logs"), level="debug")
        assert path == os.path.join(str(tmp_path / "logs"), "movein.log")
        assert os.path.isdir(tmp_path / "logs")
        assert logging.getLogger().level == logging.DEBUG

    def test_env_dir_and_size(self, tmp_path, monkeypatch):
        self._drop_rotating()
        monkeypatch.setenv("MOVEIN_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("MOVEIN_LOG_MAX_BYTES", "2048")
        configure_logging()
        handler = next(h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler))
        assert handler.maxBytes == 2048
        assert handler.baseFilename == os.path.join(str(tmp_path), "movein.log")

    def test_idempotent(self, tmp_path):
        self._drop_rotating()
        configure_logging(str(tmp_path))
        configure_logging(str(tmp_path))
        rotating = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(rotating) == 1
        assert sum(isinstance(f, ScrubFilter) for f in rotating[0].filters) == 1

    def test_scrubbed_in_file(self, tmp_path):
        self._drop_rotating()
        path = configure_logging(str(tmp_path))
        logging.getLogger("movein.test").warning("submitting ssn=123-45-6780")
        for handler in logging.getLogger().handlers:
            handler.flush()
        with open(path, encoding="utf-8") as fh:
            content = fh.read()
        assert "123-45-6780" not in content
        assert "***REDACTED***" in content
