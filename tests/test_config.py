"""Tests for movein.config -- layered configuration loading."""

from __future__ import annotations

import logging

import pytest

from movein.config import FlowConfig, get_config_path, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config == FlowConfig()
        assert config.eligibility_path == "dwelling"
        assert config.min_loading_seconds == 1.5

    def test_default_path(self):
        assert get_config_path().parts[-2:] == (".movein", "config.yaml")


class TestLayers:
    def test_file_values(self, tmp_path):
        path = _write(tmp_path, "timeout: 10\neligibility_path: legacy\ndefault_zip: '78701'\n")
        config = load_config(path)
        assert config.timeout == 10.0
        assert config.eligibility_path == "legacy"
        assert config.default_zip == "78701"

    def test_env_beats_file(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "timeout: 10\nconsumer_api_url: http://file.test\n")
        monkeypatch.setenv("MOVEIN_HTTP_TIMEOUT", "12.5")
        monkeypatch.setenv("MOVEIN_CONSUMER_API_URL", "http://env.test")
        config = load_config(path)
        assert config.timeout == 12.5
        assert config.consumer_api_url == "http://env.test"

    def test_overrides_beat_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOVEIN_MIN_LOADING_SECONDS", "3")
        config = load_config(tmp_path / "absent.yaml", min_loading_seconds=0, consumer_api_url=None)
        assert config.min_loading_seconds == 0.0
        assert config.consumer_api_url == FlowConfig().consumer_api_url

    def test_invalid_env_number_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOVEIN_HTTP_TIMEOUT", "soon")
        assert load_config(tmp_path / "absent.yaml").timeout == 30.0


class TestProblems:
    def test_unknown_file_key_warns(self, tmp_path, caplog):
        path = _write(tmp_path, "timeout: 5\ncolour: blue\n")
        with caplog.at_level(logging.WARNING, logger="movein.config"):
            config = load_config(path)
        assert config.timeout == 5.0
        assert "colour" in caplog.text

    def test_invalid_yaml_falls_back(self, tmp_path, caplog):
        path = _write(tmp_path, "timeout: [unclosed\n")
        with caplog.at_level(logging.WARNING, logger="movein.config"):
            assert load_config(path) == FlowConfig()
        assert "invalid YAML" in caplog.text

    def test_non_numeric_file_value_ignored(self, tmp_path):
        path = _write(tmp_path, "timeout: forever\n")
        assert load_config(path).timeout == 30.0

    def test_unknown_override(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown config key"):
            load_config(tmp_path / "absent.yaml", colour="blue")

    def test_bad_eligibility_path(self, tmp_path):
        path = _write(tmp_path, "eligibility_path: both\n")
        with pytest.raises(ValueError, match="eligibility_path"):
            load_config(path)
