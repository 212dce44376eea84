"""
Configuration loading: probe.yaml, CALLPROBE_* overrides, atomic reload.
"""
import os
from unittest.mock import patch

import pytest

from callprobe.config import ConfigLoader, ProbeConfig


def _loader(tmp_path):
    loader = ConfigLoader()
    loader.config_dir = tmp_path
    loader.config_file = tmp_path / "probe.yaml"
    return loader


class TestConfigReloadSafety:
    def test_valid_config_loads(self, tmp_path):
        """Valid YAML loads successfully."""
        (tmp_path / "probe.yaml").write_text("""
max_spans: 500
cleanup_threshold: 0.9
span_log_path: " traces/span.log "
log_level: debug
""")
        config = _loader(tmp_path).load_config()
        assert config.max_spans == 500
        assert config.cleanup_threshold == 0.9
        assert config.span_log_path == "traces/span.log"
        assert config.log_level == "DEBUG"
        assert config.eviction_ratio == 0.2

    def test_missing_file_gives_defaults(self, tmp_path):
        with patch.dict(os.environ, {}, clear=True):
            config = _loader(tmp_path).load_config()
        assert config == ProbeConfig()
        assert config.max_spans == 10_000
        assert config.server_port == 43210

    def test_invalid_config_preserves_old(self, tmp_path):
        """Corrupt YAML keeps the previous valid config."""
        config_file = tmp_path / "probe.yaml"
        config_file.write_text("max_spans: 42\n")
        loader = _loader(tmp_path)
        loader.load_config()
        assert loader.config.max_spans == 42

        config_file.write_text("this is not valid yaml: [[[")
        with pytest.raises(ValueError, match="previous config retained"):
            loader.load_config()
        assert loader.config.max_spans == 42

    def test_schema_violation_preserves_old(self, tmp_path):
        config_file = tmp_path / "probe.yaml"
        config_file.write_text("max_spans: 42\n")
        loader = _loader(tmp_path)
        loader.load_config()

        config_file.write_text("max_spans: 0\neviction_ratio: 1.5\n")
        with pytest.raises(ValueError, match="Invalid configuration"):
            loader.load_config()
        assert loader.config.max_spans == 42

    def test_first_failure_has_no_fallback(self, tmp_path):
        (tmp_path / "probe.yaml").write_text("- just\n- a list\n")
        loader = _loader(tmp_path)
        with pytest.raises(ValueError, match="no fallback"):
            loader.load_config()
        assert loader.config is None

    def test_get_config_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "probe.yaml").write_text("log_level: chatty\n")
        with patch.dict(os.environ, {}, clear=True):
            assert _loader(tmp_path).get_config() == ProbeConfig()


class TestEnvOverrides:
    def test_env_wins_over_file(self, tmp_path):
        (tmp_path / "probe.yaml").write_text("max_spans: 500\napp_id: from-file\n")
        env = {"CALLPROBE_MAX_SPANS": "64", "CALLPROBE_SPAN_LOG_PATH": "/tmp/spans.log"}
        with patch.dict(os.environ, env, clear=True):
            config = _loader(tmp_path).load_config()
        assert config.max_spans == 64
        assert config.span_log_path == "/tmp/spans.log"
        assert config.app_id == "from-file"

    def test_logging_settings_from_env(self, tmp_path):
        env = {"CALLPROBE_LOG_DIR": " /var/log/app ", "CALLPROBE_CAPTURE_LOGGING": "true"}
        with patch.dict(os.environ, env, clear=True):
            config = _loader(tmp_path).load_config()
        assert config.log_dir == "/var/log/app"
        assert config.capture_logging is True

    def test_bad_env_value_is_rejected(self, tmp_path):
        with patch.dict(os.environ, {"CALLPROBE_SERVER_PORT": "not-a-port"}, clear=True):
            with pytest.raises(ValueError):
                _loader(tmp_path).load_config()

    def test_config_dir_from_env(self, tmp_path):
        with patch.dict(os.environ, {"CALLPROBE_CONFIG_DIR": str(tmp_path)}):
            loader = ConfigLoader()
        assert loader.config_file == tmp_path / "probe.yaml"
