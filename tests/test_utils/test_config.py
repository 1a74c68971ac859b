"""Tests for configuration loading and validation."""

import pytest

from clipdsp.utils.config import (
    ConfigManager,
    ENGINE_SCHEMA,
    get_default_config,
    load_config,
    merge_config,
)
from clipdsp.utils.errors import ConfigurationError


class TestConfigManager:
    def test_dot_notation(self):
        manager = ConfigManager(get_default_config())

        assert manager.get("spectral.fft_size") == 2048
        assert manager.get("spectral.missing", 7) == 7
        assert manager.get_section("mix") == {"headroom": 0.99}

    def test_required_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager({}).get("spectral.fft_size", required=True)
        assert "spectral.fft_size" in str(exc_info.value)

    def test_set_creates_sections(self):
        manager = ConfigManager()
        manager.set("engine.timeout", 3.5)
        assert manager.to_dict() == {"engine": {"timeout": 3.5}}

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLIPDSP_TEST_ESTIMATOR", "direct")
        path = tmp_path / "config.yaml"
        path.write_text("spectral:\n  estimator: ${CLIPDSP_TEST_ESTIMATOR}\n  label: ${CLIPDSP_UNSET_VAR}\n")

        manager = ConfigManager.from_file(path)

        assert manager.get("spectral.estimator") == "direct"
        assert manager.get("spectral.label") == "${CLIPDSP_UNSET_VAR}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager.from_file(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("spectral: [unclosed\n")
        with pytest.raises(ConfigurationError):
            ConfigManager.from_file(path)


class TestValidation:
    def test_defaults_are_valid(self):
        ConfigManager(get_default_config()).validate(ENGINE_SCHEMA)

    @pytest.mark.parametrize("key,value", [
        ("spectral.fft_size", "2048"),
        ("spectral.fft_size", True),
        ("spectral.fft_size", 1),
        ("spectral.estimator", "gpu"),
        ("spectrogram.hop_size", 0),
        ("engine.timeout", -1),
        ("tempo.quality", "ultra"),
        ("logging.format", "xml"),
    ])
    def test_rejects(self, key, value):
        manager = ConfigManager(get_default_config())
        manager.set(key, value)

        with pytest.raises(ConfigurationError) as exc_info:
            manager.validate(ENGINE_SCHEMA)
        assert key in str(exc_info.value)

    def test_missing_required(self):
        with pytest.raises(ConfigurationError):
            ConfigManager({}).validate(ENGINE_SCHEMA)


class TestLoadConfig:
    def test_file_layered_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("spectrogram:\n  hop_size: 256\n")

        config = load_config(str(path))

        assert config["spectrogram"] == {"window_size": 512, "hop_size": 256}
        assert config["spectral"]["fft_size"] == 2048

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_file_contents(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  yield_interval: 0\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_default_search(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config()["spectral"]["estimator"] == "auto"


class TestMergeConfig:
    def test_nested_sections_merge(self):
        merged = merge_config(get_default_config(), {"spectral": {"estimator": "direct"}})

        assert merged["spectral"]["estimator"] == "direct"
        assert merged["spectral"]["fft_size"] == 2048

    def test_base_untouched(self):
        base = get_default_config()
        merge_config(base, {"mix": {"headroom": 0.5}})
        assert base["mix"]["headroom"] == 0.99

    def test_non_mapping_replaces(self):
        merged = merge_config({"engine": {"timeout": 5}}, {"engine": None})
        assert merged["engine"] is None
