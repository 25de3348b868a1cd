"""Tests for configuration management."""

import pytest

from tokensmith.config import ConfigModel, Config, load_config, save_config, get_config
from tokensmith.token_engine import NamingScheme


class TestConfigModel:
    """Test the configuration model."""

    def test_defaults(self):
        config = ConfigModel()
        assert config.minimum_contrast_ratio == 4.5
        assert config.light_end_saturation == 0.02
        assert config.light_end_value == 0.98
        assert config.dark_saturation_factor == 1.2
        assert config.dark_value_factor == 0.08
        assert config.dark_value_floor == 0.03
        assert config.naming_scheme == NamingScheme.ALIAS
        assert config.css_var_prefix == "--tokens"

    def test_yaml_round_trip(self):
        config = ConfigModel(minimum_contrast_ratio=7.0, naming_scheme=NamingScheme.SCALE_INDEX)
        restored = ConfigModel.from_yaml(config.to_yaml())

        assert restored.minimum_contrast_ratio == 7.0
        assert restored.naming_scheme == NamingScheme.SCALE_INDEX

    def test_unknown_keys_ignored(self, caplog):
        config = ConfigModel.from_yaml("auto_fix: false\ntheme_name: dracula\n")
        assert config.auto_fix is False
        assert "theme_name" in caplog.text

    @pytest.mark.parametrize("kwargs", [
        {"minimum_contrast_ratio": 0.5},
        {"minimum_contrast_ratio": 22},
        {"light_end_value": 1.5},
        {"dark_value_factor": -1},
        {"max_fix_passes": 0},
        {"css_var_prefix": "tokens"},
        {"naming_scheme": "kebab"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ConfigModel(**kwargs)

    def test_log_level_normalized(self):
        assert ConfigModel(log_level="debug").log_level == "DEBUG"


class TestConfigManager:
    """Test loading and saving configuration files."""

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        save_config(ConfigModel(max_fix_passes=3), path)

        config = load_config(path)
        assert config.max_fix_passes == 3
        assert get_config() is config

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config == ConfigModel()

    def test_broken_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("minimum_contrast_ratio: 99\n")

        assert load_config(path) == ConfigModel()

    def test_reload(self, tmp_path):
        path = tmp_path / "config.yaml"
        save_config(ConfigModel(auto_scan=False), path)
        load_config(path)

        save_config(ConfigModel(auto_scan=True), path)
        assert Config.reload(path).auto_scan is True
