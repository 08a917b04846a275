"""
Tests for Configuration Management.

This module tests the configuration system including environment variable
expansion, config dataclasses and YAML loading.

Test Strategy
-------------
- Focus on public API: expand_env_vars(), Config, load_config(), save_config()
- Each test should be self-contained and clear
- Environment is patched with patch.dict, never modified globally

Organization
------------
- TestExpandEnvVars: Environment variable expansion
- TestConfigDefaults: Default values
- TestConfigValidation: __post_init__ checks
- TestLoadConfig: YAML loading and env overrides
"""

import os
from unittest.mock import patch

import pytest
import yaml

from citeweave.core.config import (
    Config,
    DefinitionsConfig,
    RenderConfig,
    SessionConfig,
    load_config,
    save_config,
)
from citeweave.core.config_loaders import expand_env_vars
from citeweave.core.exceptions import ConfigurationError


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_simple_expansion(self):
        """Test basic ${VAR} expansion."""
        with patch.dict(os.environ, {"CSL_DIR": "/srv/csl"}):
            assert expand_env_vars("${CSL_DIR}") == "/srv/csl"

    def test_default_value(self):
        """Test ${VAR:default} uses the default when unset."""
        with patch.dict(os.environ, {}, clear=True):
            assert expand_env_vars("${MISSING:apa}") == "apa"

    def test_missing_without_default(self):
        """Test an unset variable without default expands to empty."""
        with patch.dict(os.environ, {}, clear=True):
            assert expand_env_vars("x${MISSING}y") == "xy"

    def test_nested_structures(self):
        """Test dicts and lists are expanded recursively."""
        with patch.dict(os.environ, {"STYLE": "chicago"}):
            result = expand_env_vars({"session": {"style": "${STYLE}"}, "l": ["${STYLE}", 3]})

        assert result == {"session": {"style": "chicago"}, "l": ["chicago", 3]}


class TestConfigDefaults:
    """Tests for default configuration values."""

    def test_session_defaults(self):
        """Test the session loads apa in en-GB with linking on."""
        config = Config()

        assert config.session.style == "apa"
        assert config.session.locale == "en-GB"
        assert config.session.link_citations is True
        assert config.session.link_bibliography is True

    def test_render_defaults(self):
        """Test bibliography layout defaults."""
        render = RenderConfig()

        assert render.line_height_factor == 0.8
        assert render.hanging_indent == "1rem"
        assert render.emphasize_authors is True

    def test_definitions_default_to_http(self):
        """Test definitions come from the CSL repositories by default."""
        definitions = DefinitionsConfig()

        assert "{name}" in definitions.style_url
        assert "locales-{name}.xml" in definitions.locale_url
        assert definitions.is_local is False

    def test_round_trip_dict(self):
        """Test to_dict() and from_dict() agree."""
        config = Config(session=SessionConfig(style="ieee", locale="de-DE"))

        restored = Config.from_dict(config.to_dict())

        assert restored == config


class TestConfigValidation:
    """Tests for Config.__post_init__ validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"session": SessionConfig(style=" ")},
            {"session": SessionConfig(locale="")},
            {"render": RenderConfig(frame_interval_sec=-1)},
            {"definitions": DefinitionsConfig(timeout_seconds=0)},
            {"definitions": DefinitionsConfig(style_url="https://example.org/style.csl")},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        """Test invalid settings raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            Config(**kwargs)

    def test_invalid_log_level(self):
        """Test unknown log levels are rejected."""
        with pytest.raises(ConfigurationError, match="logging.level"):
            Config.from_dict({"logging": {"level": "LOUD"}})

    def test_unknown_keys_ignored(self):
        """Test unknown YAML keys do not break loading."""
        config = Config.from_dict({"session": {"style": "apa", "colour": "red"}})

        assert config.session.style == "apa"


class TestLoadConfig:
    """Tests for load_config() and save_config()."""

    def test_no_file_gives_defaults(self, temp_dir):
        """Test a directory without citeweave.yaml gives defaults."""
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(base_path=temp_dir)

        assert config == Config()

    def test_yaml_file_found_in_base_path(self, temp_dir):
        """Test citeweave.yaml is picked up from base_path."""
        (temp_dir / "citeweave.yaml").write_text(
            yaml.safe_dump({"session": {"style": "ieee"}, "render": {"line_height_factor": 1.0}})
        )

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(base_path=temp_dir)

        assert config.session.style == "ieee"
        assert config.render.line_height_factor == 1.0

    def test_empty_env_dir_means_unset(self, temp_dir):
        """Test ${VAR:} for a directory expands to None, not ""."""
        path = temp_dir / "citeweave.yaml"
        path.write_text("definitions:\n  styles_dir: ${CSL_STYLES:}\n")

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)

        assert config.definitions.styles_dir is None

    def test_missing_explicit_file(self, temp_dir):
        """Test a missing explicit path falls back to defaults."""
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(temp_dir / "nope.yaml")

        assert config.session.style == "apa"

    def test_env_overrides(self, temp_dir):
        """Test CITEWEAVE_* variables win over the file."""
        env = {
            "CITEWEAVE_STYLE": "chicago-author-date",
            "CITEWEAVE_LOCALE": "fr-FR",
            "CITEWEAVE_TIMEOUT": "12",
            "CITEWEAVE_STYLES_DIR": "/srv/styles",
            "CITEWEAVE_LOCALES_DIR": "/srv/locales",
            "CITEWEAVE_LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config(base_path=temp_dir)

        assert config.session.style == "chicago-author-date"
        assert config.session.locale == "fr-FR"
        assert config.definitions.timeout_seconds == 12.0
        assert config.definitions.is_local is True
        assert config.logging.level == "DEBUG"

    @pytest.mark.parametrize(
        "env",
        [
            {"CITEWEAVE_STYLE": "../etc/passwd"},
            {"CITEWEAVE_TIMEOUT": "soon"},
            {"CITEWEAVE_TIMEOUT": "9999"},
            {"CITEWEAVE_LOG_LEVEL": "LOUD"},
        ],
    )
    def test_invalid_env_overrides_ignored(self, temp_dir, env):
        """Test malformed overrides leave the defaults in place."""
        with patch.dict(os.environ, env, clear=True):
            config = load_config(base_path=temp_dir)

        assert config == Config()

    def test_save_and_load(self, temp_dir):
        """Test save_config() writes a file load_config() reads back."""
        config = Config(session=SessionConfig(style="nature", link_citations=False))
        path = temp_dir / "nested" / "citeweave.yaml"

        save_config(config, path)
        with patch.dict(os.environ, {}, clear=True):
            loaded = load_config(path)

        assert loaded == config
