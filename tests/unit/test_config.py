"""
Tests for Configuration System.

This test suite covers:
1. Schema validation (type mismatch, constraint violation)
2. TOML generation from schema (with comments)
3. Loading the [plugpack] table and the [[plugins]] list
4. Error cases
"""

import tempfile
from pathlib import Path

import pytest
import tomlkit

from plugpack.config import (
    ConfigError,
    PackConfig,
    load_config,
    load_plugin_sources,
    write_default_config,
)
from plugpack.config.schema import ConfigField, SchemaError, ValidationError


class TestSchemaValidation:
    """Test schema field validation."""

    def test_field_default_type_mismatch(self):
        """ConfigField should reject a default that doesn't match its type."""
        with pytest.raises(SchemaError, match="Expected type"):
            ConfigField(int, "not an int", "Bad default")

    def test_bool_is_not_an_int(self):
        field = ConfigField(int, 1)
        with pytest.raises(ValidationError, match="Expected type"):
            field.validate(True)

    def test_field_min_max_constraints(self):
        """ConfigField should accept min/max constraints for numbers."""
        field = ConfigField(int, 50, "Number with range", min=0, max=100)

        field.validate(0)
        field.validate(100)

        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate(-1)

        with pytest.raises(ValidationError, match="greater than maximum"):
            field.validate(101)

    def test_field_string_length_constraints(self):
        field = ConfigField(str, "hello", "String with length", min=3)

        field.validate("abc")

        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate("ab")

    def test_list_item_type(self):
        field = ConfigField(list, ["main"], item_type=str)

        field.validate(["main", "master"])

        with pytest.raises(ValidationError, match="List items must be str"):
            field.validate(["main", 1])

    def test_constraints_on_unsupported_type(self):
        with pytest.raises(SchemaError, match="min/max"):
            ConfigField(bool, True, min=1)


class TestPackConfig:
    """Test the typed settings view."""

    def test_defaults(self):
        cfg = PackConfig()

        assert cfg.parallel_limit == 4
        assert cfg.clear_queue_after_install is True
        assert cfg.default_host == "https://github.com/"
        assert cfg.debounce_ms == 10
        assert cfg.enter_event == "enter"
        assert cfg.transient_prefixes == ["oil://"]
        assert cfg.fallback_branches == ["main", "master"]
        assert cfg.remote == "origin"

    def test_invalid_value_rejected(self):
        with pytest.raises(ConfigError, match="parallel_limit"):
            PackConfig(parallel_limit=0)

    def test_from_dict_fills_defaults(self):
        cfg = PackConfig.from_dict({"parallel_limit": 8, "remote": "upstream"})

        assert cfg.parallel_limit == 8
        assert cfg.remote == "upstream"
        assert cfg.debounce_ms == 10

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigError, match="Unknown configuration field"):
            PackConfig.from_dict({"paralel_limit": 8})

    def test_instances_do_not_share_lists(self):
        first = PackConfig()
        first.fallback_branches.append("trunk")

        assert PackConfig().fallback_branches == ["main", "master"]


class TestLoading:
    """Test reading configuration files."""

    def test_missing_file_yields_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            assert load_config(Path(tmpdir) / "absent.toml") == PackConfig()
            assert load_plugin_sources(Path(tmpdir) / "absent.toml") == []

    def test_load_section(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "plugpack.toml"
            config_file.write_text(
                '[plugpack]\nparallel_limit = 2\nfallback_branches = ["trunk"]\n',
                encoding="utf-8",
            )

            cfg = load_config(config_file)

            assert cfg.parallel_limit == 2
            assert cfg.fallback_branches == ["trunk"]

    def test_invalid_value_in_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "plugpack.toml"
            config_file.write_text('[plugpack]\ndebounce_ms = "soon"\n', encoding="utf-8")

            with pytest.raises(ConfigError, match="debounce_ms"):
                load_config(config_file)

    def test_section_must_be_table(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "plugpack.toml"
            config_file.write_text('plugpack = 3\n', encoding="utf-8")

            with pytest.raises(ConfigError, match="must be a table"):
                load_config(config_file)

    def test_malformed_toml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "plugpack.toml"
            config_file.write_text('[plugpack\n', encoding="utf-8")

            with pytest.raises(ConfigError, match="Failed to parse"):
                load_config(config_file)

    def test_plugin_sources(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "plugpack.toml"
            config_file.write_text(
                '[[plugins]]\nsrc = "a/one"\n\n[[plugins]]\nsrc = "a/two"\nversion = "v1"\n',
                encoding="utf-8",
            )

            assert load_plugin_sources(config_file) == [
                {"src": "a/one"},
                {"src": "a/two", "version": "v1"},
            ]

    def test_plugin_sources_must_be_tables(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "plugpack.toml"
            config_file.write_text('plugins = ["a/one"]\n', encoding="utf-8")

            with pytest.raises(ConfigError, match="array of tables"):
                load_plugin_sources(config_file)


class TestDefaultConfig:
    """Test generated configuration files."""

    def test_generated_file_has_comments(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = write_default_config(Path(tmpdir) / "nested" / "plugpack.toml")

            text = config_file.read_text(encoding="utf-8")

            assert "# Maximum concurrent remote fetches" in text
            assert "# Constraints: min: 1" in text
            assert "parallel_limit = 4" in text

    def test_generated_file_loads_as_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = write_default_config(Path(tmpdir) / "plugpack.toml")

            assert load_config(config_file) == PackConfig()

    def test_generate_with_values(self):
        from plugpack.config import SCHEMA
        from plugpack.config.toml_handler import generate_toml_from_schema

        doc = generate_toml_from_schema("plugpack", SCHEMA, {"remote": "upstream"})

        assert 'remote = "upstream"' in tomlkit.dumps(doc)
