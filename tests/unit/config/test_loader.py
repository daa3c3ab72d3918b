"""Unit tests for the TOML configuration loader."""

from pathlib import Path

import pytest

from chronicle.config.loader import (
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_simple_override(self) -> None:
        """Override replaces top-level values."""
        assert deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self) -> None:
        """Nested dictionaries merge recursively."""
        base = {"audit": {"append_max_attempts": 3, "default_domain": "DEFAULT"}}
        override = {"audit": {"append_max_attempts": 5}}

        assert deep_merge(base, override) == {
            "audit": {"append_max_attempts": 5, "default_domain": "DEFAULT"}
        }

    def test_lists_are_replaced(self) -> None:
        base = {"audit": {"metadata_fields": ["id", "created_timestamp"]}}
        override = {"audit": {"metadata_fields": ["id"]}}

        assert deep_merge(base, override)["audit"]["metadata_fields"] == ["id"]

    def test_inputs_not_modified(self) -> None:
        """Neither input dictionary is modified."""
        base = {"a": {"b": 1}}
        override = {"a": {"c": 2}}

        deep_merge(base, override)

        assert base == {"a": {"b": 1}}
        assert override == {"a": {"c": 2}}


class TestLoadToml:
    def test_load_valid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "test.toml"
        path.write_text('[storage]\nbackend = "postgres"')

        assert load_toml(path) == {"storage": {"backend": "postgres"}}

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "missing.toml")


class TestEnvironment:
    def test_default_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CHRONICLE_ENV", raising=False)
        assert get_environment() == "development"

    def test_environment_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHRONICLE_ENV", "production")
        assert get_environment() == "production"

    def test_config_dir_from_env(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CHRONICLE_CONFIG_DIR", str(test_config_dir))
        assert get_config_dir() == test_config_dir

    def test_missing_config_dir_raises(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CHRONICLE_CONFIG_DIR", str(tmp_path / "nope"))
        with pytest.raises(FileNotFoundError):
            get_config_dir()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_environment_file_overrides_default(
        self,
        test_config_dir: Path,
        mock_toml_files,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_toml_files({
            "default.toml": "[audit]\nappend_max_attempts = 3\ndefault_domain = 'HR'",
            "staging.toml": "[audit]\nappend_max_attempts = 5",
        })
        monkeypatch.setenv("CHRONICLE_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("CHRONICLE_ENV", "staging")

        config = load_config()

        assert config["audit"] == {"append_max_attempts": 5, "default_domain": "HR"}

    def test_missing_environment_file_is_optional(
        self,
        test_config_dir: Path,
        mock_toml_files,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_toml_files({"default.toml": "[storage]\nbackend = 'inmemory'"})
        monkeypatch.setenv("CHRONICLE_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("CHRONICLE_ENV", "nonexistent")

        assert load_config() == {"storage": {"backend": "inmemory"}}

    def test_missing_default_raises(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CHRONICLE_CONFIG_DIR", str(test_config_dir))

        with pytest.raises(FileNotFoundError, match="default.toml"):
            load_config()
