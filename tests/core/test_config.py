"""Tests for configuration models and the YAML loader."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from histfix.core.config import (
    CONFIG_FILENAME,
    DEBUG_COMMITS_ENV,
    HistfixConfig,
    MiningConfig,
    load_config,
)
from histfix.core.exceptions import ConfigError, ConfigValidationError


class TestModels:
    """Tests for defaults and field validation."""

    def test_defaults(self) -> None:
        config = HistfixConfig()

        assert config.mining.refactor_threshold == 3
        assert config.mining.source_extensions == (".rs",)
        assert config.mining.short_id_len == 7
        assert config.highlights.command == ("cargo", "check", "--message-format=json")
        assert config.engine.max_passes is None

    def test_extensions_are_normalized(self) -> None:
        assert MiningConfig(source_extensions="rs").source_extensions == (".rs",)
        assert MiningConfig(source_extensions=["rs", ".ron"]).source_extensions == (".rs", ".ron")

    def test_refactor_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            MiningConfig(refactor_threshold=0)

    def test_models_are_frozen(self) -> None:
        config = MiningConfig()
        with pytest.raises(ValidationError):
            config.refactor_threshold = 5  # type: ignore[misc]

    def test_debug_commits_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(DEBUG_COMMITS_ENV, raising=False)
        assert not MiningConfig().debug_commits_enabled

        monkeypatch.setenv(DEBUG_COMMITS_ENV, "1")
        assert MiningConfig().debug_commits_enabled


class TestLoadConfig:
    """Tests for load_config()."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == HistfixConfig()

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("")

        assert load_config(tmp_path) == HistfixConfig()

    def test_loads_project_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text(
            "mining:\n"
            "  refactor_threshold: 5\n"
            "  source_extensions: [rs, c]\n"
            "highlights:\n"
            "  command: [cargo, clippy, --message-format=json]\n"
            "engine:\n"
            "  max_passes: 4\n"
        )

        config = load_config(tmp_path)

        assert config.mining.refactor_threshold == 5
        assert config.mining.source_extensions == (".rs", ".c")
        assert config.highlights.command == ("cargo", "clippy", "--message-format=json")
        assert config.engine.max_passes == 4

    def test_explicit_path(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("engine:\n  max_passes: 2\n")

        assert load_config(tmp_path, path).engine.max_passes == 2

    def test_explicit_path_must_exist(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path, tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("mining: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(tmp_path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="must be a YAML mapping"):
            load_config(tmp_path)

    def test_validation_errors_are_structured(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("mining:\n  refactor_threshold: 0\n")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(tmp_path)

        locations = [tuple(err["loc"]) for err in exc_info.value.errors]
        assert ("mining", "refactor_threshold") in locations
