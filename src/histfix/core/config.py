"""Configuration models and loader for histfix.

Configuration is optional. When present it lives at
``{project_root}/.histfix.yaml`` (or any path passed explicitly) and is
validated with Pydantic. Every field has a default, so an empty file or a
missing file yields the default configuration.

Example:
    >>> from histfix.core.config import load_config
    >>> config = load_config(Path("/path/to/crate"))
    >>> config.mining.refactor_threshold
    3

"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from histfix.core.exceptions import ConfigError, ConfigValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".histfix.yaml"

# Env var that forces per-commit debug listing during mining
DEBUG_COMMITS_ENV: str = "HISTFIX_DEBUG_COMMITS"

__all__ = [
    "CONFIG_FILENAME",
    "DEBUG_COMMITS_ENV",
    "MiningConfig",
    "HighlightConfig",
    "EngineConfig",
    "HistfixConfig",
    "load_config",
]


class MiningConfig(BaseModel):
    """Commit/diff mining settings.

    Attributes:
        refactor_threshold: Hunks whose old and new sides both have at least
            this many lines are treated as restructuring and discarded.
        source_extensions: Only patches whose old path ends with one of these
            extensions are mined.
        git_timeout: Timeout in seconds for each git invocation.
        short_id_len: Length of abbreviated commit ids in reports.
        debug_commits: Log every mined commit's short id and summary.

    """

    model_config = ConfigDict(frozen=True)

    refactor_threshold: int = Field(
        default=3,
        ge=1,
        description="Old and new line counts at or above which a hunk is a refactor",
    )
    source_extensions: tuple[str, ...] = Field(
        default=(".rs",),
        min_length=1,
        description="File extensions whose patches are mined",
    )
    git_timeout: int = Field(
        default=120,
        ge=1,
        description="Timeout for each git command in seconds",
    )
    short_id_len: int = Field(
        default=7,
        ge=4,
        le=40,
        description="Abbreviated commit id length used in reports",
    )
    debug_commits: bool = Field(
        default=False,
        description="Log each mined commit (also enabled by HISTFIX_DEBUG_COMMITS=1)",
    )

    @field_validator("source_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Any) -> Any:
        """Accept a single string and add missing leading dots."""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple)):
            return tuple(ext if str(ext).startswith(".") else f".{ext}" for ext in v)
        return v

    @property
    def debug_commits_enabled(self) -> bool:
        """Return True if commit listing is on via config or environment."""
        return self.debug_commits or os.environ.get(DEBUG_COMMITS_ENV) == "1"


class HighlightConfig(BaseModel):
    """Settings for the command-based highlight provider.

    Attributes:
        command: Analysis command producing JSON diagnostics on stdout,
            one JSON object per line.
        timeout: Timeout in seconds for one analysis run.

    """

    model_config = ConfigDict(frozen=True)

    command: tuple[str, ...] = Field(
        default=("cargo", "check", "--message-format=json"),
        min_length=1,
        description="Analysis command emitting compiler-message JSON lines",
    )
    timeout: int = Field(
        default=1800,
        ge=1,
        description="Timeout for one analysis run in seconds",
    )


class EngineConfig(BaseModel):
    """Fixed-point loop settings.

    Attributes:
        max_passes: Upper bound on the number of passes. None means the loop
            runs until it converges or stalls.

    """

    model_config = ConfigDict(frozen=True)

    max_passes: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of rewrite passes (None = unbounded)",
    )


class HistfixConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(frozen=True)

    mining: MiningConfig = Field(default_factory=MiningConfig)
    highlights: HighlightConfig = Field(default_factory=HighlightConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)


def load_config(project_root: Path, config_path: Path | None = None) -> HistfixConfig:
    """Load and validate configuration.

    Args:
        project_root: Directory searched for ``.histfix.yaml`` when
            config_path is None.
        config_path: Explicit configuration file. Must exist if given.

    Returns:
        Validated HistfixConfig (defaults when no file is found).

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML, or is
            not a mapping.
        ConfigValidationError: If Pydantic validation fails.

    """
    if config_path is None:
        candidate = project_root / CONFIG_FILENAME
        if not candidate.is_file():
            logger.debug("No %s in %s, using defaults", CONFIG_FILENAME, project_root)
            return HistfixConfig()
        config_path = candidate
    elif not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return HistfixConfig()

    if not isinstance(data, dict):
        raise ConfigError(
            f"Config must be a YAML mapping, got {type(data).__name__}: {config_path}"
        )

    try:
        config = HistfixConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid configuration in {config_path}",
            [dict(err) for err in e.errors()],
        ) from e

    logger.debug("Loaded configuration from %s", config_path)
    return config
