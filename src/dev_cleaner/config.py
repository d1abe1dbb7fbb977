"""Configuration management for dev-cleaner."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.logging import RichHandler

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def parse_bool(value: Any, default: bool) -> bool:
    """Parse a YAML or string boolean, falling back to ``default`` for None."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


@dataclass
class CleanerConfig:
    """Configuration for the cleaner, CLI and tree browser."""

    # Simulate deletions unless explicitly disabled
    dry_run: bool = True

    # Audit trail of every planned and performed deletion
    log_file: Path = field(default_factory=lambda: Path.home() / ".dev-cleaner.log")

    # Console logging
    log_level: str = "INFO"

    # Deepest tree level that can still be expanded
    max_depth: int = 5

    # HOME captured once at startup; never written to the config file
    home: str | None = field(default_factory=lambda: os.environ.get("HOME") or None)

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        return Path.home() / ".dev-cleaner.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> CleanerConfig:
        """Load configuration from a YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded configuration, or defaults when the file is missing.

        Raises:
            ValueError: If the file is not valid YAML or holds invalid values.

        """
        if config_path is None:
            config_path = cls.get_config_path()

        if not config_path.exists():
            return cls()

        try:
            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {config_path}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> CleanerConfig:
        """Create config from dictionary."""
        config = cls()

        config.dry_run = parse_bool(data.get("dry_run"), config.dry_run)

        if "max_depth" in data:
            config.max_depth = int(data["max_depth"])
            if config.max_depth <= 0:
                raise ValueError(f"max_depth must be positive, got {config.max_depth}")

        # Logging
        if "logging" in data:
            logging_cfg = data["logging"] or {}
            if "file" in logging_cfg:
                config.log_file = Path(os.path.expanduser(logging_cfg["file"]))
            if "level" in logging_cfg:
                config.log_level = str(logging_cfg["level"]).upper()

        config.validate()
        return config

    def validate(self) -> None:
        """Check values that cannot be caught while parsing.

        Raises:
            ValueError: On an unknown log level or non-positive max depth.

        """
        if self.log_level.upper() not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")
        if self.max_depth <= 0:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "dry_run": self.dry_run,
            "max_depth": self.max_depth,
            "logging": {
                "file": str(self.log_file),
                "level": self.log_level,
            },
        }

        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def setup_logging(config: CleanerConfig) -> logging.Logger:
    """Configure the application logger with a Rich console handler.

    Returns:
        The ``dev_cleaner`` logger.

    """
    config.validate()
    logger = logging.getLogger("dev_cleaner")
    logger.setLevel(getattr(logging, config.log_level.upper()))

    # Clear existing handlers to avoid duplicates if called twice
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    logger.addHandler(console_handler)

    return logger
