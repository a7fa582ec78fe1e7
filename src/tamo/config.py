"""Configuration loading from environment variables and tamo.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from tamo.storage import DEFAULT_DIR_NAME, DEFAULT_FILE_NAME

_CONFIG_FILENAME = "tamo.toml"
_DEFAULT_EDITOR = "nano"


@dataclass
class DisplayConfig:
    """Display configuration."""

    short_id_length: int = 8


@dataclass
class TamoConfig:
    """Top-level tamo configuration."""

    data_dir: Path = Path(DEFAULT_DIR_NAME)
    data_file: str = DEFAULT_FILE_NAME
    editor: str = _DEFAULT_EDITOR
    log_level: str = "WARNING"
    display: DisplayConfig = field(default_factory=DisplayConfig)

    @property
    def data_path(self) -> Path:
        return self.data_dir / self.data_file


def load_config(config_path: Path | None = None) -> TamoConfig:
    """Load configuration from environment variables and optional tamo.toml.

    Priority: environment variables > tamo.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    else:
        # Search current dir and ~/.tamo/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".tamo" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text(encoding="utf-8"))
                break

    editor_data = file_data.get("editor", {})
    display_data = file_data.get("display", {})

    config = TamoConfig(
        data_dir=Path(os.getenv("TAMO_DIR", file_data.get("data_dir", DEFAULT_DIR_NAME))),
        data_file=os.getenv("TAMO_FILE", file_data.get("data_file", DEFAULT_FILE_NAME)),
        editor=(
            os.getenv("TAMO_EDITOR")
            or os.getenv("EDITOR")
            or editor_data.get("command", _DEFAULT_EDITOR)
        ),
        log_level=os.getenv("TAMO_LOG_LEVEL", file_data.get("log_level", "WARNING")),
        display=DisplayConfig(
            short_id_length=int(display_data.get("short_id_length", 8)),
        ),
    )
    return config
