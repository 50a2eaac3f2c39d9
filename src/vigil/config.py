"""Global configuration — XDG paths, env vars, optional YAML file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_SCANNER_TIMEOUT = 10.0


def _default_data_dir() -> Path:
    home = os.environ.get("VIGIL_HOME")
    if home:
        return Path(home)
    return Path.home() / ".vigil"


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "vigil"
    return Path.home() / ".config" / "vigil"


@dataclass
class VigilConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)
    config_dir: Path = field(default_factory=_default_config_dir)
    keys_dir: Path | None = None
    scanner_timeout: float = DEFAULT_SCANNER_TIMEOUT
    disabled_domains: list[str] = field(default_factory=list)
    verbose: bool = False

    @property
    def resolved_keys_dir(self) -> Path:
        return self.keys_dir if self.keys_dir is not None else self.data_dir / "keys"

    @classmethod
    def load(cls, path: str | Path | None = None) -> VigilConfig:
        """Load config from an optional YAML file, then environment variables."""
        config = cls()

        config_file = Path(path) if path else config.config_dir / "config.yaml"
        if config_file.is_file():
            config._apply_file(config_file)

        env_timeout = os.environ.get("VIGIL_SCANNER_TIMEOUT")
        if env_timeout:
            config.scanner_timeout = float(env_timeout)

        env_keys = os.environ.get("VIGIL_KEYS_DIR")
        if env_keys:
            config.keys_dir = Path(env_keys)

        return config

    def _apply_file(self, path: Path) -> None:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if data is None:
            return
        if not isinstance(data, dict):
            raise ValueError(f"Config YAML must be a mapping: {path}")

        if "scanner_timeout" in data:
            self.scanner_timeout = float(data["scanner_timeout"])
        if "keys_dir" in data:
            self.keys_dir = Path(data["keys_dir"]).expanduser()
        disabled = data.get("disabled_domains", [])
        if isinstance(disabled, str):
            disabled = [disabled]
        self.disabled_domains = [str(d) for d in disabled]
