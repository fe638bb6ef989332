"""Configuration loading for aotselect (.aotselect.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .hosts import HostNames, host_names_for

CONFIG_FILE_NAME = ".aotselect.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class HostConfig:
    """Explicit host binary names overriding the target OS defaults."""

    app_host: Optional[str] = None
    host_fxr: Optional[str] = None
    host_policy: Optional[str] = None


@dataclass
class ReplacementConfig:
    """Paths of modules the native toolchain ships in place of same-named closure members."""

    sdk: List[str] = field(default_factory=list)
    framework: List[str] = field(default_factory=list)


@dataclass
class AotSelectConfig:
    """Represents the settings defined in .aotselect.yml."""

    root: Path
    compilation_mode: Optional[str] = None
    target_os: Optional[str] = None
    hosts: HostConfig = field(default_factory=HostConfig)
    replacements: ReplacementConfig = field(default_factory=ReplacementConfig)

    def host_names(self) -> HostNames:
        defaults = host_names_for(self.target_os)
        return HostNames(
            app_host=self.hosts.app_host or defaults.app_host,
            host_fxr=self.hosts.host_fxr or defaults.host_fxr,
            host_policy=self.hosts.host_policy or defaults.host_policy,
        )


def load_config(config_path: Path) -> AotSelectConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return AotSelectConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping at the root")

    hosts_data = _as_dict(data.get("hosts"))
    hosts = HostConfig(
        app_host=_as_str(hosts_data.get("app_host")),
        host_fxr=_as_str(hosts_data.get("host_fxr")),
        host_policy=_as_str(hosts_data.get("host_policy")),
    )

    replacement_data = _as_dict(data.get("replacements"))
    replacements = ReplacementConfig(
        sdk=_resolve_paths(root, _as_str_list(replacement_data.get("sdk"))),
        framework=_resolve_paths(root, _as_str_list(replacement_data.get("framework"))),
    )

    return AotSelectConfig(
        root=root,
        compilation_mode=_as_str(data.get("compilation_mode")),
        target_os=_as_str(data.get("target_os")),
        hosts=hosts,
        replacements=replacements,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _resolve_paths(root: Path, values: Sequence[str]) -> List[str]:
    # Relative entries resolve against the directory holding the config file.
    return [value if Path(value).is_absolute() else str(root / value) for value in values]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "AotSelectConfig",
    "CONFIG_FILE_NAME",
    "ConfigError",
    "HostConfig",
    "ReplacementConfig",
    "load_config",
]
