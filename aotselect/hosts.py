"""Names of the native .NET host binaries that never belong in a native publish."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Optional

_WINDOWS_ALIASES = {"windows", "win", "win32", "win-x64", "win-x86", "win-arm64"}
_MAC_ALIASES = {"osx", "macos", "darwin", "maccatalyst"}


@dataclass(frozen=True)
class HostNames:
    """Application host executable plus the host resolver and policy libraries."""

    app_host: str
    host_fxr: str
    host_policy: str

    def __post_init__(self) -> None:
        for label, value in (
            ("app_host", self.app_host),
            ("host_fxr", self.host_fxr),
            ("host_policy", self.host_policy),
        ):
            if not value:
                raise ValueError(f"Host name '{label}' must not be empty")


def _current_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "osx"
    return sys.platform


def host_names_for(target_os: Optional[str] = None) -> HostNames:
    """Return the host binary names the SDK uses when targeting ``target_os``."""
    os_name = (target_os or _current_os()).strip().lower()
    if os_name in _WINDOWS_ALIASES:
        return HostNames("apphost.exe", "hostfxr.dll", "hostpolicy.dll")
    if os_name in _MAC_ALIASES:
        return HostNames("apphost", "libhostfxr.dylib", "libhostpolicy.dylib")
    return HostNames("apphost", "libhostfxr.so", "libhostpolicy.so")


__all__ = ["HostNames", "host_names_for"]
