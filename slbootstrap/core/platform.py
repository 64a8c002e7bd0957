"""
Platform detection for strangeloop bootstrap.

Setup behaves differently on three hosts:

- Windows: tools are installed with winget/msiexec, and Linux loops are
  developed inside a WSL distribution.
- WSL: a Linux distribution running under Windows; tools are installed with
  apt, Docker comes from Docker Desktop's WSL integration.
- Native Linux: apt for everything, Docker Engine from get.docker.com.

Usage:
    from slbootstrap.core.platform import detect_platform

    info = detect_platform()
    print(info.kind())           # 'windows', 'wsl' or 'linux'
    print(info.loop_platform())  # 'windows' or 'linux'
"""

import functools
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import distro

WINDOWS = "windows"
WSL = "wsl"
LINUX = "linux"
MACOS = "macos"

_WSL_MARKERS = ("microsoft", "wsl")


@dataclass
class PlatformInfo:
    """
    Host platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
        os_version: OS or kernel version string
        distribution: Linux distribution id ('ubuntu', 'debian', ...) or empty
        is_wsl: True when running inside Windows Subsystem for Linux
        wsl_distro: WSL distribution name when is_wsl (from WSL_DISTRO_NAME)
    """

    os: str
    arch: str
    os_version: str
    distribution: str = ""
    is_wsl: bool = False
    wsl_distro: Optional[str] = None

    def kind(self) -> str:
        """
        Setup flavour for this host: 'windows', 'wsl', 'linux' or 'macos'.

        Example:
            >>> PlatformInfo('linux', 'x64', '5.15', 'ubuntu', True, 'Ubuntu').kind()
            'wsl'
        """
        if self.os == LINUX and self.is_wsl:
            return WSL
        return self.os

    def loop_platform(self) -> str:
        """Loop target family this host develops natively ('windows' or 'linux')."""
        return WINDOWS if self.os == WINDOWS else LINUX

    @property
    def is_windows(self) -> bool:
        return self.os == WINDOWS

    @property
    def uses_apt(self) -> bool:
        """Debian-family Linux where apt-get is the package manager."""
        return self.os == LINUX and self.distribution in (
            "ubuntu",
            "debian",
            "linuxmint",
            "pop",
        )

    def __str__(self) -> str:
        parts = [f"{self.kind()}-{self.arch}"]
        if self.distribution:
            parts.append(f"({self.distribution})")
        if self.wsl_distro:
            parts.append(f"[WSL: {self.wsl_distro}]")
        parts.append(f"v{self.os_version}")
        return " ".join(parts)


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    Cached: detection runs once per process.
    """
    os_name = _detect_os()
    is_wsl = os_name == LINUX and _detect_wsl()

    return PlatformInfo(
        os=os_name,
        arch=_detect_architecture(),
        os_version=_detect_os_version(),
        distribution=_detect_distribution() if os_name == LINUX else "",
        is_wsl=is_wsl,
        wsl_distro=os.environ.get("WSL_DISTRO_NAME") if is_wsl else None,
    )


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'windows', 'linux', 'macos'
    """
    system = platform.system().lower()

    if system == "windows":
        return WINDOWS
    elif system == "linux":
        return LINUX
    elif system == "darwin":
        return MACOS
    else:
        return system


def _detect_wsl() -> bool:
    """
    Detect whether this Linux is running under WSL.

    WSL sets WSL_DISTRO_NAME / WSL_INTEROP in every shell; when those are
    scrubbed (sudo, systemd services) the kernel version string still names
    Microsoft.
    """
    if os.environ.get("WSL_DISTRO_NAME") or os.environ.get("WSL_INTEROP"):
        return True

    for marker_file in ("/proc/version", "/proc/sys/kernel/osrelease"):
        try:
            content = Path(marker_file).read_text(encoding="utf-8").lower()
        except OSError:
            continue
        if any(marker in content for marker in _WSL_MARKERS):
            return True

    return False


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        return machine


def _detect_os_version() -> str:
    system = platform.system().lower()

    if system == "windows":
        return platform.version()
    elif system == "darwin":
        version = platform.mac_ver()[0]
        return version if version else "unknown"
    else:
        return platform.release()


def _detect_distribution() -> str:
    """
    Detect Linux distribution id ('ubuntu', 'debian', ...).

    Returns 'unknown' when the distribution cannot be identified.
    """
    return distro.id() or "unknown"


def is_supported_platform(info: Optional[PlatformInfo] = None) -> bool:
    """
    Check whether setup can run on this host.

    Windows, WSL and native Linux on x64/arm64 are supported.
    """
    if info is None:
        info = detect_platform()

    return info.kind() in (WINDOWS, WSL, LINUX) and info.arch in ("x64", "arm64")


def clear_platform_cache():
    """
    Clear the platform detection cache.

    Forces the next call to detect_platform() to re-detect.
    """
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "WINDOWS",
    "WSL",
    "LINUX",
    "MACOS",
    "detect_platform",
    "is_supported_platform",
    "clear_platform_cache",
]
