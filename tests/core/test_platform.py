"""
Unit tests for the platform detection module.

Tests cover:
- PlatformInfo classification (windows / wsl / linux)
- OS and architecture normalization
- WSL detection from environment and kernel version
- Linux distribution detection
- Platform validation
- Cache behavior
"""

import os
from unittest.mock import patch

import pytest

from slbootstrap.core.platform import (
    LINUX,
    WINDOWS,
    WSL,
    PlatformInfo,
    _detect_architecture,
    _detect_distribution,
    _detect_os,
    _detect_wsl,
    clear_platform_cache,
    detect_platform,
    is_supported_platform,
)


class TestPlatformInfo:
    """Tests for PlatformInfo dataclass."""

    def test_kind_windows(self, windows_platform):
        assert windows_platform.kind() == WINDOWS
        assert windows_platform.is_windows

    def test_kind_wsl(self, wsl_platform):
        assert wsl_platform.kind() == WSL
        assert not wsl_platform.is_windows

    def test_kind_native_linux(self, linux_platform):
        assert linux_platform.kind() == LINUX

    def test_loop_platform(self, windows_platform, wsl_platform, linux_platform):
        """WSL and native Linux both develop Linux loops."""
        assert windows_platform.loop_platform() == "windows"
        assert wsl_platform.loop_platform() == "linux"
        assert linux_platform.loop_platform() == "linux"

    def test_uses_apt_for_debian_family(self, linux_platform):
        assert linux_platform.uses_apt
        fedora = PlatformInfo("linux", "x64", "6.5", "fedora")
        assert not fedora.uses_apt

    def test_str_includes_wsl_distro(self, wsl_platform):
        text = str(wsl_platform)
        assert text.startswith("wsl-x64")
        assert "(ubuntu)" in text
        assert "[WSL: Ubuntu-24.04]" in text


class TestDetectOS:
    """Tests for OS detection."""

    @pytest.mark.parametrize(
        "system,expected",
        [("Windows", "windows"), ("Linux", "linux"), ("Darwin", "macos"), ("FreeBSD", "freebsd")],
    )
    def test_detect_os(self, system, expected):
        with patch("platform.system", return_value=system):
            assert _detect_os() == expected


class TestDetectArchitecture:
    """Tests for architecture normalization."""

    @pytest.mark.parametrize(
        "machine,expected",
        [
            ("x86_64", "x64"),
            ("AMD64", "x64"),
            ("aarch64", "arm64"),
            ("arm64", "arm64"),
            ("i686", "x86"),
            ("armv7l", "arm"),
            ("riscv64", "riscv64"),
        ],
    )
    def test_detect_architecture(self, machine, expected):
        with patch("platform.machine", return_value=machine):
            assert _detect_architecture() == expected


class TestDetectWSL:
    """Tests for WSL detection."""

    def test_environment_variable(self):
        with patch.dict(os.environ, {"WSL_DISTRO_NAME": "Ubuntu"}):
            assert _detect_wsl() is True

    def test_kernel_version_marker(self):
        kernel = "Linux version 5.15.153.1-microsoft-standard-WSL2 (root@x)"
        with patch.dict(os.environ, {}, clear=True):
            with patch("pathlib.Path.read_text", return_value=kernel):
                assert _detect_wsl() is True

    def test_plain_linux(self):
        with patch.dict(os.environ, {}, clear=True):
            with patch("pathlib.Path.read_text", return_value="Linux version 6.5.0-generic"):
                assert _detect_wsl() is False

    def test_unreadable_proc(self):
        with patch.dict(os.environ, {}, clear=True):
            with patch("pathlib.Path.read_text", side_effect=OSError("denied")):
                assert _detect_wsl() is False


class TestDetectDistribution:
    def test_distribution_id(self):
        with patch("distro.id", return_value="ubuntu"):
            assert _detect_distribution() == "ubuntu"

    def test_unknown_distribution(self):
        with patch("distro.id", return_value=""):
            assert _detect_distribution() == "unknown"


class TestSupportedPlatform:
    """Tests for platform validation."""

    def test_supported_hosts(self, windows_platform, wsl_platform, linux_platform):
        assert is_supported_platform(windows_platform)
        assert is_supported_platform(wsl_platform)
        assert is_supported_platform(linux_platform)

    def test_linux_arm64_supported(self):
        assert is_supported_platform(PlatformInfo("linux", "arm64", "6.5", "debian"))

    def test_macos_not_supported(self):
        assert not is_supported_platform(PlatformInfo("macos", "arm64", "14.1"))

    def test_32bit_not_supported(self):
        assert not is_supported_platform(PlatformInfo("linux", "x86", "5.10", "debian"))


class TestDetectPlatformCache:
    """Tests for cached detection."""

    def test_detection_is_cached(self):
        clear_platform_cache()
        with patch("slbootstrap.core.platform._detect_os", return_value="linux") as mock_os, patch(
            "slbootstrap.core.platform._detect_wsl", return_value=False
        ), patch("slbootstrap.core.platform._detect_distribution", return_value="ubuntu"):
            first = detect_platform()
            second = detect_platform()

        assert first is second
        assert mock_os.call_count == 1
        assert first.distribution == "ubuntu"
        assert first.is_wsl is False

    def test_wsl_distro_from_environment(self):
        clear_platform_cache()
        with patch("slbootstrap.core.platform._detect_os", return_value="linux"), patch(
            "slbootstrap.core.platform._detect_wsl", return_value=True
        ), patch("slbootstrap.core.platform._detect_distribution", return_value="ubuntu"), patch.dict(
            os.environ, {"WSL_DISTRO_NAME": "Ubuntu-24.04"}
        ):
            info = detect_platform()

        assert info.kind() == WSL
        assert info.wsl_distro == "Ubuntu-24.04"
        clear_platform_cache()
