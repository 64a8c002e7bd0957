"""
Tool capability probes.

A ToolProbe answers three questions about one external tool on one target
(the local host or a WSL distribution): is it installed, which version is
it, and does that version meet the configured minimum. It also knows how to
install or upgrade the tool on each platform.

Example:
    >>> from slbootstrap.tools import GitProbe
    >>> probe = GitProbe(CommandRunner(), detect_platform())
    >>> status = probe.status()
    >>> print(status)
    Git 2.43.0 (/usr/bin/git)
"""

import logging
import re
from abc import ABC
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from packaging.version import InvalidVersion, Version

from slbootstrap.config.parser import ToolSettings
from slbootstrap.core.download import download_file
from slbootstrap.core.exceptions import (
    DownloadError,
    PlatformError,
    ToolInstallError,
    ToolVersionError,
)
from slbootstrap.core.filesystem import get_download_dir
from slbootstrap.core.platform import LINUX, WINDOWS, WSL, PlatformInfo
from slbootstrap.core.process import (
    INSTALL_TIMEOUT,
    CommandResult,
    CommandRunner,
    WSLCommandRunner,
)

logger = logging.getLogger(__name__)

VERSION_PATTERN = r"(\d+\.\d+(?:\.\d+)?)"


@dataclass
class ToolStatus:
    """Result of probing a tool."""

    name: str
    display_name: str
    installed: bool
    version: Optional[str] = None
    path: Optional[str] = None
    min_version: Optional[str] = None
    meets_minimum: bool = True
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.installed and self.meets_minimum

    def __str__(self) -> str:
        if not self.installed:
            return f"{self.display_name} not installed"
        text = f"{self.display_name} {self.version or '(unknown version)'}"
        if self.path:
            text += f" ({self.path})"
        if not self.meets_minimum:
            text += f" - requires {self.min_version}+"
        if self.message:
            text += f" - {self.message}"
        return text


class ToolProbe(ABC):
    """
    Base class for tool probes.

    Subclasses set the class attributes and override ``_install_windows`` /
    ``_install_linux`` (and optionally the upgrade hooks).

    Attributes:
        name: Key used in configuration and state ('git', 'azure-cli')
        display_name: Human readable name
        command: Executable name
        version_args: Arguments printing the version
        version_pattern: Regex whose first group is the version
    """

    name: str = ""
    display_name: str = ""
    command: str = ""
    version_args: Sequence[str] = ("--version",)
    version_pattern: str = VERSION_PATTERN

    def __init__(
        self,
        runner: CommandRunner,
        platform: PlatformInfo,
        settings: Optional[ToolSettings] = None,
    ):
        self.runner = runner
        self.platform = platform
        self.settings = settings or ToolSettings(name=self.name)

    @property
    def min_version(self) -> Optional[str]:
        return self.settings.min_version

    @property
    def target(self) -> str:
        return self.runner.target

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    def find_executable(self) -> Optional[str]:
        return self.runner.which(self.command)

    def is_installed(self) -> bool:
        return self.find_executable() is not None

    def get_version(self) -> Optional[str]:
        """Run the version command and parse its output; None if unavailable."""
        result = self.runner.run([self.command, *self.version_args], mutating=False)
        if not result.ok:
            return None
        return self.parse_version(result.output)

    def parse_version(self, output: str) -> Optional[str]:
        match = re.search(self.version_pattern, output)
        return match.group(1) if match else None

    def meets_minimum(self, version: Optional[str]) -> bool:
        """True when no minimum is configured or version >= minimum."""
        if not self.min_version:
            return True
        if not version:
            return False
        try:
            return Version(version) >= Version(self.min_version)
        except InvalidVersion:
            logger.debug(f"Cannot compare {self.name} version '{version}'")
            return True

    def status(self) -> ToolStatus:
        path = self.find_executable()
        if not path:
            return ToolStatus(
                name=self.name,
                display_name=self.display_name,
                installed=False,
                min_version=self.min_version,
                meets_minimum=False,
            )

        version = self.get_version()
        return ToolStatus(
            name=self.name,
            display_name=self.display_name,
            installed=True,
            version=version,
            path=path,
            min_version=self.min_version,
            meets_minimum=self.meets_minimum(version),
        )

    # ------------------------------------------------------------------
    # Installing
    # ------------------------------------------------------------------

    def install(self) -> None:
        """
        Install the tool for the probe's target platform.

        Raises:
            ToolInstallError: If installation fails
            PlatformError: If the platform has no installer
        """
        kind = self.platform.kind()
        logger.info(f"Installing {self.display_name} ({self.target})")

        if kind == WINDOWS:
            self._install_windows()
        elif kind in (WSL, LINUX):
            self._install_linux()
        else:
            raise PlatformError(
                f"Automatic installation of {self.display_name} is not supported on {kind}"
            )

    def upgrade(self) -> None:
        """Upgrade an installed tool; defaults to reinstalling."""
        self.install()

    def _install_windows(self) -> None:
        raise ToolInstallError(f"No Windows installer defined for {self.display_name}")

    def _install_linux(self) -> None:
        raise ToolInstallError(f"No Linux installer defined for {self.display_name}")

    def ensure(self, check_only: bool = False) -> ToolStatus:
        """
        Make sure the tool is installed at the minimum version.

        Args:
            check_only: Only report status, never install

        Returns:
            Final status (pre-install status for check-only and what-if runs)

        Raises:
            ToolInstallError: If the tool is still missing after installation
            ToolVersionError: If the installed version is still below the minimum
        """
        status = self.status()
        if status.ok:
            logger.debug(f"{self.display_name} OK: {status}")
            return status

        if check_only:
            return status

        if self.runner.dry_run:
            action = "upgrade" if status.installed else "install"
            logger.info(f"WHAT-IF: would {action} {self.display_name} ({self.target})")
            return status

        if status.installed:
            logger.info(
                f"{self.display_name} {status.version} is below {self.min_version}, upgrading"
            )
            self.upgrade()
        else:
            self.install()

        verified = self.status()
        if not verified.installed:
            raise ToolInstallError(
                f"{self.display_name} still not found after installation. "
                "Open a new terminal so PATH changes take effect, then re-run."
            )
        if not verified.meets_minimum:
            raise ToolVersionError(
                self.display_name, verified.version or "unknown", self.min_version
            )
        return verified

    # ------------------------------------------------------------------
    # Installer helpers
    # ------------------------------------------------------------------

    def _run_checked(self, args: Sequence[str], what: str) -> CommandResult:
        result = self.runner.run(args, timeout=INSTALL_TIMEOUT)
        if not result.ok:
            detail = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else ""
            raise ToolInstallError(
                f"{what} failed (exit {result.returncode}){': ' + detail if detail else ''}"
            )
        return result

    def winget_install(self, package_id: Optional[str] = None) -> CommandResult:
        package_id = package_id or self.settings.get("winget_id")
        if not package_id:
            raise ToolInstallError(f"No winget id configured for {self.display_name}")
        return self._run_checked(
            [
                "winget",
                "install",
                "--id",
                package_id,
                "-e",
                "--silent",
                "--accept-package-agreements",
                "--accept-source-agreements",
            ],
            f"winget install {package_id}",
        )

    def winget_upgrade(self, package_id: Optional[str] = None) -> CommandResult:
        package_id = package_id or self.settings.get("winget_id")
        return self._run_checked(
            [
                "winget",
                "upgrade",
                "--id",
                package_id,
                "-e",
                "--silent",
                "--accept-package-agreements",
                "--accept-source-agreements",
            ],
            f"winget upgrade {package_id}",
        )

    def apt_install(self, packages: Optional[List[str]] = None) -> CommandResult:
        packages = packages or list(self.settings.get("apt_packages", []))
        if not packages:
            raise ToolInstallError(f"No apt packages configured for {self.display_name}")
        self._run_checked(["sudo", "apt-get", "update", "-qq"], "apt-get update")
        return self._run_checked(
            ["sudo", "apt-get", "install", "-y", "-qq", *packages],
            f"apt-get install {' '.join(packages)}",
        )

    def run_remote_script(
        self, url: str, interpreter: Sequence[str] = ("sudo", "bash")
    ) -> CommandResult:
        """
        Fetch an installer script and run it with ``interpreter``.

        Locally the script is downloaded with requests; inside WSL it is
        fetched with curl so the file lands on the Linux filesystem.

        Raises:
            ToolInstallError: If the script cannot be fetched or fails
        """
        if isinstance(self.runner, WSLCommandRunner):
            script = f"curl -fsSL {url} | {' '.join(interpreter)} -"
            return self._run_checked(["bash", "-c", script], f"installer script {url}")

        if self.runner.dry_run:
            return self.runner.run([*interpreter, url])

        script_name = f"{self.name}-install.sh"
        try:
            destination = download_file(url, get_download_dir() / script_name)
        except DownloadError as e:
            raise ToolInstallError(f"Could not fetch installer script {url}: {e}") from e
        return self._run_checked(
            [*interpreter, str(destination)], f"installer script {url}"
        )

    def download_installer(self, url: str, filename: str) -> Path:
        """Download an installer (MSI) into the bootstrap download directory."""
        return download_file(url, get_download_dir() / filename)
