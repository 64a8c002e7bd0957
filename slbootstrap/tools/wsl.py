"""
WSL management from the Windows side.

Wraps ``wsl.exe`` to check that WSL is enabled, list distributions and
install the configured one so Linux loops can be developed on Windows.
"""

import logging
from typing import List, Optional

from slbootstrap.core.exceptions import ToolInstallError
from slbootstrap.core.process import INSTALL_TIMEOUT, CommandRunner, WSLCommandRunner

logger = logging.getLogger(__name__)


def _clean_wsl_output(text: str) -> str:
    # wsl.exe writes UTF-16LE; decoded as text it carries NULs and a BOM
    return text.replace("\x00", "").replace("\ufeff", "")


class WSLManager:
    """Query and configure WSL distributions."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def is_available(self) -> bool:
        """True when wsl.exe exists and WSL is enabled."""
        if not self.runner.which("wsl"):
            return False
        result = self.runner.run(["wsl", "--status"], mutating=False, timeout=60)
        return result.ok

    def list_distributions(self) -> List[str]:
        result = self.runner.run(["wsl", "--list", "--quiet"], mutating=False, timeout=60)
        if not result.ok:
            return []
        names = []
        for line in _clean_wsl_output(result.stdout).splitlines():
            name = line.strip()
            if name:
                names.append(name)
        return names

    def has_distribution(self, name: str) -> bool:
        wanted = name.lower()
        return any(d.lower() == wanted for d in self.list_distributions())

    def default_distribution(self) -> Optional[str]:
        # Marked with "(Default)" in the verbose listing
        result = self.runner.run(["wsl", "--list", "--verbose"], mutating=False, timeout=60)
        if not result.ok:
            return None
        for line in _clean_wsl_output(result.stdout).splitlines():
            stripped = line.strip()
            if stripped.startswith("*"):
                parts = stripped[1:].split()
                if parts:
                    return parts[0]
        return None

    def install_distribution(self, name: str) -> None:
        """
        Install a distribution (enables WSL itself if needed).

        Raises:
            ToolInstallError: If wsl --install fails
        """
        logger.info(f"Installing WSL distribution {name}")
        result = self.runner.run(
            ["wsl", "--install", "-d", name, "--no-launch"], timeout=INSTALL_TIMEOUT
        )
        if not result.ok:
            raise ToolInstallError(
                f"wsl --install -d {name} failed (exit {result.returncode}). "
                "Enable virtualization in firmware and re-run as administrator; "
                "a reboot may be required."
            )

    def ensure_distribution(self, name: str, check_only: bool = False) -> Optional[str]:
        """
        Return a usable distribution name, installing ``name`` when none exists.

        An existing distribution with the configured name wins; otherwise the
        default distribution is used; otherwise ``name`` is installed.
        """
        if self.has_distribution(name):
            return name

        default = self.default_distribution()
        if default:
            logger.info(f"Using default WSL distribution {default}")
            return default

        if check_only:
            return None

        self.install_distribution(name)
        return name

    def runner_for(self, distro: str) -> WSLCommandRunner:
        """A CommandRunner executing inside ``distro``."""
        return WSLCommandRunner(
            distro, dry_run=self.runner.dry_run, env=self.runner.env
        )
