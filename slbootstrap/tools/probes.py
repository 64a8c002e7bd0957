"""
Concrete probes for the tools strangeloop setup depends on.

Each probe pairs detection (``az version``, ``git --version`` ...) with the
installer for Windows (winget, MSI) and Debian-family Linux/WSL (apt,
vendor install scripts). Installers get exactly one fallback attempt.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from slbootstrap.core.exceptions import ToolInstallError
from slbootstrap.core.filesystem import get_download_dir
from slbootstrap.core.platform import WINDOWS, WSL
from slbootstrap.core.process import INSTALL_TIMEOUT, WSLCommandRunner
from slbootstrap.tools.base import ToolProbe

logger = logging.getLogger(__name__)


class AzureCLIProbe(ToolProbe):
    """Azure CLI (``az``)."""

    name = "azure-cli"
    display_name = "Azure CLI"
    command = "az"
    version_args = ("version", "--output", "json")

    def parse_version(self, output: str) -> Optional[str]:
        # `az version -o json` prints {"azure-cli": "2.61.0", ...}
        try:
            data = json.loads(output[output.index("{") : output.rindex("}") + 1])
            version = data.get("azure-cli")
            if version:
                return str(version)
        except ValueError:
            pass
        return super().parse_version(output)

    def _install_windows(self) -> None:
        try:
            self.winget_install()
            return
        except ToolInstallError as e:
            logger.warning(f"winget install failed, falling back to MSI: {e}")

        msi_url = self.settings.get("msi_url")
        if not msi_url:
            raise ToolInstallError("Azure CLI MSI URL not configured")
        msi = self.download_installer(msi_url, "azure-cli.msi")
        self._run_checked(
            ["msiexec", "/i", str(msi), "/quiet", "/norestart"], "Azure CLI MSI install"
        )

    def _install_linux(self) -> None:
        script_url = self.settings.get("deb_script_url")
        if script_url:
            try:
                self.run_remote_script(script_url)
                return
            except ToolInstallError as e:
                logger.warning(f"Azure CLI install script failed, falling back to apt: {e}")
        self.apt_install()

    def upgrade(self) -> None:
        if self.platform.kind() == WINDOWS:
            self.winget_upgrade()
        else:
            self._run_checked(
                ["sudo", "apt-get", "install", "--only-upgrade", "-y", "azure-cli"],
                "Azure CLI upgrade",
            )

    def ensure_devops_extension(self) -> None:
        """Install the azure-devops extension (artifacts, pipelines commands)."""
        shown = self.runner.run(
            ["az", "extension", "show", "--name", "azure-devops", "--output", "none"],
            mutating=False,
        )
        if shown.ok:
            return
        logger.info("Adding Azure CLI extension: azure-devops")
        self._run_checked(
            ["az", "extension", "add", "--name", "azure-devops", "--only-show-errors"],
            "az extension add azure-devops",
        )

    def is_logged_in(self) -> bool:
        result = self.runner.run(
            ["az", "account", "show", "--output", "json"], mutating=False
        )
        return result.ok

    def current_account(self) -> Optional[str]:
        result = self.runner.run(
            ["az", "account", "show", "--output", "json"], mutating=False
        )
        if not result.ok:
            return None
        try:
            data = json.loads(result.stdout)
        except ValueError:
            return None
        user = data.get("user", {}).get("name", "")
        subscription = data.get("name", "")
        return f"{user} ({subscription})" if subscription else user or None

    def login(self) -> bool:
        return self.runner.run_interactive(["az", "login"]) == 0


class StrangeloopCLIProbe(ToolProbe):
    """
    The strangeloop CLI.

    Distributed as a universal package on an Azure Artifacts feed, so the
    Azure CLI (with the azure-devops extension) must be installed first.
    """

    name = "strangeloop-cli"
    display_name = "strangeloop CLI"
    command = "strangeloop"

    def _download_package(self, package_key: str, destination: str) -> None:
        package = self.settings.get(package_key)
        organization = self.settings.get("organization")
        feed = self.settings.get("feed")
        if not (package and organization and feed):
            raise ToolInstallError(
                "strangeloop CLI feed not configured (tools.strangeloop-cli "
                "organization/feed/package)"
            )

        AzureCLIProbe(self.runner, self.platform).ensure_devops_extension()
        self._run_checked(
            [
                "az",
                "artifacts",
                "universal",
                "download",
                "--organization",
                organization,
                "--feed",
                feed,
                "--name",
                package,
                "--version",
                str(self.settings.get("package_version", "*")),
                "--path",
                destination,
            ],
            f"download {package} from {feed}",
        )

    def _install_windows(self) -> None:
        download_dir = get_download_dir() / "strangeloop-cli"
        if not self.runner.dry_run:
            download_dir.mkdir(parents=True, exist_ok=True)
        self._download_package("package_windows", str(download_dir))

        if self.runner.dry_run:
            self.runner.run(["msiexec", "/i", str(download_dir / "*.msi"), "/quiet"])
            return

        installers = sorted(download_dir.glob("*.msi"))
        if not installers:
            raise ToolInstallError(f"No MSI found in {download_dir}")
        self._run_checked(
            ["msiexec", "/i", str(installers[-1]), "/quiet", "/norestart"],
            "strangeloop CLI MSI install",
        )

    def _install_linux(self) -> None:
        download_dir = "/tmp/strangeloop-cli"
        self.runner.run(["mkdir", "-p", download_dir])
        self._download_package("package_linux", download_dir)

        if isinstance(self.runner, WSLCommandRunner) or self.runner.dry_run:
            self._run_checked(
                ["bash", "-c", f"sudo apt-get install -y {download_dir}/*.deb"],
                "strangeloop CLI package install",
            )
            return

        packages = sorted(Path(download_dir).glob("*.deb"))
        if not packages:
            raise ToolInstallError(f"No .deb package found in {download_dir}")
        self._run_checked(
            ["sudo", "apt-get", "install", "-y", str(packages[-1])],
            "strangeloop CLI package install",
        )


class GitProbe(ToolProbe):
    """Git."""

    name = "git"
    display_name = "Git"
    command = "git"

    def _install_windows(self) -> None:
        self.winget_install()

    def _install_linux(self) -> None:
        self.apt_install()

    def get_identity(self) -> dict:
        """Global user.name / user.email (missing keys omitted)."""
        identity = {}
        for key in ("user.name", "user.email"):
            result = self.runner.run(
                ["git", "config", "--global", key], mutating=False
            )
            if result.ok and result.stdout.strip():
                identity[key] = result.stdout.strip()
        return identity

    def set_identity(self, name: str, email: str) -> None:
        self._run_checked(["git", "config", "--global", "user.name", name], "git config")
        self._run_checked(
            ["git", "config", "--global", "user.email", email], "git config"
        )


class DockerProbe(ToolProbe):
    """Docker (Docker Desktop on Windows/WSL, Docker Engine on Linux)."""

    name = "docker"
    display_name = "Docker"
    command = "docker"

    def daemon_running(self) -> bool:
        result = self.runner.run(
            ["docker", "info", "--format", "{{.ServerVersion}}"],
            mutating=False,
            timeout=30,
        )
        return result.ok and bool(result.stdout.strip())

    def status(self):
        status = super().status()
        if status.installed and not self.daemon_running():
            status.message = "daemon not running"
        return status

    def _install_windows(self) -> None:
        self.winget_install()
        logger.info("Docker Desktop installed; sign out and back in to finish setup")

    def _install_linux(self) -> None:
        if self.platform.kind() == WSL:
            raise ToolInstallError(
                "Docker is not available in WSL. Install Docker Desktop on Windows "
                "and enable WSL integration for this distribution "
                "(Settings > Resources > WSL Integration)."
            )

        script_url = self.settings.get("install_script_url", "https://get.docker.com")
        self.run_remote_script(script_url, interpreter=("sudo", "sh"))
        self.runner.run(["sudo", "systemctl", "enable", "--now", "docker"])
        user = self.runner.run(["id", "-un"], mutating=False).stdout.strip()
        if user:
            self.runner.run(["sudo", "usermod", "-aG", "docker", user])


class PythonProbe(ToolProbe):
    """Python 3 (``python3`` on Linux, ``python`` or ``py`` on Windows)."""

    name = "python"
    display_name = "Python"
    command = "python3"

    def _candidates(self):
        if self.platform.kind() == WINDOWS:
            return ["python", "py"]
        return ["python3", "python"]

    def find_executable(self) -> Optional[str]:
        for candidate in self._candidates():
            path = self.runner.which(candidate)
            # The Microsoft Store alias lives in WindowsApps and only opens the Store
            if path and "windowsapps" not in path.lower():
                self.command = candidate
                return path
        return None

    def _install_windows(self) -> None:
        self.winget_install()

    def _install_linux(self) -> None:
        self.apt_install()


class PoetryProbe(ToolProbe):
    """Poetry, installed with the official installer and pipx as fallback."""

    name = "poetry"
    display_name = "Poetry"
    command = "poetry"

    def _python(self) -> str:
        python = PythonProbe(self.runner, self.platform)
        if not python.find_executable():
            raise ToolInstallError("Python is required to install Poetry")
        return python.command

    def _install(self) -> None:
        script_url = self.settings.get(
            "install_script_url", "https://install.python-poetry.org"
        )
        python = self._python()
        try:
            self.run_remote_script(script_url, interpreter=(python,))
            return
        except ToolInstallError as e:
            logger.warning(f"Poetry installer failed, falling back to pipx: {e}")

        self.runner.run([python, "-m", "pip", "install", "--user", "pipx"], timeout=INSTALL_TIMEOUT)
        self._run_checked([python, "-m", "pipx", "install", "poetry"], "pipx install poetry")
        self.runner.run([python, "-m", "pipx", "ensurepath"])

    def _install_windows(self) -> None:
        self._install()

    def _install_linux(self) -> None:
        self._install()

    def upgrade(self) -> None:
        result = self.runner.run(["poetry", "self", "update"], timeout=INSTALL_TIMEOUT)
        if not result.ok:
            self._install()
