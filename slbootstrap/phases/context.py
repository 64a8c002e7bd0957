"""
Shared state passed between phase handlers during one setup run.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from slbootstrap.config.parser import BootstrapConfig
from slbootstrap.core.exceptions import PhaseError
from slbootstrap.core.platform import LINUX, WINDOWS, PlatformInfo
from slbootstrap.core.process import CommandRunner
from slbootstrap.core.state import StateManager
from slbootstrap.ide.vscode import wsl_unc_path
from slbootstrap.phases.plan import SetupOptions
from slbootstrap.project.scaffold import ProjectInfo
from slbootstrap.tools.base import ToolProbe
from slbootstrap.tools.registry import get_probe
from slbootstrap.tools.wsl import WSLManager

logger = logging.getLogger(__name__)


@dataclass
class PhaseContext:
    """
    Run-wide context.

    Attributes:
        config: Loaded configuration
        platform: Host platform
        runner: Runner on the host (dry-run when what-if)
        options: User selection
        state: Run state manager (None disables persistence)
        wsl_distro: WSL distribution used for Linux tooling on Windows
        loop: Selected loop
        loop_platform: Family of the selected loop
        project: Project created in phase 3
    """

    config: BootstrapConfig
    platform: PlatformInfo
    runner: CommandRunner
    options: SetupOptions
    state: Optional[StateManager] = None
    wsl_distro: Optional[str] = None
    loop: Optional[str] = None
    loop_platform: Optional[str] = None
    project: Optional[ProjectInfo] = None
    _wsl_runner: Optional[CommandRunner] = field(default=None, init=False, repr=False)

    @property
    def what_if(self) -> bool:
        return self.options.what_if

    @property
    def check_only(self) -> bool:
        return self.options.check_only

    @property
    def interactive(self) -> bool:
        """Prompts are allowed (a terminal and no --yes)."""
        return not self.options.assume_yes and sys.stdin.isatty()

    @property
    def persists_state(self) -> bool:
        return self.state is not None and not (self.what_if or self.check_only)

    def target_loop_platform(self) -> str:
        """
        Loop family the environment is prepared for.

        The selected (or requested) loop decides; without one, Windows hosts
        prepare WSL for Linux loops unless --no-wsl is given.
        """
        loop = self.loop or self.options.loop_name
        if loop:
            family = self.config.platform_for_loop(loop)
            if family:
                return family
        if self.platform.is_windows and self.options.no_wsl:
            return WINDOWS
        return LINUX

    def uses_wsl(self) -> bool:
        """Linux tooling runs inside WSL (Windows host, Linux target)."""
        return (
            self.platform.is_windows
            and not self.options.no_wsl
            and self.target_loop_platform() == LINUX
        )

    def ensure_wsl_target(self) -> str:
        """
        WSL distribution for Linux tooling, looked up when not yet known.

        Raises:
            PhaseError: If no distribution exists yet
        """
        if self.wsl_distro:
            return self.wsl_distro

        distro = WSLManager(self.runner).ensure_distribution(
            self.config.wsl_distribution, check_only=True
        )
        if not distro:
            if self.what_if:
                distro = self.config.wsl_distribution
            else:
                raise PhaseError(
                    "No WSL distribution found. Run the 'wsl' stage first "
                    "(slboot setup --only-stage wsl)."
                )
        self.wsl_distro = distro
        return distro

    def env_runner(self) -> CommandRunner:
        """Runner for Linux tooling: inside WSL when uses_wsl(), else the host."""
        if not self.uses_wsl():
            return self.runner
        if self._wsl_runner is None:
            self._wsl_runner = WSLManager(self.runner).runner_for(self.ensure_wsl_target())
        return self._wsl_runner

    def env_platform(self) -> PlatformInfo:
        """Platform the env_runner() commands execute on."""
        if not self.uses_wsl():
            return self.platform
        return PlatformInfo(
            os=LINUX,
            arch=self.platform.arch,
            os_version="",
            distribution="ubuntu",
            is_wsl=True,
            wsl_distro=self.ensure_wsl_target(),
        )

    def probe(self, tool: str, in_environment: bool = False) -> ToolProbe:
        """
        Probe for ``tool``.

        Args:
            tool: Tool name from the registry
            in_environment: Probe where Linux tooling lives (WSL on Windows)
        """
        if in_environment:
            return get_probe(tool, self.env_runner(), self.env_platform(), self.config)
        return get_probe(tool, self.runner, self.platform, self.config)

    def project_runner(self) -> CommandRunner:
        """Runner for the project: inside WSL for Linux loops on Windows."""
        if self.platform.is_windows and self.loop_platform == LINUX:
            return self.env_runner()
        return self.runner

    def local_project_root(self) -> Path:
        """Project root as a path this process can open."""
        if self.project is None:
            raise PhaseError("No project has been created")
        if self.project.in_wsl:
            return wsl_unc_path(self.ensure_wsl_target(), self.project.path)
        return Path(self.project.path)
