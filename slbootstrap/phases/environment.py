"""
Phase 2: environment setup (WSL, Git, Docker, Python, Poetry).

On a Windows host preparing for Linux loops every tool except WSL itself is
probed and installed inside the WSL distribution.
"""

import logging
from typing import Dict

from slbootstrap.cli.utils import prompt_value
from slbootstrap.core.exceptions import StageError
from slbootstrap.core.platform import WINDOWS
from slbootstrap.phases.base import (
    PhaseHandler,
    StageMethod,
    StageResult,
    skipped,
    succeeded,
    warned,
)
from slbootstrap.phases.context import PhaseContext
from slbootstrap.tools.probes import GitProbe
from slbootstrap.tools.wsl import WSLManager

logger = logging.getLogger(__name__)


class EnvironmentPhase(PhaseHandler):
    number = 2

    def stage_methods(self) -> Dict[str, StageMethod]:
        return {
            "wsl": self.wsl,
            "git": self.git,
            "docker": self.docker,
            "python": self.python,
            "poetry": self.poetry,
        }

    def wsl(self, context: PhaseContext) -> StageResult:
        if not context.platform.is_windows:
            return skipped("Not a Windows host")
        if context.options.no_wsl:
            return skipped("WSL disabled (--no-wsl)")
        if context.target_loop_platform() == WINDOWS:
            return skipped("Windows loop selected; WSL not needed")

        manager = WSLManager(context.runner)
        wanted = context.config.wsl_distribution
        distro = manager.ensure_distribution(wanted, check_only=context.check_only)
        if not distro:
            raise StageError(f"No WSL distribution installed (expected {wanted})")

        context.wsl_distro = distro
        messages = [f"WSL distribution {distro}"]

        # Linux loops run the Azure and strangeloop CLIs inside the distribution
        for tool in ("azure-cli", "strangeloop-cli"):
            result = self.ensure_tool(context, tool, in_environment=True)
            messages.append(result.message)

        return succeeded("; ".join(messages))

    def git(self, context: PhaseContext) -> StageResult:
        result = self.ensure_tool(context, "git", in_environment=True)

        git: GitProbe = context.probe("git", in_environment=True)
        if not git.is_installed():
            return result

        identity = git.get_identity()
        missing = [key for key in ("user.name", "user.email") if key not in identity]
        if not missing:
            return result

        if context.check_only or context.what_if or not context.interactive:
            return warned(f"{result.message}; git {' and '.join(missing)} not configured")

        name = identity.get("user.name") or prompt_value("Git user.name")
        email = identity.get("user.email") or prompt_value("Git user.email")
        if not (name and email):
            return warned(f"{result.message}; git identity not configured")
        git.set_identity(name, email)
        return succeeded(f"{result.message}; identity {name} <{email}>")

    def docker(self, context: PhaseContext) -> StageResult:
        return self.ensure_tool(context, "docker", in_environment=True)

    def python(self, context: PhaseContext) -> StageResult:
        return self.ensure_tool(context, "python", in_environment=True)

    def poetry(self, context: PhaseContext) -> StageResult:
        return self.ensure_tool(context, "poetry", in_environment=True)
