"""
Phase 1: core prerequisites (Azure CLI, strangeloop CLI, Azure sign-in).
"""

import logging
from typing import Dict

from slbootstrap.core.exceptions import StageError
from slbootstrap.phases.base import PhaseHandler, StageMethod, StageResult, succeeded
from slbootstrap.phases.context import PhaseContext
from slbootstrap.tools.probes import AzureCLIProbe

logger = logging.getLogger(__name__)


class CorePrerequisitesPhase(PhaseHandler):
    number = 1

    def stage_methods(self) -> Dict[str, StageMethod]:
        return {
            "azure-cli": self.azure_cli,
            "strangeloop-cli": self.strangeloop_cli,
            "azure-login": self.azure_login,
        }

    def azure_cli(self, context: PhaseContext) -> StageResult:
        return self.ensure_tool(context, "azure-cli")

    def strangeloop_cli(self, context: PhaseContext) -> StageResult:
        return self.ensure_tool(context, "strangeloop-cli")

    def azure_login(self, context: PhaseContext) -> StageResult:
        az = AzureCLIProbe(context.runner, context.platform, context.config.tool("azure-cli"))
        if not az.is_installed():
            if context.what_if:
                return succeeded("Would run az login once the Azure CLI is installed")
            raise StageError("Azure CLI is not installed")

        account = az.current_account()
        if account:
            return succeeded(f"Signed in as {account}")

        if context.check_only:
            raise StageError("Not signed in to Azure (run 'az login')")
        if context.what_if:
            return succeeded("Would run az login")
        if not context.interactive:
            raise StageError("Not signed in to Azure; run 'az login' and re-run setup")

        logger.info("Starting az login")
        if not az.login():
            raise StageError("az login failed")
        return succeeded(f"Signed in as {az.current_account() or 'unknown account'}")
