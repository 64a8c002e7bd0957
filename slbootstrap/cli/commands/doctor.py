"""
Doctor command for diagnosing the workstation.

This module checks the platform, WSL, every tool the setup installs and
the Azure sign-in, and can install missing tools with --fix.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
import logging

from slbootstrap.cli.commands.common import load_bootstrap_config
from slbootstrap.cli.utils import safe_print
from slbootstrap.config.parser import BootstrapConfig
from slbootstrap.core.exceptions import BootstrapError
from slbootstrap.core.platform import PlatformInfo, detect_platform, is_supported_platform
from slbootstrap.core.process import CommandRunner
from slbootstrap.phases.context import PhaseContext
from slbootstrap.phases.plan import SetupOptions
from slbootstrap.tools.probes import AzureCLIProbe
from slbootstrap.tools.registry import get_global_registry
from slbootstrap.tools.wsl import WSLManager

logger = logging.getLogger(__name__)

# Tools installed on the host even when Linux tooling lives in WSL
HOST_TOOLS = ("azure-cli", "strangeloop-cli")


@dataclass
class CheckResult:
    """Result of a health check."""

    name: str
    passed: bool
    message: str
    fix_command: Optional[str] = None
    fixable: bool = False
    optional: bool = False


@dataclass
class FixResult:
    """Result of an automated fix attempt."""

    success: bool
    message: str
    action_taken: Optional[str] = None


class DoctorCheck(ABC):
    """Base class for health checks with optional auto-fix capability."""

    @abstractmethod
    def check(self) -> CheckResult:
        """Run the health check."""

    def can_autofix(self) -> bool:
        """Whether this check supports automatic fixing."""
        return False

    def fix(self) -> FixResult:
        """
        Attempt to automatically fix the issue.

        Returns:
            FixResult indicating success/failure
        """
        return FixResult(
            success=False,
            message="Auto-fix not implemented for this check",
            action_taken=None,
        )


class PlatformCheck(DoctorCheck):
    def __init__(self, platform: PlatformInfo):
        self.platform = platform

    def check(self) -> CheckResult:
        if is_supported_platform(self.platform):
            return CheckResult(name="Platform", passed=True, message=str(self.platform))
        return CheckResult(
            name="Platform",
            passed=False,
            message=f"Unsupported platform: {self.platform}",
            fix_command="Use Windows, WSL or Linux on x64/arm64",
        )


class WSLCheck(DoctorCheck):
    """WSL distribution availability (Windows hosts only)."""

    def __init__(self, runner: CommandRunner, distribution: str):
        self.manager = WSLManager(runner)
        self.distribution = distribution

    def check(self) -> CheckResult:
        distro = self.manager.ensure_distribution(self.distribution, check_only=True)
        if distro:
            return CheckResult(name="WSL", passed=True, message=f"Distribution {distro}")
        return CheckResult(
            name="WSL",
            passed=False,
            message="No WSL distribution installed",
            fix_command=f"wsl --install -d {self.distribution}",
            fixable=True,
        )

    def can_autofix(self) -> bool:
        return True

    def fix(self) -> FixResult:
        try:
            self.manager.install_distribution(self.distribution)
        except BootstrapError as e:
            return FixResult(success=False, message=str(e))
        return FixResult(
            success=True,
            message=f"Installed {self.distribution}",
            action_taken=f"wsl --install -d {self.distribution}",
        )


class ToolCheck(DoctorCheck):
    """Presence and minimum version of one tool."""

    def __init__(self, context: PhaseContext, tool: str, in_environment: bool):
        self.context = context
        self.tool = tool
        self.in_environment = in_environment
        self.display_name = get_global_registry().get(tool).display_name

    def _probe(self):
        return self.context.probe(self.tool, in_environment=self.in_environment)

    def check(self) -> CheckResult:
        try:
            probe = self._probe()
        except BootstrapError as e:
            # Fixable once the WSL check installs a distribution
            return CheckResult(
                name=self.display_name,
                passed=False,
                message=str(e),
                fixable=self.in_environment,
            )

        status = probe.status()
        where = f" [{probe.target}]" if probe.target != "local" else ""
        if status.ok:
            return CheckResult(
                name=self.display_name,
                passed=not status.message,
                message=f"{status}{where}",
                optional=bool(status.message),
            )
        return CheckResult(
            name=self.display_name,
            passed=False,
            message=f"{status}{where}",
            fix_command="Run: slboot doctor --fix",
            fixable=True,
        )

    def can_autofix(self) -> bool:
        return True

    def fix(self) -> FixResult:
        try:
            status = self._probe().ensure()
        except BootstrapError as e:
            return FixResult(success=False, message=str(e))
        return FixResult(success=True, message=str(status), action_taken="installed")


class AzureLoginCheck(DoctorCheck):
    def __init__(self, context: PhaseContext):
        self.probe = AzureCLIProbe(
            context.runner, context.platform, context.config.tool("azure-cli")
        )

    def check(self) -> CheckResult:
        account = self.probe.current_account() if self.probe.is_installed() else None
        if account:
            return CheckResult(name="Azure login", passed=True, message=account)
        return CheckResult(
            name="Azure login",
            passed=False,
            message="Not signed in to Azure",
            fix_command="Run: az login",
            optional=True,
        )


class DoctorRunner:
    """Manages running health checks and auto-fixes."""

    def __init__(
        self,
        config: BootstrapConfig,
        platform: PlatformInfo,
        runner: Optional[CommandRunner] = None,
        no_wsl: bool = False,
    ):
        """Initialize doctor runner."""
        self.context = PhaseContext(
            config=config,
            platform=platform,
            runner=runner or CommandRunner(),
            options=SetupOptions(no_wsl=no_wsl),
        )

        self.checks: List[DoctorCheck] = [PlatformCheck(platform)]
        if self.context.uses_wsl():
            self.checks.append(WSLCheck(self.context.runner, config.wsl_distribution))
        for tool in get_global_registry().names():
            in_env = tool not in HOST_TOOLS
            self.checks.append(ToolCheck(self.context, tool, in_environment=in_env))
        self.checks.append(AzureLoginCheck(self.context))

    def run_all_checks(self) -> List[CheckResult]:
        """Run all health checks."""
        return [check.check() for check in self.checks]

    def fix_all(self, results: List[CheckResult]) -> List[FixResult]:
        """
        Attempt to fix all fixable issues, in check order.

        Args:
            results: Results from run_all_checks()

        Returns:
            List of fix results
        """
        fix_results = []

        for check, check_result in zip(self.checks, results):
            if check_result.passed or not check_result.fixable or not check.can_autofix():
                continue

            safe_print(f"🔧 Fixing: {check_result.name}")
            logger.info(f"Attempting to fix: {check_result.name}")

            fix_result = check.fix()
            fix_results.append(fix_result)

            if fix_result.success:
                safe_print(f"   ✅ {fix_result.message}")
                if fix_result.action_taken:
                    safe_print(f"   → {fix_result.action_taken}")
            else:
                safe_print(f"   ❌ {fix_result.message}")
                logger.error(f"Failed to fix {check_result.name}: {fix_result.message}")

        return fix_results


def run(args) -> int:
    """
    Run doctor command.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    quiet = args.quiet
    fix = getattr(args, "fix", False)

    if not quiet:
        safe_print("🩺 Running strangeloop bootstrap diagnostics...\n")

    config = load_bootstrap_config(args)
    runner = DoctorRunner(config, detect_platform(), no_wsl=getattr(args, "no_wsl", False))
    checks = runner.run_all_checks()

    passed = failed = warnings = fixable_count = 0

    for result in checks:
        if result.passed:
            passed += 1
            if not quiet:
                safe_print(f"✅ {result.name}: {result.message}")
            continue

        if result.optional:
            warnings += 1
            if not quiet:
                safe_print(f"⚠️  {result.name}: {result.message}")
        else:
            failed += 1
            safe_print(f"❌ {result.name}: {result.message}")

        if result.fixable:
            fixable_count += 1
        if not fix and result.fix_command:
            safe_print(f"   💡 Fix: {result.fix_command}")

    if not quiet:
        safe_print(f"\n📊 Summary: {passed} passed, {failed} failed, {warnings} warnings")

    if fix and fixable_count > 0:
        safe_print(f"\n🔧 Attempting to fix {fixable_count} issue(s)...\n")
        fix_results = runner.fix_all(checks)
        success_count = sum(1 for r in fix_results if r.success)
        fail_count = len(fix_results) - success_count
        safe_print(f"\n📊 Fix Summary: {success_count} fixed, {fail_count} failed")
        blocking = [r for r in checks if not r.passed and not r.optional and not r.fixable]
        if fail_count == 0 and not blocking:
            safe_print("✅ All issues resolved! Open a new terminal to pick up PATH changes.")
            return 0
        return 1
    elif fixable_count > 0:
        safe_print(f"\n💡 {fixable_count} issue(s) can be auto-fixed with --fix")

    if failed == 0:
        if not quiet:
            safe_print("\n✅ Your workstation is ready for strangeloop!")
        return 0

    safe_print(f"\n❌ Found {failed} issue(s) that need attention")
    return 1
