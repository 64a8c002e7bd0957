"""
Helpers shared by the command modules.
"""

import logging
from pathlib import Path

from slbootstrap.config.parser import BootstrapConfig, load_config
from slbootstrap.core.platform import PlatformInfo
from slbootstrap.core.process import CommandRunner
from slbootstrap.core.state import StateManager
from slbootstrap.phases.context import PhaseContext
from slbootstrap.phases.plan import SetupOptions, parse_stage_list

logger = logging.getLogger(__name__)


def load_bootstrap_config(args) -> BootstrapConfig:
    """Configuration from --config, $SLBOOT_CONFIG or the bundled file."""
    config = load_config(getattr(args, "config", None))
    logger.debug(f"Loaded configuration from {config.source}")
    return config


def options_from_args(args) -> SetupOptions:
    """SetupOptions from a parsed setup/init namespace (missing flags keep defaults)."""
    return SetupOptions(
        mode=getattr(args, "mode", None),
        start_from_phase=getattr(args, "start_from_phase", None),
        start_from_stage=getattr(args, "start_from_stage", None),
        only_stage=getattr(args, "only_stage", None),
        skip_stages=parse_stage_list(getattr(args, "skip_stages", None)),
        loop_name=getattr(args, "loop_name", None),
        project_name=getattr(args, "project_name", None),
        project_path=getattr(args, "project_path", None),
        what_if=getattr(args, "what_if", False),
        check_only=getattr(args, "check_only", False),
        no_wsl=getattr(args, "no_wsl", False),
        assume_yes=getattr(args, "yes", False),
        config_path=getattr(args, "config", None),
        force=getattr(args, "force", False),
        no_git=getattr(args, "no_git", False),
        no_vscode=getattr(args, "no_vscode", False),
        organization=getattr(args, "organization", None),
        devops_project=getattr(args, "devops_project", None),
        repository=getattr(args, "repository", None),
        branch=getattr(args, "branch", None) or "main",
        max_parallel=getattr(args, "max_parallel", None),
    )


def make_context(
    config: BootstrapConfig, platform: PlatformInfo, options: SetupOptions
) -> PhaseContext:
    """PhaseContext with a host runner (dry-run for what-if) and the state file."""
    return PhaseContext(
        config=config,
        platform=platform,
        runner=CommandRunner(dry_run=options.what_if),
        options=options,
        state=StateManager(),
    )


def recorded_loop(project_root: Path) -> str:
    """Loop recorded for ``project_root`` by an earlier setup run, or ''."""
    last = StateManager().load().last_project
    if last and Path(last.path).resolve() == project_root:
        return last.loop
    return ""
