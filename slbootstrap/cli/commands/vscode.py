"""
VS Code configuration command.

Configures VS Code for an existing strangeloop project.
"""

import logging
from pathlib import Path

from slbootstrap.cli.commands.common import load_bootstrap_config, recorded_loop
from slbootstrap.cli.utils import print_error, print_success, print_warning
from slbootstrap.core.platform import WSL, detect_platform
from slbootstrap.core.process import CommandRunner
from slbootstrap.ide.vscode import VSCodeIntegrator, open_in_vscode

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the vscode command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    logger.info("Configuring VS Code workspace")
    project_root = Path(args.project_path).resolve()
    if not project_root.is_dir():
        print_error(f"Project directory not found: {project_root}")
        return 1

    config = load_bootstrap_config(args)
    platform = detect_platform()
    loop = args.loop_name or recorded_loop(project_root)
    loop_platform = (config.platform_for_loop(loop) if loop else None) or (
        platform.loop_platform()
    )

    files = VSCodeIntegrator(project_root).configure_workspace(
        loop,
        loop_platform,
        remote_wsl=platform.kind() == WSL,
        pipelines_folder=config.pipelines.folder,
    )
    for path in files.values():
        print_success(f"Wrote {path}")

    if args.no_open:
        return 0
    if not open_in_vscode(str(project_root), platform, CommandRunner()):
        print_warning("Could not launch VS Code; open the folder manually")
    return 0
