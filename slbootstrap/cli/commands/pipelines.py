"""
Pipelines command.

Generates 1ES pipeline YAML into a project and registers the pipelines in
Azure DevOps.
"""

import logging
import sys
from pathlib import Path

from slbootstrap.cli.commands.common import load_bootstrap_config, recorded_loop
from slbootstrap.cli.utils import print_error, print_info, print_success, safe_print
from slbootstrap.core.platform import detect_platform
from slbootstrap.core.process import CommandRunner
from slbootstrap.pipelines import (
    AzureDevOpsClient,
    AzureDevOpsSettings,
    PipelineTemplateGenerator,
    infer_from_git_remote,
    merge_settings,
    prompt_settings,
    setup_pipelines,
)
from slbootstrap.pipelines.templates import DEFAULT_TEMPLATES

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the pipelines command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when every pipeline was created or already existed)
    """
    project_root = Path(args.project_path).resolve()
    if not project_root.is_dir():
        print_error(f"Project directory not found: {project_root}")
        return 1

    config = load_bootstrap_config(args)
    settings = config.pipelines
    templates = settings.templates or DEFAULT_TEMPLATES
    runner = CommandRunner(dry_run=args.what_if)

    loop = args.loop_name or recorded_loop(project_root)
    loop_platform = (config.platform_for_loop(loop) if loop else None) or (
        detect_platform().loop_platform()
    )

    generator = PipelineTemplateGenerator(
        project_root, folder=settings.folder, dry_run=args.what_if
    )
    written = generator.generate(
        loop, loop_platform, branch=args.branch, templates=templates, force=args.force
    )
    for path in written:
        print_success(f"{path.relative_to(project_root)}")
    if not written:
        print_info("Pipeline files already present (use --force to regenerate)")

    if args.templates_only:
        return 0

    explicit = AzureDevOpsSettings(
        organization=args.organization,
        project=args.devops_project,
        repository=args.repository,
        branch=args.branch,
    )
    devops = merge_settings(explicit, infer_from_git_remote(str(project_root), runner))
    interactive = not args.yes and sys.stdin.isatty()
    devops = prompt_settings(devops, interactive=interactive)

    client = AzureDevOpsClient(runner, devops)
    results = setup_pipelines(
        client,
        project_root.name,
        templates,
        folder=settings.folder,
        max_parallel=args.max_parallel or settings.max_parallel,
    )

    for result in results:
        if result.skipped:
            safe_print(f"  ⏭ {result.name}: {result.message}")
        elif result.success:
            detail = f" ({result.url})" if result.url else ""
            safe_print(f"  ✓ {result.name}: {result.message}{detail}")
        else:
            safe_print(f"  ❌ {result.name}: {result.message}")

    failed = [r for r in results if not r.success]
    if failed:
        print_error(f"{len(failed)} of {len(results)} pipeline(s) failed")
        return 1
    return 0
