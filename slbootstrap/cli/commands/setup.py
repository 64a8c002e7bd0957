"""
Setup command.

Runs the phases selected by --mode and the stage flags.
"""

import logging

from slbootstrap.cli.commands.common import (
    load_bootstrap_config,
    make_context,
    options_from_args,
)
from slbootstrap.cli.utils import (
    confirm,
    format_success_message,
    print_box,
    print_error,
    print_info,
    safe_print,
)
from slbootstrap.core.platform import detect_platform, is_supported_platform
from slbootstrap.phases import (
    PhaseRunner,
    build_plan,
    format_modes,
    format_phases,
    format_stages,
    print_summary,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the setup command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    config = load_bootstrap_config(args)

    if args.list_phases:
        safe_print(format_phases(config))
        return 0
    if args.list_stages:
        safe_print(format_stages(config))
        return 0
    if args.list_modes:
        safe_print(format_modes(config))
        return 0

    options = options_from_args(args)
    if options.what_if and options.check_only:
        print_error("--what-if and --check-only cannot be combined")
        return 2

    platform = detect_platform()
    if not is_supported_platform(platform):
        print_error(
            f"Unsupported platform: {platform}",
            "strangeloop bootstrap supports Windows, WSL and Linux on x64 or arm64.",
        )
        return 1

    plan = build_plan(config, options)

    if not args.quiet:
        print_box("strangeloop bootstrap")
        safe_print(f"Platform: {platform}")
        safe_print(plan.describe())
        if options.what_if:
            print_info("WHAT-IF: commands are printed, nothing is changed")
        if options.check_only:
            print_info("CHECK-ONLY: reporting status, nothing is installed")

    if not (options.what_if or options.check_only):
        if not confirm("Proceed with setup?", default=True, assume_yes=options.assume_yes):
            print_info("Setup cancelled")
            return 1

    context = make_context(config, platform, options)
    summary = PhaseRunner(context).run(plan)
    print_summary(summary, what_if=options.what_if)

    if summary.success and context.project and not options.what_if:
        project = context.project
        safe_print(
            format_success_message(
                "✅ Project ready",
                {
                    "Project": project.name,
                    "Loop": project.loop,
                    "Location": f"{project.path} [{project.target}]",
                },
                next_steps=[
                    f"cd {project.path}",
                    "poetry install" if project.platform == "linux" else "Open the solution",
                    "slboot pipelines  # register Azure DevOps pipelines later",
                ],
            )
        )

    return 0 if summary.success else 1
