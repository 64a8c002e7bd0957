"""
Init command.

Creates a project from a loop: the project bootstrap phase without
pipeline registration.
"""

import logging

from slbootstrap.cli.commands.common import (
    load_bootstrap_config,
    make_context,
    options_from_args,
)
from slbootstrap.cli.utils import format_success_message, print_error, safe_print
from slbootstrap.config.parser import ModeDefinition
from slbootstrap.core.platform import detect_platform
from slbootstrap.phases import ExecutionPlan, PhaseRunner, PlannedPhase, print_summary
from slbootstrap.phases.bootstrap import ProjectBootstrapPhase

logger = logging.getLogger(__name__)

EXCLUDED_STAGES = ("pipelines",)


def run(args) -> int:
    """
    Run the init command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    config = load_bootstrap_config(args)
    options = options_from_args(args)

    phase = config.resolve_phase(ProjectBootstrapPhase.number)
    stages = [s for s in phase.stages if s.name not in EXCLUDED_STAGES]
    plan = ExecutionPlan(
        mode=ModeDefinition(name="init", phases=[phase.number]),
        phases=[PlannedPhase(phase, stages)],
    )

    context = make_context(config, detect_platform(), options)
    summary = PhaseRunner(context).run(plan)

    project = context.project
    phase_ok = bool(summary.results) and summary.results[0].success
    if not phase_ok or project is None:
        print_summary(summary, what_if=options.what_if)
        print_error("Project was not created")
        return 1
    if options.what_if:
        print_summary(summary, what_if=True)
        return 0

    safe_print(
        format_success_message(
            "✅ Project created",
            {
                "Project": project.name,
                "Loop": project.loop,
                "Location": f"{project.path} [{project.target}]",
            },
            next_steps=[
                f"cd {project.path}",
                "slboot pipelines  # generate and register Azure DevOps pipelines",
            ],
        )
    )
    return 0
