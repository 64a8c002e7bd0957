"""
Phase orchestration.

PhaseRunner executes an ExecutionPlan phase by phase, records completion in
the run state and stops at the first failed required phase.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type

from slbootstrap.cli.utils import format_duration, print_box, safe_print
from slbootstrap.core.exceptions import PhaseError
from slbootstrap.phases.base import FAILED, SKIPPED, WARNING, PhaseHandler, PhaseResult
from slbootstrap.phases.bootstrap import ProjectBootstrapPhase
from slbootstrap.phases.context import PhaseContext
from slbootstrap.phases.core import CorePrerequisitesPhase
from slbootstrap.phases.environment import EnvironmentPhase
from slbootstrap.phases.plan import ExecutionPlan

logger = logging.getLogger(__name__)

PHASE_HANDLERS: Dict[int, Type[PhaseHandler]] = {
    CorePrerequisitesPhase.number: CorePrerequisitesPhase,
    EnvironmentPhase.number: EnvironmentPhase,
    ProjectBootstrapPhase.number: ProjectBootstrapPhase,
}

_STATUS_MARKERS = {FAILED: "❌", WARNING: "⚠️ ", SKIPPED: "⏭"}


@dataclass
class RunSummary:
    """Results of a setup run."""

    results: List[PhaseResult] = field(default_factory=list)
    success: bool = True
    duration: float = 0.0
    stopped_at: Optional[int] = None


class PhaseRunner:
    """Run planned phases with their handlers."""

    def __init__(
        self,
        context: PhaseContext,
        handlers: Optional[Dict[int, Type[PhaseHandler]]] = None,
    ):
        self.context = context
        self.handlers = handlers or PHASE_HANDLERS

    def _handler_for(self, number: int) -> Type[PhaseHandler]:
        try:
            return self.handlers[number]
        except KeyError:
            raise PhaseError(f"No handler registered for phase {number}") from None

    def run(self, plan: ExecutionPlan) -> RunSummary:
        """
        Execute every planned phase in order.

        Returns:
            RunSummary; success is False when a required phase failed
        """
        context = self.context
        summary = RunSummary()
        start = time.monotonic()

        if context.persists_state:
            context.state.record_mode(plan.mode.name)

        for planned in plan.phases:
            handler = self._handler_for(planned.number)(planned.phase)
            print_box(f"Phase {planned.number}: {planned.name}")
            if planned.phase.description:
                safe_print(planned.phase.description)

            result = handler.run(context, planned.stages)
            summary.results.append(result)
            logger.info(
                f"Phase {result.number} {'completed' if result.success else 'failed'} "
                f"in {format_duration(result.duration)}"
            )

            if result.success:
                if context.persists_state:
                    context.state.mark_phase_complete(result.number)
                continue

            if result.required:
                summary.success = False
                if not context.check_only:
                    summary.stopped_at = result.number
                    logger.error(f"Required phase {result.number} failed, stopping")
                    break

        summary.duration = time.monotonic() - start
        return summary


def print_summary(summary: RunSummary, what_if: bool = False):
    """Print the per-phase, per-stage outcome of a run."""
    title = "Setup summary (what-if)" if what_if else "Setup summary"
    print_box(f"📊 {title}")

    for result in summary.results:
        marker = "✅" if result.success else ("❌" if result.required else "⚠️ ")
        safe_print(
            f"{marker} Phase {result.number}: {result.name} "
            f"({format_duration(result.duration)})"
        )
        for stage in result.stages:
            stage_marker = _STATUS_MARKERS.get(stage.status, "✓")
            line = f"    {stage_marker} {stage.name}"
            if stage.message:
                line += f": {stage.message}"
            safe_print(line)

    if summary.stopped_at is not None:
        safe_print(f"\nStopped after phase {summary.stopped_at}; later phases were not run.")

    safe_print(f"\nTotal time: {format_duration(summary.duration)}")
    safe_print("Setup completed successfully." if summary.success else "Setup failed.")
