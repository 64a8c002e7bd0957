"""
Phase handler base class and result types.

A phase handler maps each of its stage names to a method. Stage methods
return a StageResult built with ``succeeded``/``skipped``/``warned`` and
signal failure by raising a BootstrapError.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from slbootstrap.cli.utils import (
    format_duration,
    print_error,
    print_skip,
    print_step,
    print_success,
    print_warning,
)
from slbootstrap.config.parser import PhaseDefinition, StageDefinition
from slbootstrap.core.exceptions import BootstrapError, StageError
from slbootstrap.phases.context import PhaseContext

logger = logging.getLogger(__name__)

SUCCESS = "success"
SKIPPED = "skipped"
WARNING = "warning"
FAILED = "failed"


@dataclass
class StageResult:
    """Outcome of one stage."""

    name: str
    status: str
    message: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != FAILED


def succeeded(message: str = "") -> StageResult:
    return StageResult(name="", status=SUCCESS, message=message)


def skipped(message: str) -> StageResult:
    return StageResult(name="", status=SKIPPED, message=message)


def warned(message: str) -> StageResult:
    return StageResult(name="", status=WARNING, message=message)


@dataclass
class PhaseResult:
    """Outcome of one phase."""

    number: int
    name: str
    success: bool
    required: bool = True
    stages: List[StageResult] = field(default_factory=list)
    duration: float = 0.0

    def failed_stages(self) -> List[StageResult]:
        return [s for s in self.stages if s.status == FAILED]


StageMethod = Callable[[PhaseContext], StageResult]


class PhaseHandler(ABC):
    """
    Runs the stages of one phase.

    Subclasses set ``number`` and implement ``stage_methods()``.
    """

    number: int = 0

    def __init__(self, definition: PhaseDefinition):
        self.definition = definition

    @abstractmethod
    def stage_methods(self) -> Dict[str, StageMethod]:
        """Stage name -> method."""

    def run(
        self, context: PhaseContext, stages: Optional[List[StageDefinition]] = None
    ) -> PhaseResult:
        """
        Run ``stages`` (default: every stage of the phase) in order.

        A failed required stage ends the phase unless the run is check-only,
        where every stage is reported. Failed optional stages are warnings.
        """
        stages = self.definition.stages if stages is None else stages
        methods = self.stage_methods()
        result = PhaseResult(
            number=self.definition.number,
            name=self.definition.name,
            success=True,
            required=self.definition.required,
        )
        start = time.monotonic()

        for stage in stages:
            stage_result = self._run_stage(context, stage, methods)
            result.stages.append(stage_result)

            if stage_result.status == FAILED and stage.required:
                result.success = False
                if not context.check_only:
                    logger.debug(f"Stopping phase {result.number} after {stage.name}")
                    break

        result.duration = time.monotonic() - start
        return result

    def _run_stage(
        self,
        context: PhaseContext,
        stage: StageDefinition,
        methods: Dict[str, StageMethod],
    ) -> StageResult:
        print_step(stage.description or stage.name)
        method = methods.get(stage.name)
        start = time.monotonic()

        try:
            if method is None:
                raise StageError(f"No handler for stage '{stage.name}'")
            outcome = method(context)
        except BootstrapError as e:
            if stage.required:
                print_error(f"{stage.name}: {e}")
                outcome = StageResult(name=stage.name, status=FAILED, message=str(e))
            else:
                print_warning(f"{stage.name} (optional): {e}")
                outcome = StageResult(name=stage.name, status=WARNING, message=str(e))
        else:
            if outcome.status == SKIPPED:
                print_skip(outcome.message)
            elif outcome.status == WARNING:
                print_warning(f"{stage.name}: {outcome.message}")
            else:
                print_success(outcome.message or f"{stage.name} complete")

        outcome.name = stage.name
        outcome.duration = time.monotonic() - start
        logger.debug(
            f"Stage {stage.name}: {outcome.status} in {format_duration(outcome.duration)}"
        )

        if outcome.ok and context.persists_state:
            context.state.mark_stage_complete(stage.name)
        return outcome

    # ------------------------------------------------------------------
    # Shared stage helpers
    # ------------------------------------------------------------------

    def ensure_tool(
        self, context: PhaseContext, tool: str, in_environment: bool = False
    ) -> StageResult:
        """
        Probe and, unless check-only, install or upgrade ``tool``.

        Raises:
            StageError: Missing or outdated tool in check-only mode
            ToolInstallError: Installation failed
        """
        probe = context.probe(tool, in_environment=in_environment)
        status = probe.ensure(check_only=context.check_only)
        where = f" [{probe.target}]" if probe.target != "local" else ""

        if status.ok:
            if context.persists_state and status.version:
                context.state.record_tool(tool, status.version)
            if status.message:
                return warned(f"{status}{where}")
            return succeeded(f"{status}{where}")

        if context.check_only:
            raise StageError(f"{status}{where}")

        action = "upgrade" if status.installed else "install"
        return succeeded(f"Would {action} {probe.display_name}{where}")
