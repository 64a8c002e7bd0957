"""
Execution planning.

Turns the selected mode and the stage-selection flags into the ordered list
of phases and stages to run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from slbootstrap.config.parser import (
    BootstrapConfig,
    ModeDefinition,
    PhaseDefinition,
    StageDefinition,
)
from slbootstrap.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class SetupOptions:
    """Everything the user chose for a setup run."""

    mode: Optional[str] = None
    start_from_phase: Optional[str] = None
    start_from_stage: Optional[str] = None
    only_stage: Optional[str] = None
    skip_stages: List[str] = field(default_factory=list)
    loop_name: Optional[str] = None
    project_name: Optional[str] = None
    project_path: Optional[str] = None
    what_if: bool = False
    check_only: bool = False
    no_wsl: bool = False
    assume_yes: bool = False
    config_path: Optional[Path] = None
    force: bool = False
    no_git: bool = False
    no_vscode: bool = False
    organization: Optional[str] = None
    devops_project: Optional[str] = None
    repository: Optional[str] = None
    branch: str = "main"
    max_parallel: Optional[int] = None


@dataclass
class PlannedPhase:
    """A phase with the stages selected to run."""

    phase: PhaseDefinition
    stages: List[StageDefinition]

    @property
    def number(self) -> int:
        return self.phase.number

    @property
    def name(self) -> str:
        return self.phase.name


@dataclass
class ExecutionPlan:
    mode: ModeDefinition
    phases: List[PlannedPhase] = field(default_factory=list)

    def stage_names(self) -> List[str]:
        return [stage.name for planned in self.phases for stage in planned.stages]

    def describe(self) -> str:
        """Multi-line summary printed before a run."""
        lines = [f"Mode: {self.mode.name}"]
        for planned in self.phases:
            lines.append(f"  Phase {planned.number}: {planned.name}")
            for stage in planned.stages:
                marker = "" if stage.required else " (optional)"
                lines.append(f"    - {stage.name}{marker}")
        return "\n".join(lines)


def parse_stage_list(value: Union[None, str, Iterable[str]]) -> List[str]:
    """Split a comma-separated (or repeated) --skip-stages value."""
    if not value:
        return []
    items = [value] if isinstance(value, str) else list(value)
    names: List[str] = []
    for item in items:
        names.extend(part.strip() for part in item.split(",") if part.strip())
    return names


def build_plan(config: BootstrapConfig, options: SetupOptions) -> ExecutionPlan:
    """
    Compute the phases and stages to run.

    Args:
        config: Loaded bootstrap configuration
        options: User selection

    Returns:
        ExecutionPlan with at least one stage

    Raises:
        ConfigError: Unknown mode, phase or stage, conflicting flags, or an
            empty plan
    """
    mode = config.resolve_mode(options.mode)

    if options.only_stage:
        if options.start_from_phase or options.start_from_stage:
            raise ConfigError(
                "--only-stage cannot be combined with --start-from-phase or --start-from-stage"
            )
        stage = config.resolve_stage(options.only_stage)
        phase = config.phases[stage.phase]
        logger.debug(f"Running only stage {stage.name} of phase {phase.number}")
        return ExecutionPlan(mode=mode, phases=[PlannedPhase(phase, [stage])])

    phases = config.phases_for_mode(mode)
    planned = [PlannedPhase(phase, list(phase.stages)) for phase in phases]

    if options.start_from_phase:
        start = config.resolve_phase(options.start_from_phase)
        if start.number not in mode.phases:
            raise ConfigError(
                f"Phase {start.number} ({start.name}) is not part of mode '{mode.name}'"
            )
        planned = [p for p in planned if p.number >= start.number]

    if options.start_from_stage:
        stage = config.resolve_stage(options.start_from_stage)
        if stage.phase not in [p.number for p in planned]:
            raise ConfigError(
                f"Stage '{stage.name}' belongs to phase {stage.phase}, "
                f"which is not selected in mode '{mode.name}'"
            )
        planned = [p for p in planned if p.number >= stage.phase]
        first = planned[0]
        names = first.phase.stage_names()
        first.stages = [s for s in first.stages if names.index(s.name) >= names.index(stage.name)]

    skipped = {config.resolve_stage(name).name for name in parse_stage_list(options.skip_stages)}
    if skipped:
        logger.debug(f"Skipping stages: {', '.join(sorted(skipped))}")
        for p in planned:
            p.stages = [s for s in p.stages if s.name not in skipped]

    planned = [p for p in planned if p.stages]
    if not planned:
        raise ConfigError("Nothing to run: the selected options leave no stages")

    return ExecutionPlan(mode=mode, phases=planned)
