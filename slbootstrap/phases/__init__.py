"""
Multi-phase setup orchestration.
"""

from slbootstrap.phases.base import PhaseHandler, PhaseResult, StageResult
from slbootstrap.phases.context import PhaseContext
from slbootstrap.phases.listing import format_modes, format_phases, format_stages
from slbootstrap.phases.plan import (
    ExecutionPlan,
    PlannedPhase,
    SetupOptions,
    build_plan,
    parse_stage_list,
)
from slbootstrap.phases.runner import PHASE_HANDLERS, PhaseRunner, RunSummary, print_summary

__all__ = [
    "PhaseHandler",
    "PhaseResult",
    "StageResult",
    "PhaseContext",
    "format_modes",
    "format_phases",
    "format_stages",
    "ExecutionPlan",
    "PlannedPhase",
    "SetupOptions",
    "build_plan",
    "parse_stage_list",
    "PHASE_HANDLERS",
    "PhaseRunner",
    "RunSummary",
    "print_summary",
]
