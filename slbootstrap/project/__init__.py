"""
Project scaffolding from strangeloop loops.
"""

from .loops import LoopCatalog, loop_language, parse_loop_listing
from .naming import validate_project_name
from .scaffold import ProjectInfo, ProjectScaffolder

__all__ = [
    "LoopCatalog",
    "loop_language",
    "parse_loop_listing",
    "validate_project_name",
    "ProjectInfo",
    "ProjectScaffolder",
]
