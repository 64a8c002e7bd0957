"""
State command: show or reset what previous runs recorded.
"""

import json
import logging

from slbootstrap.cli.utils import confirm, print_info, safe_print
from slbootstrap.core.state import StateManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    manager = StateManager()

    if args.reset:
        if not args.yes and not confirm(f"Reset {manager.state_file}?", default=False):
            print_info("State left unchanged")
            return 1
        manager.reset()
        print_info(f"State reset: {manager.state_file}")
        return 0

    state = manager.load()
    if args.json:
        safe_print(json.dumps(state.to_dict(), indent=2))
        return 0

    safe_print(f"State file:        {manager.state_file}")
    safe_print(f"Last run:          {state.last_run or 'never'}")
    safe_print(f"Last mode:         {state.last_mode or '-'}")
    phases = ", ".join(str(p) for p in state.completed_phases) or "-"
    safe_print(f"Completed phases:  {phases}")
    safe_print(f"Completed stages:  {', '.join(state.completed_stages) or '-'}")
    if state.tool_versions:
        safe_print("Tool versions:")
        for tool, version in sorted(state.tool_versions.items()):
            safe_print(f"  {tool}: {version}")
    if state.last_project:
        project = state.last_project
        safe_print(f"Last project:      {project.path} ({project.loop}, {project.created})")
    return 0
