"""
Listing commands: phases, stages, modes.
"""

from slbootstrap.cli.commands.common import load_bootstrap_config
from slbootstrap.cli.utils import safe_print
from slbootstrap.phases.listing import format_modes, format_phases, format_stages

_FORMATTERS = {
    "phases": format_phases,
    "stages": format_stages,
    "modes": format_modes,
}


def run(args) -> int:
    config = load_bootstrap_config(args)
    safe_print(_FORMATTERS[args.command](config))
    return 0
