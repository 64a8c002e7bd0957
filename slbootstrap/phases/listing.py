"""
Text listings for --list-phases, --list-stages and --list-modes.
"""

from slbootstrap.config.parser import BootstrapConfig


def format_phases(config: BootstrapConfig) -> str:
    lines = ["Phases:"]
    for phase in config.get_phases():
        flags = [] if phase.required else ["optional"]
        if phase.duration:
            flags.append(phase.duration)
        suffix = f" ({', '.join(flags)})" if flags else ""
        lines.append(f"  {phase.number}. {phase.name}{suffix}")
        if phase.description:
            lines.append(f"     {phase.description}")
        if phase.aliases:
            lines.append(f"     aliases: {', '.join(phase.aliases)}")
    return "\n".join(lines)


def format_stages(config: BootstrapConfig) -> str:
    lines = ["Stages:"]
    for phase in config.get_phases():
        lines.append(f"  Phase {phase.number} ({phase.name}):")
        for stage in phase.stages:
            suffix = "" if stage.required else " (optional)"
            aliases = f" [{', '.join(stage.aliases)}]" if stage.aliases else ""
            lines.append(f"    - {stage.name}{aliases}{suffix}")
            if stage.description:
                lines.append(f"        {stage.description}")
    return "\n".join(lines)


def format_modes(config: BootstrapConfig) -> str:
    lines = ["Modes:"]
    for mode in config.modes.values():
        default = " (default)" if mode.default else ""
        phases = ", ".join(str(n) for n in mode.phases)
        lines.append(f"  {mode.name}{default}: phases {phases}")
        if mode.description:
            lines.append(f"     {mode.description}")
        if mode.aliases:
            lines.append(f"     aliases: {', '.join(mode.aliases)}")

    if config.execution_modifiers:
        lines.append("")
        lines.append("Execution modifiers:")
        for modifier in config.execution_modifiers.values():
            lines.append(f"  --{modifier.name}: {modifier.description}")
    return "\n".join(lines)
