"""YAML configuration parser for strangeloop bootstrap.

This module parses bootstrap_config.yaml into typed records: phases with
their stages, setup modes, execution modifiers, platform-to-loop mappings,
per-tool installer settings and pipeline settings.

The parsed configuration is cached per file for the lifetime of the process.
"""

import functools
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from slbootstrap.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SLBOOT_CONFIG"
DEFAULT_CONFIG_NAME = "bootstrap_config.yaml"
SUPPORTED_VERSION = 1
LOOP_PLATFORMS = ("linux", "windows")


@dataclass
class StageDefinition:
    """A single step inside a phase."""

    name: str
    phase: int
    aliases: List[str] = field(default_factory=list)
    required: bool = True
    description: str = ""

    def matches(self, identifier: str) -> bool:
        key = identifier.strip().lower()
        return key == self.name.lower() or key in (a.lower() for a in self.aliases)


@dataclass
class PhaseDefinition:
    """One of the bootstrap phases."""

    number: int
    name: str
    aliases: List[str] = field(default_factory=list)
    required: bool = True
    duration: str = ""
    description: str = ""
    stages: List[StageDefinition] = field(default_factory=list)

    def matches(self, identifier: str) -> bool:
        key = identifier.strip().lower()
        return key == self.name.lower() or key in (a.lower() for a in self.aliases)

    def stage_names(self) -> List[str]:
        return [s.name for s in self.stages]


@dataclass
class ModeDefinition:
    """A named selection of phases."""

    name: str
    phases: List[int]
    aliases: List[str] = field(default_factory=list)
    default: bool = False
    description: str = ""

    def matches(self, identifier: str) -> bool:
        key = identifier.strip().lower()
        return key == self.name.lower() or key in (a.lower() for a in self.aliases)


@dataclass
class ExecutionModifier:
    """A run-wide flag such as what-if or check-only."""

    name: str
    aliases: List[str] = field(default_factory=list)
    description: str = ""


@dataclass
class ToolSettings:
    """Installer settings for one tool; keys beyond min_version are tool specific."""

    name: str
    min_version: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass
class PipelineTemplate:
    """A pipeline definition file generated into the project."""

    name: str
    file: str
    trigger: str = "ci"


@dataclass
class PipelineSettings:
    """Azure DevOps pipeline creation settings."""

    max_parallel: int = 4
    folder: str = ".pipelines"
    templates: List[PipelineTemplate] = field(default_factory=list)


@dataclass
class BootstrapConfig:
    """Complete bootstrap configuration."""

    version: int
    phases: Dict[int, PhaseDefinition] = field(default_factory=dict)
    modes: Dict[str, ModeDefinition] = field(default_factory=dict)
    execution_modifiers: Dict[str, ExecutionModifier] = field(default_factory=dict)
    platform_loops: Dict[str, List[str]] = field(default_factory=dict)
    tools: Dict[str, ToolSettings] = field(default_factory=dict)
    pipelines: PipelineSettings = field(default_factory=PipelineSettings)
    wsl_distribution: str = "Ubuntu"
    source: Optional[Path] = None

    # ------------------------------------------------------------------
    # Phases and stages
    # ------------------------------------------------------------------

    def get_phases(self) -> List[PhaseDefinition]:
        """All phases ordered by number."""
        return [self.phases[n] for n in sorted(self.phases)]

    def resolve_phase(self, identifier: Union[int, str]) -> PhaseDefinition:
        """
        Resolve a phase by number, name or alias (case-insensitive).

        Raises:
            ConfigError: If no phase matches
        """
        if isinstance(identifier, int) or str(identifier).strip().isdigit():
            number = int(identifier)
            if number in self.phases:
                return self.phases[number]
        else:
            for phase in self.get_phases():
                if phase.matches(str(identifier)):
                    return phase

        valid = ", ".join(f"{p.number} ({p.name})" for p in self.get_phases())
        raise ConfigError(f"Unknown phase '{identifier}'. Valid phases: {valid}")

    def all_stages(self) -> List[Tuple[PhaseDefinition, StageDefinition]]:
        """Every stage with its phase, in execution order."""
        return [(phase, stage) for phase in self.get_phases() for stage in phase.stages]

    def resolve_stage(self, identifier: str) -> StageDefinition:
        """
        Resolve a stage by name or alias.

        Raises:
            ConfigError: If no stage matches
        """
        for _, stage in self.all_stages():
            if stage.matches(identifier):
                return stage

        valid = ", ".join(stage.name for _, stage in self.all_stages())
        raise ConfigError(f"Unknown stage '{identifier}'. Valid stages: {valid}")

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def resolve_mode(self, identifier: Optional[str] = None) -> ModeDefinition:
        """
        Resolve a mode by name or alias; None selects the default mode.

        Raises:
            ConfigError: If no mode matches
        """
        if identifier is None or not str(identifier).strip():
            return self.default_mode()

        for mode in self.modes.values():
            if mode.matches(identifier):
                return mode

        raise ConfigError(
            f"Unknown mode '{identifier}'. Valid modes: {', '.join(self.modes)}"
        )

    def default_mode(self) -> ModeDefinition:
        defaults = [m for m in self.modes.values() if m.default]
        if defaults:
            return defaults[0]
        if "full" in self.modes:
            return self.modes["full"]
        raise ConfigError("No default mode configured")

    def phases_for_mode(self, mode: Union[str, ModeDefinition]) -> List[PhaseDefinition]:
        if not isinstance(mode, ModeDefinition):
            mode = self.resolve_mode(mode)
        return [self.phases[n] for n in sorted(mode.phases)]

    # ------------------------------------------------------------------
    # Loops and tools
    # ------------------------------------------------------------------

    def loops_for_platform(self, platform: str) -> List[str]:
        return list(self.platform_loops.get(platform, []))

    def platform_for_loop(self, loop_name: str) -> Optional[str]:
        """
        Loop target family ('linux' or 'windows').

        Loops not in the mapping are classified by their name suffix.
        """
        for platform, loops in self.platform_loops.items():
            if loop_name in loops:
                return platform

        lowered = loop_name.lower()
        for platform in LOOP_PLATFORMS:
            if lowered.endswith(f"-{platform}"):
                return platform
        return None

    def tool(self, name: str) -> ToolSettings:
        """Settings for a tool (empty settings if unconfigured)."""
        return self.tools.get(name, ToolSettings(name=name))


# ============================================================================
# Loading
# ============================================================================


def default_config_path() -> Path:
    """Path of the configuration shipped with the package."""
    return Path(str(resources.files("slbootstrap.config").joinpath(DEFAULT_CONFIG_NAME)))


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    """Explicit path, then $SLBOOT_CONFIG, then the packaged default."""
    if config_path:
        return Path(config_path).expanduser().resolve()
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    return default_config_path()


def load_config(config_path: Optional[Path] = None) -> BootstrapConfig:
    """
    Load the bootstrap configuration, cached per resolved path.

    Args:
        config_path: Optional explicit configuration file

    Raises:
        ConfigError: If the file is missing or invalid
    """
    return _load_cached(resolve_config_path(config_path))


@functools.lru_cache(maxsize=8)
def _load_cached(path: Path) -> BootstrapConfig:
    logger.debug(f"Loading configuration from {path}")
    return parse_config(path)


def clear_config_cache():
    """Forget cached configurations (tests, --config changes)."""
    _load_cached.cache_clear()


def parse_config(config_path: Path) -> BootstrapConfig:
    """
    Parse a bootstrap_config.yaml file.

    Raises:
        ConfigError: If configuration is missing or invalid
    """
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")

    if data is None:
        raise ConfigError(f"Configuration file is empty: {config_path}")

    config = parse_config_data(data)
    config.source = config_path
    return config


def parse_config_data(data: Dict[str, Any]) -> BootstrapConfig:
    """Parse and validate an already-loaded configuration mapping."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    if "version" not in data:
        raise ConfigError("Missing required field: version")
    if data["version"] != SUPPORTED_VERSION:
        raise ConfigError(
            f"Unsupported version: {data['version']} (expected {SUPPORTED_VERSION})"
        )

    phases = _parse_phases(data.get("phases"))
    modes = _parse_modes(data.get("modes"), phases)
    wsl = _as_mapping(data.get("wsl"), "wsl")

    return BootstrapConfig(
        version=data["version"],
        phases=phases,
        modes=modes,
        execution_modifiers=_parse_modifiers(
            _as_mapping(data.get("execution_modifiers"), "execution_modifiers")
        ),
        platform_loops=_parse_platforms(_as_mapping(data.get("platforms"), "platforms")),
        tools=_parse_tools(_as_mapping(data.get("tools"), "tools")),
        pipelines=_parse_pipelines(_as_mapping(data.get("pipelines"), "pipelines")),
        wsl_distribution=str(wsl.get("distribution", "Ubuntu")),
    )


def _as_mapping(value: Any, field_path: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{field_path} must be a mapping")
    return value


def _as_list(value: Any, field_path: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_path} must be a list")
    return [str(v) for v in value]


def _parse_phases(data: Any) -> Dict[int, PhaseDefinition]:
    if not data or not isinstance(data, dict):
        raise ConfigError("At least one phase must be defined under 'phases'")

    phases: Dict[int, PhaseDefinition] = {}
    seen_keys: Dict[str, str] = {}
    seen_stages: Dict[str, str] = {}

    for key, phase_data in data.items():
        try:
            number = int(key)
        except (TypeError, ValueError):
            raise ConfigError(f"phases.{key}: phase key must be a number")
        if number < 1:
            raise ConfigError(f"phases.{key}: phase number must be positive")
        if number in phases:
            raise ConfigError(f"phases.{key}: duplicate phase number")
        if not isinstance(phase_data, dict) or "name" not in phase_data:
            raise ConfigError(f"phases.{number}: missing required field 'name'")

        phase = PhaseDefinition(
            number=number,
            name=str(phase_data["name"]),
            aliases=_as_list(phase_data.get("aliases"), f"phases.{number}.aliases"),
            required=bool(phase_data.get("required", True)),
            duration=str(phase_data.get("duration", "")),
            description=str(phase_data.get("description", "")),
        )

        for identifier in [phase.name] + phase.aliases:
            lowered = identifier.lower()
            if lowered in seen_keys:
                raise ConfigError(
                    f"phases.{number}: '{identifier}' already used by phase "
                    f"{seen_keys[lowered]}"
                )
            seen_keys[lowered] = str(number)

        stages = phase_data.get("stages") or []
        if not isinstance(stages, list):
            raise ConfigError(f"phases.{number}.stages must be a list")
        for stage_data in stages:
            stage = _parse_stage(stage_data, number)
            for identifier in [stage.name] + stage.aliases:
                lowered = identifier.lower()
                if lowered in seen_stages:
                    raise ConfigError(
                        f"phases.{number}.stages: '{identifier}' already used by "
                        f"stage '{seen_stages[lowered]}'"
                    )
                seen_stages[lowered] = stage.name
            phase.stages.append(stage)

        phases[number] = phase

    return phases


def _parse_stage(data: Any, phase_number: int) -> StageDefinition:
    if isinstance(data, str):
        return StageDefinition(name=data, phase=phase_number)
    if not isinstance(data, dict) or "name" not in data:
        raise ConfigError(f"phases.{phase_number}.stages: stage missing 'name'")
    return StageDefinition(
        name=str(data["name"]),
        phase=phase_number,
        aliases=_as_list(data.get("aliases"), f"phases.{phase_number}.stages.aliases"),
        required=bool(data.get("required", True)),
        description=str(data.get("description", "")),
    )


def _parse_modes(data: Any, phases: Dict[int, PhaseDefinition]) -> Dict[str, ModeDefinition]:
    if not data or not isinstance(data, dict):
        raise ConfigError("At least one mode must be defined under 'modes'")

    modes: Dict[str, ModeDefinition] = {}
    seen: Dict[str, str] = {}

    for name, mode_data in data.items():
        mode_data = _as_mapping(mode_data, f"modes.{name}")
        phase_numbers = mode_data.get("phases")
        if not phase_numbers or not isinstance(phase_numbers, list):
            raise ConfigError(f"modes.{name}: 'phases' must list at least one phase")

        numbers = []
        for value in phase_numbers:
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ConfigError(f"modes.{name}.phases: '{value}' is not a number")
            if number not in phases:
                raise ConfigError(f"modes.{name}.phases: undefined phase {number}")
            numbers.append(number)

        mode = ModeDefinition(
            name=str(name),
            phases=sorted(set(numbers)),
            aliases=_as_list(mode_data.get("aliases"), f"modes.{name}.aliases"),
            default=bool(mode_data.get("default", False)),
            description=str(mode_data.get("description", "")),
        )

        for identifier in [mode.name] + mode.aliases:
            lowered = identifier.lower()
            if lowered in seen:
                raise ConfigError(
                    f"modes.{name}: '{identifier}' already used by mode '{seen[lowered]}'"
                )
            seen[lowered] = mode.name

        modes[mode.name] = mode

    defaults = [m.name for m in modes.values() if m.default]
    if len(defaults) > 1:
        raise ConfigError(f"Only one default mode allowed, found: {', '.join(defaults)}")

    return modes


def _parse_modifiers(data: dict) -> Dict[str, ExecutionModifier]:
    modifiers = {}
    for name, mod_data in data.items():
        mod_data = _as_mapping(mod_data, f"execution_modifiers.{name}")
        modifiers[str(name)] = ExecutionModifier(
            name=str(name),
            aliases=_as_list(mod_data.get("aliases"), f"execution_modifiers.{name}.aliases"),
            description=str(mod_data.get("description", "")),
        )
    return modifiers


def _parse_platforms(data: dict) -> Dict[str, List[str]]:
    mapping = {}
    for platform, platform_data in data.items():
        if platform not in LOOP_PLATFORMS:
            raise ConfigError(
                f"platforms.{platform}: unknown platform (expected one of {list(LOOP_PLATFORMS)})"
            )
        platform_data = _as_mapping(platform_data, f"platforms.{platform}")
        mapping[platform] = _as_list(platform_data.get("loops"), f"platforms.{platform}.loops")
    return mapping


def _parse_tools(data: dict) -> Dict[str, ToolSettings]:
    tools = {}
    for name, tool_data in data.items():
        tool_data = dict(_as_mapping(tool_data, f"tools.{name}"))
        min_version = tool_data.pop("min_version", None)
        tools[str(name)] = ToolSettings(
            name=str(name),
            min_version=str(min_version) if min_version is not None else None,
            options=tool_data,
        )
    return tools


def _parse_pipelines(data: dict) -> PipelineSettings:
    max_parallel = data.get("max_parallel", 4)
    if not isinstance(max_parallel, int) or max_parallel < 1:
        raise ConfigError("pipelines.max_parallel must be a positive integer")

    templates = []
    templates_data = data.get("templates") or []
    if not isinstance(templates_data, list):
        raise ConfigError("pipelines.templates must be a list")
    for template in templates_data:
        if not isinstance(template, dict) or "name" not in template or "file" not in template:
            raise ConfigError("pipelines.templates entries need 'name' and 'file'")
        templates.append(
            PipelineTemplate(
                name=str(template["name"]),
                file=str(template["file"]),
                trigger=str(template.get("trigger", "ci")),
            )
        )

    return PipelineSettings(
        max_parallel=max_parallel,
        folder=str(data.get("folder", ".pipelines")),
        templates=templates,
    )
