"""Configuration module for strangeloop bootstrap.

Parses bootstrap_config.yaml (phases, stages, modes, execution modifiers,
platform-to-loop mappings, tool installer settings, pipeline settings).
"""

from slbootstrap.config.parser import (
    BootstrapConfig,
    PhaseDefinition,
    StageDefinition,
    ModeDefinition,
    ExecutionModifier,
    ToolSettings,
    PipelineSettings,
    PipelineTemplate,
    load_config,
    parse_config,
    parse_config_data,
    clear_config_cache,
    default_config_path,
)

__all__ = [
    "BootstrapConfig",
    "PhaseDefinition",
    "StageDefinition",
    "ModeDefinition",
    "ExecutionModifier",
    "ToolSettings",
    "PipelineSettings",
    "PipelineTemplate",
    "load_config",
    "parse_config",
    "parse_config_data",
    "clear_config_cache",
    "default_config_path",
]
