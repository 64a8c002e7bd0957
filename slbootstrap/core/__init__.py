"""
Core functionality for strangeloop bootstrap.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    BootstrapError,
    ConfigError,
    PlatformError,
    StateError,
    CommandError,
    DownloadError,
    ChecksumError,
    ToolError,
    ToolNotFoundError,
    ToolInstallError,
    ToolVersionError,
    PhaseError,
    StageError,
    ProjectError,
    PipelineError,
)
from .platform import (
    PlatformInfo,
    detect_platform,
    is_supported_platform,
    clear_platform_cache,
)
from .process import CommandResult, CommandRunner, WSLCommandRunner
from .state import BootstrapState, StateManager

__all__ = [
    "BootstrapError",
    "ConfigError",
    "PlatformError",
    "StateError",
    "CommandError",
    "DownloadError",
    "ChecksumError",
    "ToolError",
    "ToolNotFoundError",
    "ToolInstallError",
    "ToolVersionError",
    "PhaseError",
    "StageError",
    "ProjectError",
    "PipelineError",
    "PlatformInfo",
    "detect_platform",
    "is_supported_platform",
    "clear_platform_cache",
    "CommandResult",
    "CommandRunner",
    "WSLCommandRunner",
    "BootstrapState",
    "StateManager",
]
