"""
Tool probe registry.

Maps tool names to probe classes and builds probe sets in setup order.
"""

import logging
from typing import Dict, List, Optional, Type

from slbootstrap.config.parser import BootstrapConfig
from slbootstrap.core.platform import PlatformInfo
from slbootstrap.core.process import CommandRunner
from slbootstrap.tools.base import ToolProbe
from slbootstrap.tools.probes import (
    AzureCLIProbe,
    DockerProbe,
    GitProbe,
    PoetryProbe,
    PythonProbe,
    StrangeloopCLIProbe,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of probe classes keyed by tool name."""

    def __init__(self):
        self._probes: Dict[str, Type[ToolProbe]] = {}

    def register(self, probe_cls: Type[ToolProbe]) -> None:
        if not probe_cls.name:
            raise ValueError(f"{probe_cls.__name__} has no tool name")
        if probe_cls.name in self._probes:
            raise ValueError(f"Tool already registered: {probe_cls.name}")
        self._probes[probe_cls.name] = probe_cls
        logger.debug(f"Registered tool probe: {probe_cls.name}")

    def names(self) -> List[str]:
        return list(self._probes)

    def get(self, name: str) -> Type[ToolProbe]:
        try:
            return self._probes[name]
        except KeyError:
            raise KeyError(
                f"Unknown tool '{name}'. Available: {', '.join(self._probes)}"
            ) from None

    def create(
        self,
        name: str,
        runner: CommandRunner,
        platform: PlatformInfo,
        config: Optional[BootstrapConfig] = None,
    ) -> ToolProbe:
        settings = config.tool(name) if config else None
        return self.get(name)(runner, platform, settings)


_global_registry: Optional[ToolRegistry] = None


def get_global_registry() -> ToolRegistry:
    """Registry with the built-in probes, in setup order."""
    global _global_registry
    if _global_registry is None:
        registry = ToolRegistry()
        for probe_cls in (
            AzureCLIProbe,
            StrangeloopCLIProbe,
            GitProbe,
            DockerProbe,
            PythonProbe,
            PoetryProbe,
        ):
            registry.register(probe_cls)
        _global_registry = registry
    return _global_registry


def get_probe(
    name: str,
    runner: CommandRunner,
    platform: PlatformInfo,
    config: Optional[BootstrapConfig] = None,
) -> ToolProbe:
    return get_global_registry().create(name, runner, platform, config)


def get_tool_probes(
    runner: CommandRunner,
    platform: PlatformInfo,
    config: Optional[BootstrapConfig] = None,
) -> List[ToolProbe]:
    """One probe per registered tool, in setup order."""
    registry = get_global_registry()
    return [registry.create(name, runner, platform, config) for name in registry.names()]
