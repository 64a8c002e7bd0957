"""
Tool capability probes and installers.

One probe per external tool (Azure CLI, strangeloop CLI, Git, Docker,
Python, Poetry), all sharing the ToolProbe interface, plus WSL management.
"""

from .base import ToolProbe, ToolStatus
from .probes import (
    AzureCLIProbe,
    StrangeloopCLIProbe,
    GitProbe,
    DockerProbe,
    PythonProbe,
    PoetryProbe,
)
from .registry import ToolRegistry, get_global_registry, get_probe, get_tool_probes
from .wsl import WSLManager

__all__ = [
    "ToolProbe",
    "ToolStatus",
    "AzureCLIProbe",
    "StrangeloopCLIProbe",
    "GitProbe",
    "DockerProbe",
    "PythonProbe",
    "PoetryProbe",
    "ToolRegistry",
    "get_global_registry",
    "get_probe",
    "get_tool_probes",
    "WSLManager",
]
