"""
Platform command: show what the setup detects about this machine.
"""

import logging

from slbootstrap.cli.utils import print_warning, safe_print
from slbootstrap.core.platform import detect_platform, is_supported_platform
from slbootstrap.core.process import CommandRunner
from slbootstrap.tools.wsl import WSLManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    platform = detect_platform()

    safe_print(f"Platform:      {platform.kind()}")
    safe_print(f"Architecture:  {platform.arch}")
    safe_print(f"OS version:    {platform.os_version}")
    if platform.distribution:
        safe_print(f"Distribution:  {platform.distribution}")
    if platform.is_wsl:
        safe_print(f"WSL distro:    {platform.wsl_distro or 'unknown'}")
    safe_print(f"Native loops:  {platform.loop_platform()}")

    if platform.is_windows:
        manager = WSLManager(CommandRunner())
        if manager.is_available():
            distros = manager.list_distributions()
            safe_print(f"WSL:           {', '.join(distros) if distros else 'no distributions'}")
        else:
            safe_print("WSL:           not available")

    if not is_supported_platform(platform):
        print_warning(f"{platform} is not supported by strangeloop bootstrap")
        return 1
    return 0
