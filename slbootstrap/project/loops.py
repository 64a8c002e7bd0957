"""
Loop catalog and selection.

Loops are the project templates the strangeloop CLI scaffolds from. The
catalog asks the CLI for the loops it knows (``strangeloop library loops``)
and falls back to the platform mapping in bootstrap_config.yaml when the
CLI is unavailable.
"""

import logging
import re
import sys
from typing import List, Optional

from slbootstrap.cli.utils import safe_print
from slbootstrap.config.parser import BootstrapConfig
from slbootstrap.core.exceptions import ProjectError
from slbootstrap.core.process import CommandRunner

logger = logging.getLogger(__name__)

_LOOP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def loop_language(loop: str) -> str:
    """Primary language of a loop, from its name ('python', 'csharp', 'other')."""
    lowered = loop.lower()
    if lowered.startswith("python") or "-python" in lowered:
        return "python"
    if lowered.startswith(("csharp", "dotnet")) or "-dotnet" in lowered:
        return "csharp"
    return "other"


def parse_loop_listing(output: str) -> List[str]:
    """
    Extract loop names from ``strangeloop library loops`` output.

    The first column of each row is the loop name; header, separator and
    blank lines are ignored.
    """
    loops: List[str] = []
    for line in output.splitlines():
        stripped = line.strip().lstrip("-*• ").strip()
        if not stripped:
            continue
        first = stripped.split()[0].strip("|")
        if first.lower() in ("name", "loop", "loops") or set(first) <= set("-=|"):
            continue
        if _LOOP_NAME_RE.match(first) and first not in loops:
            loops.append(first)
    return loops


class LoopCatalog:
    """Loops available for scaffolding."""

    def __init__(self, runner: CommandRunner, config: BootstrapConfig):
        self.runner = runner
        self.config = config
        self._cache: Optional[List[str]] = None

    def list_loops(self) -> List[str]:
        """All known loops; CLI listing first, configured loops appended."""
        if self._cache is not None:
            return self._cache

        loops: List[str] = []
        result = self.runner.run(["strangeloop", "library", "loops"], mutating=False)
        if result.ok:
            loops = parse_loop_listing(result.stdout)
            logger.debug(f"strangeloop CLI reported {len(loops)} loops")
        else:
            logger.debug("Could not list loops from strangeloop CLI, using configuration")

        for platform_loops in self.config.platform_loops.values():
            for loop in platform_loops:
                if loop not in loops:
                    loops.append(loop)

        self._cache = loops
        return loops

    def loops_for(self, platform: str) -> List[str]:
        """Loops targeting ``platform`` ('linux' or 'windows')."""
        return [
            loop
            for loop in self.list_loops()
            if self.config.platform_for_loop(loop) in (platform, None)
        ]

    def select_loop(
        self,
        requested: Optional[str],
        platform: Optional[str],
        interactive: bool = True,
    ) -> str:
        """
        Resolve the loop to scaffold.

        Args:
            requested: Loop name given on the command line
            platform: Loop family used to narrow the menu (None offers every loop)
            interactive: Prompt with a numbered menu when nothing was requested

        Raises:
            ProjectError: Unknown loop, or no loop given in non-interactive mode
        """
        available = self.list_loops()

        if requested:
            if requested in available:
                return requested
            raise ProjectError(
                f"Unknown loop '{requested}'. Available loops: {', '.join(available)}"
            )

        choices = (self.loops_for(platform) if platform else available) or available
        if not choices:
            raise ProjectError("No loops available; check the strangeloop CLI installation")

        if not interactive or not sys.stdin.isatty():
            raise ProjectError(
                "No loop specified. Pass --loop-name, one of: " + ", ".join(choices)
            )

        return self._prompt(choices)

    def _prompt(self, choices: List[str]) -> str:
        safe_print("\nAvailable loops:")
        for index, loop in enumerate(choices, start=1):
            safe_print(f"  {index:2d}. {loop}")

        while True:
            answer = input(f"Select a loop [1-{len(choices)}]: ").strip()
            if answer in choices:
                return answer
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1]
            safe_print(f"  Enter a number between 1 and {len(choices)}")
