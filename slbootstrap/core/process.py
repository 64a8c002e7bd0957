"""
External command execution.

All shelling out (az, winget, wsl, docker, git, strangeloop, msiexec, apt-get)
goes through a CommandRunner so that:

- what-if runs can print the commands instead of executing them,
- the same tool probe can target the local host or a WSL distribution,
- tests can substitute a recording fake.

Example:
    >>> runner = CommandRunner()
    >>> result = runner.run(["git", "--version"])
    >>> if result.ok:
    ...     print(result.stdout)
"""

import logging
import os
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from slbootstrap.core.exceptions import CommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
INSTALL_TIMEOUT = 1800

# Conventional shell exit codes for "command not found" and "timed out"
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of a single external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr (some tools print versions to stderr)."""
        return (self.stdout or "") + (self.stderr or "")

    def raise_for_status(self) -> "CommandResult":
        if not self.ok:
            raise CommandError(self.args, self.returncode, self.stderr)
        return self


class CommandRunner:
    """
    Run external commands on the local host.

    Attributes:
        dry_run: When True, commands are logged and not executed
        env: Extra environment variables merged over os.environ
        cwd: Default working directory
    """

    def __init__(
        self,
        dry_run: bool = False,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
    ):
        self.dry_run = dry_run
        self.env = dict(env or {})
        self.cwd = Path(cwd) if cwd else None

    @property
    def target(self) -> str:
        """Human-readable name of where commands run."""
        return "local"

    def run(
        self,
        args: Sequence[str],
        check: bool = False,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        cwd: Optional[Union[str, Path]] = None,
        input: Optional[str] = None,
        mutating: bool = True,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Command and arguments
            check: Raise CommandError on non-zero exit
            timeout: Seconds before the command is killed (None = no limit)
            cwd: Working directory (defaults to runner cwd)
            input: Text fed to stdin
            mutating: False for read-only probes, which still execute in
                dry-run mode so what-if output reflects the real machine

        Returns:
            CommandResult (returncode 127 if the executable is missing,
            124 on timeout)
        """
        argv = self._build_argv(args)
        work_dir = Path(cwd) if cwd else self.cwd

        if self.dry_run and mutating:
            logger.info(f"WHAT-IF: would run: {format_command(argv)}")
            return CommandResult(args=argv, returncode=0, dry_run=True)

        logger.debug(f"Running: {format_command(argv)}")
        start = time.monotonic()

        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(work_dir) if work_dir else None,
                env=self._build_env(),
                input=input,
                check=False,
            )
            result = CommandResult(
                args=argv,
                returncode=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
                duration=time.monotonic() - start,
            )
        except FileNotFoundError:
            result = CommandResult(
                args=argv,
                returncode=EXIT_NOT_FOUND,
                stderr=f"{argv[0]}: command not found",
                duration=time.monotonic() - start,
            )
        except subprocess.TimeoutExpired:
            result = CommandResult(
                args=argv,
                returncode=EXIT_TIMEOUT,
                stderr=f"{argv[0]}: timed out after {timeout}s",
                duration=time.monotonic() - start,
            )

        if result.ok:
            logger.debug(f"Exit 0 in {result.duration:.1f}s")
        else:
            logger.debug(
                f"Exit {result.returncode}: {result.stderr.strip()[:300]}"
            )

        if check:
            result.raise_for_status()
        return result

    def run_interactive(
        self, args: Sequence[str], cwd: Optional[Union[str, Path]] = None
    ) -> int:
        """
        Run a command attached to the terminal (az login, sudo prompts).

        Returns:
            Exit code
        """
        argv = self._build_argv(args)
        if self.dry_run:
            logger.info(f"WHAT-IF: would run: {format_command(argv)}")
            return 0

        work_dir = Path(cwd) if cwd else self.cwd
        try:
            return subprocess.call(
                argv,
                cwd=str(work_dir) if work_dir else None,
                env=self._build_env(),
            )
        except FileNotFoundError:
            return EXIT_NOT_FOUND

    def which(self, name: str) -> Optional[str]:
        """Locate an executable on PATH."""
        return shutil.which(name)

    def _build_argv(self, args: Sequence[str]) -> List[str]:
        return [str(a) for a in args]

    def _build_env(self) -> Optional[Dict[str, str]]:
        if not self.env:
            return None
        env = os.environ.copy()
        env.update(self.env)
        return env


class WSLCommandRunner(CommandRunner):
    """
    Run commands inside a WSL distribution from a Windows host.

    Every command becomes ``wsl -d <distro> -- bash -lc '<command>'`` so it
    sees the distribution's login PATH (pipx, ~/.local/bin, poetry).
    """

    def __init__(self, distro: str, **kwargs):
        super().__init__(**kwargs)
        self.distro = distro

    @property
    def target(self) -> str:
        return f"wsl:{self.distro}"

    def _build_argv(self, args: Sequence[str]) -> List[str]:
        inner = format_command([str(a) for a in args])
        return ["wsl", "-d", self.distro, "--", "bash", "-lc", inner]

    def which(self, name: str) -> Optional[str]:
        result = self.run(["command", "-v", name], mutating=False)
        if result.ok and result.stdout.strip():
            return result.stdout.strip().splitlines()[0]
        return None


def format_command(args: Sequence[str]) -> str:
    """Render an argv list as a copy-pasteable shell string."""
    return " ".join(shlex.quote(str(a)) for a in args)


__all__ = [
    "CommandResult",
    "CommandRunner",
    "WSLCommandRunner",
    "format_command",
    "DEFAULT_TIMEOUT",
    "INSTALL_TIMEOUT",
    "EXIT_NOT_FOUND",
    "EXIT_TIMEOUT",
]
