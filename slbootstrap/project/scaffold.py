"""
Project scaffolding from a loop.

Creates the project directory, runs ``strangeloop init`` inside it and
initializes a Git repository. Works against the local filesystem or, for
Linux loops on a Windows host, inside a WSL distribution through the
runner.
"""

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Union

from slbootstrap.core.exceptions import ProjectError, ToolNotFoundError
from slbootstrap.core.filesystem import is_empty_directory
from slbootstrap.core.process import (
    INSTALL_TIMEOUT,
    CommandResult,
    CommandRunner,
    WSLCommandRunner,
    format_command,
)
from slbootstrap.project.naming import validate_project_name

logger = logging.getLogger(__name__)


@dataclass
class ProjectInfo:
    """A scaffolded project."""

    name: str
    path: str
    loop: str
    platform: str
    target: str = "local"

    @property
    def in_wsl(self) -> bool:
        return self.target.startswith("wsl:")


class ProjectScaffolder:
    """Create projects from loops with the strangeloop CLI."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner
        self.remote = isinstance(runner, WSLCommandRunner)

    # ------------------------------------------------------------------
    # Filesystem helpers (local or inside WSL)
    # ------------------------------------------------------------------

    def default_parent(self) -> str:
        """Parent directory used when --project-path is not given."""
        if not self.remote:
            return str(Path.cwd())
        result = self.runner.run(["printenv", "HOME"], mutating=False)
        home = result.stdout.strip() if result.ok else ""
        return str(PurePosixPath(home or "/tmp") / "projects")

    def _join(self, parent: str, name: str) -> str:
        if self.remote:
            return str(PurePosixPath(parent) / name)
        return str(Path(parent).expanduser().resolve() / name)

    def _exists_non_empty(self, path: str) -> bool:
        if not self.remote:
            p = Path(path)
            return p.exists() and not is_empty_directory(p)
        quoted = shlex.quote(path)
        script = f"test -e {quoted} && [ -n \"$(ls -A {quoted} 2>/dev/null)\" ]"
        result = self.runner.run(["bash", "-c", script], mutating=False)
        return result.ok

    def _make_dir(self, path: str) -> None:
        if self.runner.dry_run:
            self.runner.run(["mkdir", "-p", path])
            return
        if not self.remote:
            Path(path).mkdir(parents=True, exist_ok=True)
            return
        result = self.runner.run(["mkdir", "-p", path])
        if not result.ok:
            raise ProjectError(f"Could not create {path}: {result.stderr.strip()}")

    def run_in(
        self,
        path: str,
        args: Sequence[str],
        timeout: Optional[float] = 300,
        mutating: bool = True,
    ) -> CommandResult:
        """Run a command with ``path`` as working directory."""
        if self.remote:
            script = f"cd {shlex.quote(path)} && {format_command(args)}"
            return self.runner.run(
                ["bash", "-c", script], timeout=timeout, mutating=mutating
            )
        return self.runner.run(args, cwd=path, timeout=timeout, mutating=mutating)

    # ------------------------------------------------------------------
    # Scaffolding
    # ------------------------------------------------------------------

    def create(
        self,
        loop: str,
        name: str,
        parent: Optional[Union[str, Path]] = None,
        platform: str = "linux",
        force: bool = False,
    ) -> ProjectInfo:
        """
        Create ``<parent>/<name>`` from ``loop``.

        Raises:
            ProjectError: Invalid name, non-empty target without force, or
                strangeloop init failure
            ToolNotFoundError: The strangeloop CLI is not on PATH
        """
        name = validate_project_name(name)
        parent_dir = str(parent) if parent else self.default_parent()
        path = self._join(parent_dir, name)

        if self._exists_non_empty(path) and not force:
            raise ProjectError(
                f"Directory already exists and is not empty: {path}. "
                "Choose another name or pass --force."
            )

        logger.info(f"Creating project {name} from loop {loop} at {path}")
        self._make_dir(path)

        result = self.run_in(
            path, ["strangeloop", "init", "--loop", loop], timeout=INSTALL_TIMEOUT
        )
        if result.returncode == 127:
            raise ToolNotFoundError("strangeloop")
        if not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ProjectError(
                f"strangeloop init --loop {loop} failed (exit {result.returncode})"
                + (f": {detail.splitlines()[-1]}" if detail else "")
            )

        return ProjectInfo(
            name=name,
            path=path,
            loop=loop,
            platform=platform,
            target=self.runner.target,
        )

    def initialize_git(self, project: ProjectInfo, branch: str = "main") -> List[str]:
        """
        Initialize a Git repository with an initial commit.

        An existing repository with commits is left untouched.

        Returns:
            Actions performed, for reporting

        Raises:
            ProjectError: If a git step fails
        """
        actions: List[str] = []
        path = project.path

        is_repo = self.run_in(
            path, ["git", "rev-parse", "--is-inside-work-tree"], mutating=False
        )
        if not (is_repo.ok and is_repo.stdout.strip() == "true"):
            result = self.run_in(path, ["git", "init", "-b", branch])
            if not result.ok:
                raise ProjectError(f"git init failed: {result.stderr.strip()}")
            actions.append(f"Initialized repository (branch {branch})")

        has_head = self.run_in(
            path, ["git", "rev-parse", "--verify", "HEAD"], mutating=False
        )
        if has_head.ok:
            actions.append("Repository already has commits")
            return actions

        staged = self.run_in(path, ["git", "add", "-A"])
        if not staged.ok:
            raise ProjectError(f"git add failed: {staged.stderr.strip()}")
        commit = self.run_in(
            path,
            ["git", "commit", "-m", f"Initial commit from strangeloop loop {project.loop}"],
        )
        if not commit.ok:
            raise ProjectError(
                "Initial commit failed. Configure git user.name and user.email "
                f"(git config --global ...): {commit.stderr.strip() or commit.stdout.strip()}"
            )
        actions.append("Created initial commit")
        return actions
