"""
Run state for strangeloop bootstrap.

Tracks which phases and stages have completed, the tool versions last seen
and the last project created, so an interrupted setup can be resumed with
``--start-from-phase`` and ``slboot state`` can report progress.

State is persisted to ``~/.strangeloop-bootstrap/state.json`` with a file
lock so two concurrent runs (e.g. Windows host and WSL) never interleave
writes.

Example:
    >>> manager = StateManager()
    >>> manager.mark_phase_complete(1)
    >>> manager.load().completed_phases
    [1]
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from filelock import FileLock, Timeout

from slbootstrap.core.exceptions import StateError
from slbootstrap.core.filesystem import atomic_write, get_bootstrap_home

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class ProjectRecord:
    """Last project scaffolded by phase 3."""

    path: str
    loop: str
    created: str


@dataclass
class BootstrapState:
    """
    Persistent run state.

    Attributes:
        version: State file format version
        completed_phases: Phase numbers completed successfully
        completed_stages: Stage names completed successfully
        last_run: ISO 8601 timestamp of the last run
        last_mode: Mode used by the last run
        tool_versions: Tool name -> version last verified
        last_project: Last project created
    """

    version: int = STATE_VERSION
    completed_phases: List[int] = field(default_factory=list)
    completed_stages: List[str] = field(default_factory=list)
    last_run: Optional[str] = None
    last_mode: Optional[str] = None
    tool_versions: Dict[str, str] = field(default_factory=dict)
    last_project: Optional[ProjectRecord] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BootstrapState":
        project = data.get("last_project")
        return cls(
            version=data.get("version", STATE_VERSION),
            completed_phases=sorted(int(p) for p in data.get("completed_phases", [])),
            completed_stages=list(data.get("completed_stages", [])),
            last_run=data.get("last_run"),
            last_mode=data.get("last_mode"),
            tool_versions=dict(data.get("tool_versions", {})),
            last_project=ProjectRecord(**project) if project else None,
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class StateManager:
    """
    Load and update the run state file.

    Attributes:
        home: Bootstrap home directory
        state_file: Path to state.json
    """

    def __init__(self, home: Optional[Path] = None, lock_timeout: float = 30):
        self.home = Path(home) if home else get_bootstrap_home()
        self.state_file = self.home / "state.json"
        self.lock_timeout = lock_timeout
        self._lock = FileLock(str(self.home / "state.json.lock"), timeout=lock_timeout)

    def load(self) -> BootstrapState:
        """
        Load state from disk.

        A missing file yields a fresh state. A corrupted file is logged and
        replaced by a fresh state.
        """
        if not self.state_file.exists():
            logger.debug(f"No state file at {self.state_file}")
            return BootstrapState()

        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                logger.warning(f"State file {self.state_file} is not a JSON object, resetting")
                return BootstrapState()
            if data.get("version", STATE_VERSION) != STATE_VERSION:
                logger.warning(
                    f"State version {data.get('version')} not supported, starting fresh"
                )
                return BootstrapState()
            return BootstrapState.from_dict(data)
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError, KeyError) as e:
            logger.warning(f"Invalid state file {self.state_file}, resetting: {e}")
            return BootstrapState()

    def save(self, state: BootstrapState) -> None:
        """Write state atomically under the state lock."""
        self.home.mkdir(parents=True, exist_ok=True)
        try:
            with self._lock:
                self._write(state)
        except Timeout as e:
            raise StateError(
                f"Could not lock {self.state_file} within {self.lock_timeout}s; "
                "is another setup running?"
            ) from e

    def _write(self, state: BootstrapState) -> None:
        atomic_write(self.state_file, json.dumps(state.to_dict(), indent=2) + "\n")
        logger.debug(f"Saved state to {self.state_file}")

    def _update(self, mutate) -> BootstrapState:
        self.home.mkdir(parents=True, exist_ok=True)
        try:
            with self._lock:
                state = self.load()
                mutate(state)
                state.last_run = _now()
                self._write(state)
                return state
        except Timeout as e:
            raise StateError(
                f"Could not lock {self.state_file} within {self.lock_timeout}s; "
                "is another setup running?"
            ) from e

    def mark_phase_complete(self, phase_number: int) -> BootstrapState:
        def mutate(state: BootstrapState):
            if phase_number not in state.completed_phases:
                state.completed_phases.append(phase_number)
                state.completed_phases.sort()

        return self._update(mutate)

    def mark_stage_complete(self, stage_name: str) -> BootstrapState:
        def mutate(state: BootstrapState):
            if stage_name not in state.completed_stages:
                state.completed_stages.append(stage_name)

        return self._update(mutate)

    def record_mode(self, mode_name: str) -> BootstrapState:
        def mutate(state: BootstrapState):
            state.last_mode = mode_name

        return self._update(mutate)

    def record_tool(self, tool_name: str, version: str) -> BootstrapState:
        def mutate(state: BootstrapState):
            state.tool_versions[tool_name] = version

        return self._update(mutate)

    def record_project(self, path: Path, loop: str) -> BootstrapState:
        def mutate(state: BootstrapState):
            state.last_project = ProjectRecord(
                path=str(path), loop=loop, created=_now()
            )

        return self._update(mutate)

    def reset(self) -> None:
        """Delete the state file."""
        self.home.mkdir(parents=True, exist_ok=True)
        try:
            with self._lock:
                self.state_file.unlink(missing_ok=True)
        except Timeout as e:
            raise StateError(f"Could not lock {self.state_file}") from e
        logger.info(f"Cleared state: {self.state_file}")
