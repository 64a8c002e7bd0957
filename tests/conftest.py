"""
Pytest configuration and shared fixtures for strangeloop bootstrap tests.

No test runs real installers or touches the network: external commands go
through FakeRunner, which records every command and answers from scripted
responses.
"""

import threading
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from slbootstrap.config.parser import clear_config_cache, default_config_path, parse_config
from slbootstrap.core.platform import PlatformInfo, clear_platform_cache
from slbootstrap.core.process import CommandResult, CommandRunner
from slbootstrap.core.state import StateManager


class FakeRunner(CommandRunner):
    """
    CommandRunner that never spawns processes.

    Responses are keyed by argv prefix; the longest matching prefix wins.
    Unscripted commands succeed with empty output.
    """

    def __init__(
        self,
        executables: Optional[Dict[str, str]] = None,
        dry_run: bool = False,
        interactive_returncode: int = 0,
    ):
        super().__init__(dry_run=dry_run)
        self.executables = dict(executables or {})
        self.responses: Dict[Tuple[str, ...], Tuple[int, str, str]] = {}
        self.calls: List[List[str]] = []
        self.cwds: List[Optional[str]] = []
        self.interactive_calls: List[List[str]] = []
        self.interactive_returncode = interactive_returncode
        self._lock = threading.Lock()

    def respond(
        self, prefix: Sequence[str], returncode: int = 0, stdout: str = "", stderr: str = ""
    ) -> "FakeRunner":
        self.responses[tuple(prefix)] = (returncode, stdout, stderr)
        return self

    def run(self, args, check=False, timeout=None, cwd=None, input=None, mutating=True):
        argv = [str(a) for a in args]
        with self._lock:
            self.calls.append(argv)
            self.cwds.append(str(cwd) if cwd else None)

        if self.dry_run and mutating:
            return CommandResult(args=argv, returncode=0, dry_run=True)

        returncode, stdout, stderr = self._lookup(argv)
        result = CommandResult(args=argv, returncode=returncode, stdout=stdout, stderr=stderr)
        if check:
            result.raise_for_status()
        return result

    def run_interactive(self, args, cwd=None) -> int:
        self.interactive_calls.append([str(a) for a in args])
        return 0 if self.dry_run else self.interactive_returncode

    def which(self, name: str) -> Optional[str]:
        return self.executables.get(name)

    def _lookup(self, argv: List[str]) -> Tuple[int, str, str]:
        best = None
        for prefix, response in self.responses.items():
            if tuple(argv[: len(prefix)]) == prefix:
                if best is None or len(prefix) > len(best[0]):
                    best = (prefix, response)
        return best[1] if best else (0, "", "")

    def called(self, *prefix: str) -> List[List[str]]:
        """Recorded commands starting with ``prefix``."""
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point state and downloads at a temp dir and reset process-wide caches."""
    home = tmp_path / "slboot-home"
    monkeypatch.setenv("SLBOOT_HOME", str(home))
    monkeypatch.delenv("SLBOOT_CONFIG", raising=False)
    clear_config_cache()
    clear_platform_cache()
    yield home
    clear_config_cache()
    clear_platform_cache()


@pytest.fixture
def fake_runner_cls():
    """The FakeRunner class, for tests that need several runners."""
    return FakeRunner


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def bootstrap_config():
    """The configuration shipped with the package."""
    return parse_config(default_config_path())


@pytest.fixture
def state_manager(tmp_path):
    return StateManager(home=tmp_path / "state")


@pytest.fixture
def linux_platform():
    return PlatformInfo(os="linux", arch="x64", os_version="6.5.0", distribution="ubuntu")


@pytest.fixture
def wsl_platform():
    return PlatformInfo(
        os="linux",
        arch="x64",
        os_version="5.15.153.1-microsoft-standard-WSL2",
        distribution="ubuntu",
        is_wsl=True,
        wsl_distro="Ubuntu-24.04",
    )


@pytest.fixture
def windows_platform():
    return PlatformInfo(os="windows", arch="x64", os_version="10.0.22631")
