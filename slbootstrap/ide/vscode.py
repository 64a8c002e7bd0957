"""
VS Code workspace generator

This module generates .vscode/settings.json and .vscode/extensions.json for
projects scaffolded from strangeloop loops, and opens the project in VS Code
(through the Remote - WSL extension when the project lives in WSL).
"""

import json
import logging
from pathlib import Path, PureWindowsPath
from typing import Any, Dict, List, Optional

from slbootstrap.core.platform import PlatformInfo
from slbootstrap.core.process import CommandRunner
from slbootstrap.project.loops import loop_language

logger = logging.getLogger(__name__)

BASE_EXTENSIONS = [
    "ms-azure-devops.azure-pipelines",
    "ms-azuretools.vscode-docker",
    "redhat.vscode-yaml",
]
PYTHON_EXTENSIONS = ["ms-python.python", "ms-python.vscode-pylance"]
DOTNET_EXTENSIONS = ["ms-dotnettools.csdevkit"]
WSL_EXTENSION = "ms-vscode-remote.remote-wsl"


def wsl_unc_path(distro: str, linux_path: str) -> Path:
    """Windows UNC path (\\\\wsl.localhost\\<distro>\\...) for a path inside WSL."""
    parts = [p for p in linux_path.split("/") if p]
    return Path(str(PureWindowsPath(f"//wsl.localhost/{distro}/", *parts)))


class VSCodeIntegrator:
    """
    Generate VS Code configuration for strangeloop projects.

    Existing user settings are preserved; only the keys this tool owns are
    updated.

    Example:
        >>> integrator = VSCodeIntegrator(Path('/home/me/projects/my-api'))
        >>> integrator.configure_workspace(loop='python-fast-api-linux',
        ...                                loop_platform='linux')
    """

    def __init__(self, project_root: Path):
        """
        Initialize VS Code integrator.

        Args:
            project_root: Project root directory
        """
        self.project_root = Path(project_root)
        self.vscode_dir = self.project_root / ".vscode"
        logger.debug(f"Initialized VS Code integrator for {self.project_root}")

    def generate_settings(
        self,
        loop_platform: str,
        python_path: Optional[str] = None,
        loop: str = "",
        pipelines_folder: str = ".pipelines",
    ) -> Path:
        """
        Generate or update .vscode/settings.json.

        Args:
            loop_platform: 'linux' or 'windows'
            python_path: Interpreter path; defaults to the project .venv
            loop: Loop the project was created from
            pipelines_folder: Folder holding Azure Pipelines YAML

        Returns:
            Path to settings.json
        """
        self.vscode_dir.mkdir(parents=True, exist_ok=True)
        settings_file = self.vscode_dir / "settings.json"

        existing = self._load_existing_settings(settings_file)
        logger.debug(f"Loaded {len(existing)} existing settings")

        generated = self._create_settings(
            loop_platform, python_path, loop, pipelines_folder
        )
        merged = self._merge_settings(existing, generated)

        self._write_json(settings_file, merged)
        logger.info(f"Generated VS Code settings: {settings_file}")
        return settings_file

    def _load_existing_settings(self, settings_file: Path) -> Dict:
        """
        Load existing .vscode/settings.json if it exists.

        Returns an empty dict for missing or unparsable files.
        """
        if not settings_file.exists():
            return {}

        try:
            with open(settings_file, "r", encoding="utf-8") as f:
                settings = json.load(f)
            return settings if isinstance(settings, dict) else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse existing settings.json: {e}")
            logger.warning("Creating new settings file")
            return {}
        except OSError as e:
            logger.warning(f"Error reading settings.json: {e}")
            return {}

    def _create_settings(
        self,
        loop_platform: str,
        python_path: Optional[str],
        loop: str,
        pipelines_folder: str,
    ) -> Dict[str, Any]:
        settings: Dict[str, Any] = {
            "files.associations": {
                f"{pipelines_folder}/*.yml": "azure-pipelines",
            },
            "files.trimTrailingWhitespace": True,
            "files.insertFinalNewline": True,
        }

        if loop_platform == "linux":
            settings["files.eol"] = "\n"

        if python_path or loop_language(loop) != "csharp":
            if python_path:
                interpreter = python_path
            elif loop_platform == "windows":
                interpreter = "${workspaceFolder}\\.venv\\Scripts\\python.exe"
            else:
                interpreter = "${workspaceFolder}/.venv/bin/python"
            settings.update(
                {
                    "python.defaultInterpreterPath": interpreter,
                    "python.terminal.activateEnvironment": True,
                    "python.testing.pytestEnabled": True,
                    "python.testing.unittestEnabled": False,
                }
            )

        return settings

    def _merge_settings(self, existing: Dict, new: Dict) -> Dict:
        """
        Merge generated settings into existing settings.

        Generated keys win; dictionary-valued keys (files.associations) are
        merged one level deep so user entries survive.
        """
        merged = existing.copy()

        for key, value in new.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                combined = dict(merged[key])
                combined.update(value)
                merged[key] = combined
            else:
                merged[key] = value

        return merged

    def _write_json(self, path: Path, data: Dict):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4, ensure_ascii=False)
            f.write("\n")
        logger.debug(f"Wrote {path}")

    def get_recommended_extensions(self, loop: str, remote_wsl: bool = False) -> List[str]:
        """
        Recommended extension IDs for a loop.

        Args:
            loop: Loop name
            remote_wsl: Project is opened from Windows inside WSL
        """
        extensions = list(BASE_EXTENSIONS)
        if loop_language(loop) == "csharp":
            extensions = DOTNET_EXTENSIONS + extensions
        else:
            extensions = PYTHON_EXTENSIONS + extensions
        if remote_wsl:
            extensions.append(WSL_EXTENSION)
        return extensions

    def generate_extensions_json(self, loop: str, remote_wsl: bool = False) -> Path:
        """
        Generate .vscode/extensions.json, keeping existing recommendations.
        """
        self.vscode_dir.mkdir(parents=True, exist_ok=True)
        extensions_file = self.vscode_dir / "extensions.json"

        existing: List[str] = []
        if extensions_file.exists():
            try:
                data = json.loads(extensions_file.read_text(encoding="utf-8"))
                existing = list(data.get("recommendations", []))
            except (json.JSONDecodeError, AttributeError) as e:
                logger.warning(f"Replacing unreadable extensions.json: {e}")

        recommendations = existing + [
            ext
            for ext in self.get_recommended_extensions(loop, remote_wsl)
            if ext not in existing
        ]
        self._write_json(extensions_file, {"recommendations": recommendations})

        logger.info(f"Generated VS Code extensions.json: {extensions_file}")
        return extensions_file

    def configure_workspace(
        self,
        loop: str,
        loop_platform: str,
        remote_wsl: bool = False,
        python_path: Optional[str] = None,
        pipelines_folder: str = ".pipelines",
    ) -> Dict[str, Path]:
        """
        Generate all VS Code files.

        Returns:
            Mapping of file kind to written path
        """
        return {
            "settings": self.generate_settings(
                loop_platform, python_path, loop, pipelines_folder
            ),
            "extensions": self.generate_extensions_json(loop, remote_wsl),
        }


def open_in_vscode(
    project_path: str,
    platform: PlatformInfo,
    runner: CommandRunner,
    wsl_distro: Optional[str] = None,
) -> bool:
    """
    Open a project in VS Code.

    Args:
        project_path: Project path (a Linux path when wsl_distro is set)
        platform: Host platform
        runner: Local runner on the host where VS Code is installed
        wsl_distro: WSL distribution holding the project (Windows hosts only)

    Returns:
        True if VS Code was launched (or would be, in what-if mode)
    """
    if not runner.dry_run and not runner.which("code"):
        logger.warning("VS Code 'code' command not found on PATH; open the project manually")
        return False

    if wsl_distro and platform.is_windows:
        args = ["code", "--remote", f"wsl+{wsl_distro}", project_path]
    else:
        args = ["code", project_path]

    result = runner.run(args, timeout=60)
    if not result.ok:
        logger.warning(f"Failed to launch VS Code: {result.stderr.strip()}")
        return False
    return True
