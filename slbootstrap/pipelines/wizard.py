"""
Interactive collection of Azure DevOps settings.

Values come from command-line flags first, then from the project's git
remote, and finally from prompts for whatever is still missing.
"""

import logging
import re
from dataclasses import replace
from typing import Optional
from urllib.parse import unquote

from slbootstrap.cli.utils import prompt_value
from slbootstrap.core.exceptions import PipelineError
from slbootstrap.core.process import CommandRunner
from slbootstrap.pipelines.azure_devops import AzureDevOpsSettings

logger = logging.getLogger(__name__)

_REMOTE_PATTERNS = [
    # https://[user@]dev.azure.com/org/project/_git/repo
    re.compile(
        r"^https?://(?:[^@/]+@)?dev\.azure\.com/(?P<org>[^/]+)/"
        r"(?P<project>[^/]+)/_git/(?P<repo>[^/?#]+)"
    ),
    # https://org.visualstudio.com/[DefaultCollection/]project/_git/repo
    re.compile(
        r"^https?://(?:[^@/]+@)?(?P<org>[^./]+)\.visualstudio\.com/(?:DefaultCollection/)?"
        r"(?P<project>[^/]+)/_git/(?P<repo>[^/?#]+)"
    ),
    # git@ssh.dev.azure.com:v3/org/project/repo
    re.compile(
        r"^[^@]+@ssh\.dev\.azure\.com:v3/"
        r"(?P<org>[^/]+)/(?P<project>[^/]+)/(?P<repo>[^/]+)$"
    ),
    # org@vs-ssh.visualstudio.com:v3/org/project/repo
    re.compile(
        r"^[^@]+@vs-ssh\.visualstudio\.com:v3/"
        r"(?P<org>[^/]+)/(?P<project>[^/]+)/(?P<repo>[^/]+)$"
    ),
]


def parse_remote_url(url: str) -> Optional[AzureDevOpsSettings]:
    """Azure DevOps organization/project/repository from a git remote URL."""
    url = url.strip()
    for pattern in _REMOTE_PATTERNS:
        match = pattern.match(url)
        if match:
            repo = match.group("repo")
            if repo.endswith(".git"):
                repo = repo[:-4]
            return AzureDevOpsSettings(
                organization=unquote(match.group("org")),
                project=unquote(match.group("project")),
                repository=unquote(repo),
            )
    return None


def infer_from_git_remote(
    path: str, runner: CommandRunner, remote: str = "origin"
) -> Optional[AzureDevOpsSettings]:
    """
    Settings inferred from the project's git remote, if it is Azure DevOps.

    Args:
        path: Repository path (as seen by the runner)
        runner: Runner on the host holding the repository
        remote: Remote name
    """
    result = runner.run(["git", "-C", path, "remote", "get-url", remote], mutating=False)
    if not result.ok:
        logger.debug(f"No git remote '{remote}' in {path}")
        return None

    settings = parse_remote_url(result.stdout)
    if settings is None:
        logger.debug(f"Remote {result.stdout.strip()} is not an Azure DevOps repository")
    return settings


def merge_settings(
    explicit: AzureDevOpsSettings, inferred: Optional[AzureDevOpsSettings]
) -> AzureDevOpsSettings:
    """Fill unset explicit values from inferred ones."""
    if inferred is None:
        return explicit
    return replace(
        explicit,
        organization=explicit.organization or inferred.organization,
        project=explicit.project or inferred.project,
        repository=explicit.repository or inferred.repository,
    )


def prompt_settings(
    defaults: AzureDevOpsSettings, interactive: bool = True, project_flag: str = "--project"
) -> AzureDevOpsSettings:
    """
    Ask for every missing Azure DevOps setting.

    ``project_flag`` is the option that sets the project on the calling command.

    Raises:
        PipelineError: If values are still missing (non-interactive runs)
    """
    settings = replace(defaults)
    if interactive:
        if not settings.organization:
            settings.organization = prompt_value("Azure DevOps organization (name or URL)")
        if not settings.project:
            settings.project = prompt_value("Azure DevOps project")
        if not settings.repository:
            settings.repository = prompt_value("Repository name")
        settings.branch = prompt_value("Default branch", settings.branch) or "main"

    missing = settings.missing()
    if missing:
        flags = ", ".join(project_flag if name == "project" else f"--{name}" for name in missing)
        raise PipelineError(f"Missing Azure DevOps settings; pass {flags}")
    return settings
