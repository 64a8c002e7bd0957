"""
Azure DevOps pipeline creation.

Pipelines are created with the ``azure-devops`` extension of the Azure CLI
(``az pipelines create``). Repository lookups go straight to the Azure
DevOps REST API with a token obtained from ``az account get-access-token``.
Creation of several pipelines runs concurrently with a bounded thread pool.
"""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import quote

import requests

from slbootstrap.core.exceptions import BootstrapError, PipelineError
from slbootstrap.core.process import CommandRunner

logger = logging.getLogger(__name__)

# Azure DevOps resource ID for Entra ID access tokens
AZURE_DEVOPS_RESOURCE = "499b84ac-1321-427f-aa17-267ca6975798"
API_VERSION = "7.1"
DEFAULT_MAX_PARALLEL = 4
CREATE_TIMEOUT = 300


@dataclass
class AzureDevOpsSettings:
    """Target of pipeline creation."""

    organization: Optional[str] = None
    project: Optional[str] = None
    repository: Optional[str] = None
    branch: str = "main"

    @property
    def organization_url(self) -> str:
        """Organization as a URL (bare names map to dev.azure.com)."""
        org = (self.organization or "").rstrip("/")
        if org.startswith(("http://", "https://")):
            return org
        return f"https://dev.azure.com/{org}"

    def missing(self) -> List[str]:
        """Names of required fields without a value."""
        return [
            name
            for name in ("organization", "project", "repository")
            if not getattr(self, name)
        ]

    def is_complete(self) -> bool:
        return not self.missing()


@dataclass
class PipelineDefinition:
    """A pipeline to create from a YAML file in the repository."""

    name: str
    yaml_path: str
    folder: Optional[str] = None


@dataclass
class PipelineResult:
    """Outcome of creating one pipeline."""

    name: str
    success: bool
    pipeline_id: Optional[int] = None
    url: Optional[str] = None
    message: str = ""
    skipped: bool = False


class AzureDevOpsClient:
    """Azure DevOps operations used for pipeline wiring."""

    def __init__(
        self,
        runner: CommandRunner,
        settings: AzureDevOpsSettings,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        self.runner = runner
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_lock = threading.Lock()

    def _scope_args(self) -> List[str]:
        return [
            "--organization",
            self.settings.organization_url,
            "--project",
            self.settings.project or "",
        ]

    def ensure_extension(self) -> None:
        """Install the azure-devops CLI extension if it is missing."""
        show = self.runner.run(
            ["az", "extension", "show", "--name", "azure-devops", "-o", "none"],
            mutating=False,
        )
        if show.ok:
            logger.debug("azure-devops extension already installed")
            return

        logger.info("Installing Azure CLI extension azure-devops")
        add = self.runner.run(
            ["az", "extension", "add", "--name", "azure-devops", "--yes"],
            timeout=CREATE_TIMEOUT,
        )
        if not add.ok:
            raise PipelineError(
                f"Failed to install the azure-devops extension: {add.stderr.strip()}"
            )

    def get_access_token(self) -> str:
        """
        Access token for the Azure DevOps REST API.

        Raises:
            PipelineError: If the Azure CLI is not logged in
        """
        with self._token_lock:
            if self._token:
                return self._token

            result = self.runner.run(
                [
                    "az",
                    "account",
                    "get-access-token",
                    "--resource",
                    AZURE_DEVOPS_RESOURCE,
                    "--query",
                    "accessToken",
                    "-o",
                    "tsv",
                ],
                mutating=False,
            )
            token = result.stdout.strip()
            if not result.ok or not token:
                raise PipelineError(
                    "Could not obtain an Azure DevOps access token. Run 'az login' first."
                )
            self._token = token
            return token

    def repository_exists(self) -> bool:
        """Check that the repository exists in the project (REST API)."""
        settings = self.settings
        url = (
            f"{settings.organization_url}/{quote(settings.project or '')}"
            f"/_apis/git/repositories/{quote(settings.repository or '')}"
        )
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Accept": "application/json",
        }

        try:
            response = self.session.get(
                url,
                headers=headers,
                params={"api-version": API_VERSION},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PipelineError(f"Azure DevOps request failed: {e}") from e

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise PipelineError(
            f"Azure DevOps returned HTTP {response.status_code} for repository "
            f"'{settings.repository}'"
        )

    def pipeline_exists(self, name: str) -> bool:
        result = self.runner.run(
            ["az", "pipelines", "list", "--name", name, "--query", "[0].id", "-o", "tsv"]
            + self._scope_args(),
            mutating=False,
        )
        return result.ok and bool(result.stdout.strip())

    def create_pipeline(self, definition: PipelineDefinition) -> PipelineResult:
        """
        Create a pipeline from a YAML file without queuing a first run.

        A pipeline that already exists is reported as a skipped success.
        """
        if self.pipeline_exists(definition.name):
            logger.info(f"Pipeline {definition.name} already exists")
            return PipelineResult(
                name=definition.name,
                success=True,
                message="already exists",
                skipped=True,
            )

        args = [
            "az",
            "pipelines",
            "create",
            "--name",
            definition.name,
            "--repository",
            self.settings.repository or "",
            "--repository-type",
            "tfsgit",
            "--branch",
            self.settings.branch,
            "--yml-path",
            definition.yaml_path,
            "--skip-first-run",
            "true",
            "-o",
            "json",
        ]
        if definition.folder:
            args += ["--folder-path", definition.folder]
        args += self._scope_args()

        result = self.runner.run(args, timeout=CREATE_TIMEOUT)
        if not result.ok:
            return PipelineResult(
                name=definition.name,
                success=False,
                message=result.stderr.strip() or f"exit code {result.returncode}",
            )
        if result.dry_run:
            return PipelineResult(name=definition.name, success=True, message="what-if")

        pipeline_id, url = _parse_created_pipeline(result.stdout)
        return PipelineResult(
            name=definition.name,
            success=True,
            pipeline_id=pipeline_id,
            url=url,
            message="created",
        )


def _parse_created_pipeline(output: str):
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        logger.debug("az pipelines create returned non-JSON output")
        return None, None
    if not isinstance(data, dict):
        logger.debug("az pipelines create returned unexpected JSON")
        return None, None

    pipeline_id = data.get("id")
    links = data.get("_links") or {}
    url = (links.get("web") or {}).get("href") or data.get("url")
    return pipeline_id, url


def definitions_from_templates(
    templates, project_name: str, folder: str = ".pipelines"
) -> List[PipelineDefinition]:
    """Pipeline definitions for generated template files."""
    return [
        PipelineDefinition(
            name=f"{project_name}-{template.name}",
            yaml_path=f"/{folder.strip('/')}/{template.file}",
            folder=f"\\{project_name}",
        )
        for template in templates
    ]


def create_pipelines(
    client: AzureDevOpsClient,
    definitions: Sequence[PipelineDefinition],
    max_parallel: int = DEFAULT_MAX_PARALLEL,
) -> List[PipelineResult]:
    """
    Create pipelines concurrently.

    At most ``max_parallel`` creations run at once. Jobs are independent: a
    failure is reported in its own result and does not cancel the others.

    Returns:
        One result per definition, sorted by pipeline name
    """
    if not definitions:
        return []

    workers = max(1, min(max_parallel, len(definitions)))
    logger.info(f"Creating {len(definitions)} pipelines ({workers} in parallel)")

    results: List[PipelineResult] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(client.create_pipeline, definition): definition
            for definition in definitions
        }
        for future in as_completed(futures):
            definition = futures[future]
            try:
                result = future.result()
            except BootstrapError as e:
                result = PipelineResult(name=definition.name, success=False, message=str(e))
            except Exception as e:
                logger.debug(f"Pipeline {definition.name} creation crashed", exc_info=True)
                result = PipelineResult(name=definition.name, success=False, message=str(e))
            level = logging.INFO if result.success else logging.ERROR
            logger.log(level, f"Pipeline {result.name}: {result.message}")
            results.append(result)

    return sorted(results, key=lambda r: r.name)


def setup_pipelines(
    client: AzureDevOpsClient,
    project_name: str,
    templates,
    folder: str = ".pipelines",
    max_parallel: int = DEFAULT_MAX_PARALLEL,
) -> List[PipelineResult]:
    """
    Create one Azure DevOps pipeline per generated template.

    Raises:
        PipelineError: Missing extension, no access token, or the repository
            does not exist in the project
    """
    client.ensure_extension()

    if not client.runner.dry_run and not client.repository_exists():
        settings = client.settings
        raise PipelineError(
            f"Repository '{settings.repository}' not found in "
            f"{settings.organization_url}/{settings.project}. "
            "Push the project to Azure Repos, then run 'slboot pipelines'."
        )

    definitions = definitions_from_templates(templates, project_name, folder)
    return create_pipelines(client, definitions, max_parallel=max_parallel)
