"""
Phase 3: project bootstrap.

Selects a loop, scaffolds the project with ``strangeloop init``, creates the
Git repository, generates and registers 1ES pipelines and configures VS Code.
"""

import logging
from typing import Dict

from slbootstrap.cli.utils import prompt_value
from slbootstrap.core.exceptions import PipelineError, StageError
from slbootstrap.core.platform import LINUX, WINDOWS
from slbootstrap.ide.vscode import VSCodeIntegrator, open_in_vscode
from slbootstrap.phases.base import (
    PhaseHandler,
    StageMethod,
    StageResult,
    skipped,
    succeeded,
    warned,
)
from slbootstrap.phases.context import PhaseContext
from slbootstrap.pipelines.azure_devops import (
    AzureDevOpsClient,
    AzureDevOpsSettings,
    setup_pipelines,
)
from slbootstrap.pipelines.templates import DEFAULT_TEMPLATES, PipelineTemplateGenerator
from slbootstrap.pipelines.wizard import (
    infer_from_git_remote,
    merge_settings,
    prompt_settings,
)
from slbootstrap.project.loops import LoopCatalog
from slbootstrap.project.scaffold import ProjectScaffolder

logger = logging.getLogger(__name__)


class ProjectBootstrapPhase(PhaseHandler):
    number = 3

    def stage_methods(self) -> Dict[str, StageMethod]:
        return {
            "loop-selection": self.loop_selection,
            "project-init": self.project_init,
            "git-init": self.git_init,
            "pipelines": self.pipelines,
            "vscode": self.vscode,
        }

    # ------------------------------------------------------------------
    # Loop selection
    # ------------------------------------------------------------------

    def _menu_platform(self, context: PhaseContext):
        if not context.platform.is_windows:
            return LINUX
        if context.options.no_wsl:
            return WINDOWS
        return None

    def select_loop(self, context: PhaseContext) -> str:
        """
        Resolve the loop and its family into the context.

        Raises:
            ProjectError: Unknown loop or no loop in non-interactive mode
            StageError: Loop family cannot run on this host
        """
        catalog = LoopCatalog(context.runner, context.config)
        loop = catalog.select_loop(
            context.options.loop_name,
            self._menu_platform(context),
            interactive=context.interactive,
        )
        family = context.config.platform_for_loop(loop) or context.platform.loop_platform()

        if family == WINDOWS and not context.platform.is_windows:
            raise StageError(f"Loop {loop} targets Windows and needs a Windows host")
        if family == LINUX and context.platform.is_windows and context.options.no_wsl:
            raise StageError(f"Loop {loop} targets Linux and needs WSL (drop --no-wsl)")

        context.loop = loop
        context.loop_platform = family
        return loop

    def loop_selection(self, context: PhaseContext) -> StageResult:
        if context.check_only and not context.options.loop_name:
            return skipped("No loop requested (check-only)")
        loop = self.select_loop(context)
        return succeeded(f"Loop {loop} ({context.loop_platform})")

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    def project_init(self, context: PhaseContext) -> StageResult:
        if context.check_only:
            return skipped("Project not created (check-only)")
        if context.loop is None:
            self.select_loop(context)

        name = context.options.project_name
        if not name and context.interactive:
            name = prompt_value("Project name")
        if not name:
            raise StageError("No project name given; pass --project-name")

        scaffolder = ProjectScaffolder(context.project_runner())
        project = scaffolder.create(
            context.loop,
            name,
            parent=context.options.project_path,
            platform=context.loop_platform,
            force=context.options.force,
        )
        context.project = project

        if context.persists_state:
            context.state.record_project(project.path, project.loop)
        return succeeded(f"Created {project.name} at {project.path} [{project.target}]")

    def git_init(self, context: PhaseContext) -> StageResult:
        if context.options.no_git:
            return skipped("Git initialization disabled (--no-git)")
        if context.project is None:
            return skipped("No project created in this run")

        scaffolder = ProjectScaffolder(context.project_runner())
        actions = scaffolder.initialize_git(context.project)
        return succeeded("; ".join(actions))

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def pipelines(self, context: PhaseContext) -> StageResult:
        if context.project is None:
            return skipped("No project created in this run")

        project = context.project
        settings = context.config.pipelines
        generator = PipelineTemplateGenerator(
            context.local_project_root(),
            folder=settings.folder,
            dry_run=context.what_if,
        )
        written = generator.generate(
            project.loop,
            project.platform,
            branch=context.options.branch,
            templates=settings.templates or None,
        )
        summary = f"{len(written)} pipeline file(s) in {settings.folder}"

        explicit = AzureDevOpsSettings(
            organization=context.options.organization,
            project=context.options.devops_project,
            repository=context.options.repository,
            branch=context.options.branch,
        )
        inferred = infer_from_git_remote(project.path, context.project_runner())
        devops = merge_settings(explicit, inferred)

        if not devops.is_complete() and not context.interactive:
            return warned(
                f"{summary}; Azure DevOps pipelines not created "
                "(pass --organization, --devops-project and --repository)"
            )

        try:
            devops = prompt_settings(
                devops, interactive=context.interactive, project_flag="--devops-project"
            )
            client = AzureDevOpsClient(context.runner, devops)
            results = setup_pipelines(
                client,
                project.name,
                settings.templates or DEFAULT_TEMPLATES,
                folder=settings.folder,
                max_parallel=context.options.max_parallel or settings.max_parallel,
            )
        except PipelineError as e:
            return warned(f"{summary}; {e}")

        failed = [r.name for r in results if not r.success]
        if failed:
            raise StageError(f"Pipeline creation failed: {', '.join(failed)}")
        return succeeded(f"{summary}; {len(results)} pipeline(s) registered")

    # ------------------------------------------------------------------
    # VS Code
    # ------------------------------------------------------------------

    def vscode(self, context: PhaseContext) -> StageResult:
        if context.options.no_vscode:
            return skipped("VS Code integration disabled (--no-vscode)")
        if context.project is None:
            return skipped("No project created in this run")

        project = context.project
        root = context.local_project_root()
        if context.what_if:
            logger.info(f"WHAT-IF: would write VS Code settings under {root / '.vscode'}")
        else:
            VSCodeIntegrator(root).configure_workspace(
                project.loop,
                project.platform,
                remote_wsl=project.in_wsl,
                pipelines_folder=context.config.pipelines.folder,
            )

        distro = context.wsl_distro if project.in_wsl else None
        if not open_in_vscode(project.path, context.platform, context.runner, distro):
            return warned("VS Code configured but could not be launched")
        return succeeded(f"VS Code configured for {project.name}")

