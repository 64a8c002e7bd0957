"""
1ES pipeline template generation.

This module writes Azure Pipelines YAML files that extend the 1ES pipeline
templates (the "Start Right" layout): a CI pipeline on the default branch,
a PR validation pipeline and an official build.
"""

from pathlib import Path
from typing import List, Optional
import logging

from slbootstrap.config.parser import PipelineTemplate
from slbootstrap.project.loops import loop_language

logger = logging.getLogger(__name__)

TEMPLATES_REPOSITORY = "1ESPipelineTemplates"
UNOFFICIAL_TEMPLATE = "v1/1ES.Unofficial.PipelineTemplate.yml@1ESPipelineTemplates"
OFFICIAL_TEMPLATE = "v1/1ES.Official.PipelineTemplate.yml@1ESPipelineTemplates"
DEFAULT_POOL = "Azure-Pipelines-1ESPT-ExDShared"

DEFAULT_TEMPLATES = [
    PipelineTemplate(name="ci", file="ci.yml", trigger="ci"),
    PipelineTemplate(name="pr", file="pr.yml", trigger="pr"),
    PipelineTemplate(name="official", file="official.yml", trigger="official"),
]


class PipelineTemplateGenerator:
    """Generate 1ES Azure Pipelines YAML for a scaffolded project."""

    def __init__(
        self,
        project_root: Path,
        folder: str = ".pipelines",
        pool: str = DEFAULT_POOL,
        dry_run: bool = False,
    ):
        """
        Initialize the template generator.

        Args:
            project_root: Root directory of the project
            folder: Folder (relative to the root) receiving the YAML files
            pool: 1ES hosted pool name
            dry_run: Log the files that would be written without writing them
        """
        self.project_root = Path(project_root)
        self.folder = folder
        self.pool = pool
        self.dry_run = dry_run
        logger.debug(f"Initialized PipelineTemplateGenerator for {project_root}")

    @property
    def pipelines_dir(self) -> Path:
        return self.project_root / self.folder

    def generate(
        self,
        loop: str,
        loop_platform: str,
        branch: str = "main",
        templates: Optional[List[PipelineTemplate]] = None,
        force: bool = False,
    ) -> List[Path]:
        """
        Write one YAML file per template.

        Existing files are kept unless ``force`` is set.

        Args:
            loop: Loop the project was created from (selects build steps)
            loop_platform: 'linux' or 'windows' (selects the pool image)
            branch: Default branch for triggers
            templates: Templates to render (default: ci, pr, official)
            force: Overwrite existing files

        Returns:
            Paths of the files written (or that would be written)
        """
        templates = templates or DEFAULT_TEMPLATES
        written: List[Path] = []

        for template in templates:
            target = self.pipelines_dir / template.file
            if target.exists() and not force:
                logger.info(f"Keeping existing pipeline file {target}")
                continue

            content = self.render(template, loop, loop_platform, branch)
            if self.dry_run:
                logger.info(f"WHAT-IF: would write {target}")
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
                logger.info(f"Pipeline template created at {target}")
            written.append(target)

        return written

    def render(
        self,
        template: PipelineTemplate,
        loop: str,
        loop_platform: str,
        branch: str = "main",
    ) -> str:
        """Render the YAML for a single template."""
        if template.trigger == "pr":
            trigger = f"""trigger: none

pr:
  branches:
    include:
      - {branch}
"""
        else:
            trigger = f"""trigger:
  branches:
    include:
      - {branch}

pr: none
"""

        extends = OFFICIAL_TEMPLATE if template.trigger == "official" else UNOFFICIAL_TEMPLATE
        os_name = "windows" if loop_platform == "windows" else "linux"
        image = "windows-latest" if os_name == "windows" else "ubuntu-latest"

        steps = self._build_steps(loop, os_name)
        publish = ""
        if template.trigger == "official":
            publish = """
            templateContext:
              outputs:
                - output: pipelineArtifact
                  targetPath: $(Build.ArtifactStagingDirectory)
                  artifactName: drop"""

        return f"""# {template.name} pipeline generated by strangeloop-bootstrap

{trigger}
resources:
  repositories:
    - repository: {TEMPLATES_REPOSITORY}
      type: git
      name: 1ESPipelineTemplates/1ESPipelineTemplates
      ref: refs/tags/release

extends:
  template: {extends}
  parameters:
    pool:
      name: {self.pool}
      image: {image}
      os: {os_name}
    sdl:
      sourceAnalysisPool:
        name: {self.pool}
        image: windows-latest
        os: windows
    stages:
      - stage: Build
        jobs:
          - job: Build
            displayName: Build and test{publish}
            steps:
{steps}"""

    def _build_steps(self, loop: str, os_name: str) -> str:
        indent = " " * 14
        if loop_language(loop) == "csharp":
            lines = [
                "- task: UseDotNet@2",
                "  inputs:",
                "    packageType: sdk",
                "    version: 8.x",
                "- script: dotnet restore",
                "  displayName: Restore",
                "- script: dotnet build --configuration Release --no-restore",
                "  displayName: Build",
                "- script: dotnet test --configuration Release --no-build",
                "  displayName: Test",
                "- script: dotnet publish --configuration Release --no-build "
                "--output $(Build.ArtifactStagingDirectory)",
                "  displayName: Publish",
            ]
        else:
            lines = [
                "- task: UsePythonVersion@0",
                "  inputs:",
                "    versionSpec: '3.12'",
                "- script: python -m pip install --upgrade pip poetry",
                "  displayName: Install Poetry",
                "- script: poetry install --no-interaction",
                "  displayName: Install dependencies",
                "- script: poetry run pytest",
                "  displayName: Run tests",
                "- script: poetry build --output $(Build.ArtifactStagingDirectory)",
                "  displayName: Build package",
            ]
        return "".join(f"{indent}{line}\n" for line in lines)
