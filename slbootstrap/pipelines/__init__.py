"""
Azure DevOps pipelines

1ES pipeline templates and concurrent pipeline creation.
"""

from slbootstrap.pipelines.azure_devops import (
    AzureDevOpsClient,
    AzureDevOpsSettings,
    PipelineDefinition,
    PipelineResult,
    create_pipelines,
    definitions_from_templates,
    setup_pipelines,
)
from slbootstrap.pipelines.templates import PipelineTemplateGenerator
from slbootstrap.pipelines.wizard import (
    infer_from_git_remote,
    merge_settings,
    parse_remote_url,
    prompt_settings,
)

__all__ = [
    "AzureDevOpsClient",
    "AzureDevOpsSettings",
    "PipelineDefinition",
    "PipelineResult",
    "PipelineTemplateGenerator",
    "create_pipelines",
    "definitions_from_templates",
    "setup_pipelines",
    "infer_from_git_remote",
    "merge_settings",
    "parse_remote_url",
    "prompt_settings",
]
