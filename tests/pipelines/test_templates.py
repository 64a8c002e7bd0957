"""
Tests for 1ES pipeline YAML generation.
"""

import yaml

from slbootstrap.config.parser import PipelineTemplate
from slbootstrap.pipelines.templates import (
    DEFAULT_POOL,
    OFFICIAL_TEMPLATE,
    UNOFFICIAL_TEMPLATE,
    PipelineTemplateGenerator,
)


def load(path):
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def build_job(document):
    return document["extends"]["parameters"]["stages"][0]["jobs"][0]


class TestPipelineTemplateGenerator:
    """Tests for PipelineTemplateGenerator."""

    def test_generates_default_templates(self, tmp_path):
        written = PipelineTemplateGenerator(tmp_path).generate("python-cli", "linux")

        assert [p.name for p in written] == ["ci.yml", "pr.yml", "official.yml"]
        assert all(p.parent == tmp_path / ".pipelines" for p in written)
        assert all(p.exists() for p in written)

    def test_ci_pipeline(self, tmp_path):
        PipelineTemplateGenerator(tmp_path).generate("python-cli", "linux", branch="develop")
        ci = load(tmp_path / ".pipelines" / "ci.yml")

        assert ci["trigger"] == {"branches": {"include": ["develop"]}}
        assert ci["pr"] == "none"
        assert ci["extends"]["template"] == UNOFFICIAL_TEMPLATE
        assert ci["resources"]["repositories"][0]["repository"] == "1ESPipelineTemplates"

        pool = ci["extends"]["parameters"]["pool"]
        assert pool == {"name": DEFAULT_POOL, "image": "ubuntu-latest", "os": "linux"}

    def test_pr_pipeline(self, tmp_path):
        PipelineTemplateGenerator(tmp_path).generate("python-cli", "linux")
        pr = load(tmp_path / ".pipelines" / "pr.yml")

        assert pr["trigger"] == "none"
        assert pr["pr"] == {"branches": {"include": ["main"]}}

    def test_official_pipeline_publishes_artifact(self, tmp_path):
        PipelineTemplateGenerator(tmp_path).generate("python-cli", "linux")
        official = load(tmp_path / ".pipelines" / "official.yml")

        assert official["extends"]["template"] == OFFICIAL_TEMPLATE
        outputs = build_job(official)["templateContext"]["outputs"]
        assert outputs[0]["output"] == "pipelineArtifact"

    def test_python_steps(self, tmp_path):
        PipelineTemplateGenerator(tmp_path).generate("python-fast-api-linux", "linux")
        steps = build_job(load(tmp_path / ".pipelines" / "ci.yml"))["steps"]

        assert steps[0]["task"] == "UsePythonVersion@0"
        assert any(step.get("script") == "poetry run pytest" for step in steps)

    def test_dotnet_steps_on_windows(self, tmp_path):
        PipelineTemplateGenerator(tmp_path).generate("csharp-dotnet-webapi-windows", "windows")
        ci = load(tmp_path / ".pipelines" / "ci.yml")
        steps = build_job(ci)["steps"]

        assert steps[0]["task"] == "UseDotNet@2"
        assert ci["extends"]["parameters"]["pool"]["os"] == "windows"
        assert ci["extends"]["parameters"]["pool"]["image"] == "windows-latest"

    def test_existing_files_kept(self, tmp_path):
        folder = tmp_path / ".pipelines"
        folder.mkdir()
        (folder / "ci.yml").write_text("# custom\n", encoding="utf-8")

        written = PipelineTemplateGenerator(tmp_path).generate("python-cli", "linux")

        assert [p.name for p in written] == ["pr.yml", "official.yml"]
        assert (folder / "ci.yml").read_text(encoding="utf-8") == "# custom\n"

    def test_force_overwrites(self, tmp_path):
        folder = tmp_path / ".pipelines"
        folder.mkdir()
        (folder / "ci.yml").write_text("# custom\n", encoding="utf-8")

        PipelineTemplateGenerator(tmp_path).generate("python-cli", "linux", force=True)

        assert "extends" in load(folder / "ci.yml")

    def test_dry_run_writes_nothing(self, tmp_path):
        written = PipelineTemplateGenerator(tmp_path, dry_run=True).generate("python-cli", "linux")

        assert len(written) == 3
        assert not (tmp_path / ".pipelines").exists()

    def test_custom_templates_and_folder(self, tmp_path):
        templates = [PipelineTemplate(name="nightly", file="nightly.yml", trigger="ci")]
        generator = PipelineTemplateGenerator(tmp_path, folder="build/pipelines", pool="MyPool")

        written = generator.generate("python-cli", "linux", templates=templates)

        assert written == [tmp_path / "build" / "pipelines" / "nightly.yml"]
        document = load(written[0])
        assert document["extends"]["parameters"]["pool"]["name"] == "MyPool"
