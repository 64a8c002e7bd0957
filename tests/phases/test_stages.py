"""
Tests for the stage handlers of the three setup phases.

Every command goes through FakeRunner; Windows-host cases only exercise
paths that stay on the host runner.
"""

import json
from unittest.mock import patch

import pytest

from slbootstrap.core.exceptions import PhaseError, PipelineError, ProjectError, StageError
from slbootstrap.core.process import WSLCommandRunner
from slbootstrap.phases.base import SKIPPED, SUCCESS, WARNING
from slbootstrap.phases.bootstrap import ProjectBootstrapPhase
from slbootstrap.phases.context import PhaseContext
from slbootstrap.phases.core import CorePrerequisitesPhase
from slbootstrap.phases.environment import EnvironmentPhase
from slbootstrap.phases.plan import SetupOptions
from slbootstrap.pipelines.azure_devops import PipelineResult
from slbootstrap.project.scaffold import ProjectInfo

ACCOUNT_SHOW = ["az", "account", "show", "--output", "json"]


@pytest.fixture
def make_context(bootstrap_config, linux_platform, fake_runner, state_manager):
    def factory(platform=None, runner=None, **options):
        options.setdefault("assume_yes", True)
        return PhaseContext(
            config=bootstrap_config,
            platform=platform or linux_platform,
            runner=runner or fake_runner,
            options=SetupOptions(**options),
            state=state_manager,
        )

    return factory


@pytest.fixture
def core_phase(bootstrap_config):
    return CorePrerequisitesPhase(bootstrap_config.phases[1])


@pytest.fixture
def env_phase(bootstrap_config):
    return EnvironmentPhase(bootstrap_config.phases[2])


@pytest.fixture
def project_phase(bootstrap_config):
    return ProjectBootstrapPhase(bootstrap_config.phases[3])


def git_runner(fake_runner_cls, **kwargs):
    runner = fake_runner_cls(executables={"git": "/usr/bin/git"}, **kwargs)
    runner.respond(["git", "--version"], stdout="git version 2.43.0\n")
    return runner


class TestPhaseContext:
    """Target selection on the PhaseContext."""

    def test_linux_host(self, make_context):
        context = make_context()

        assert context.target_loop_platform() == "linux"
        assert not context.uses_wsl()
        assert context.env_runner() is context.runner

    def test_windows_host_defaults_to_wsl(self, make_context, windows_platform):
        context = make_context(platform=windows_platform)

        assert context.target_loop_platform() == "linux"
        assert context.uses_wsl()

    def test_windows_host_no_wsl(self, make_context, windows_platform):
        context = make_context(platform=windows_platform, no_wsl=True)

        assert context.target_loop_platform() == "windows"
        assert not context.uses_wsl()

    def test_windows_loop_requested(self, make_context, windows_platform):
        context = make_context(
            platform=windows_platform, loop_name="csharp-dotnet-webapi-windows"
        )
        assert context.target_loop_platform() == "windows"
        assert not context.uses_wsl()

    def test_selected_loop_wins(self, make_context, windows_platform):
        context = make_context(platform=windows_platform, loop_name="python-cli")
        context.loop = "csharp-mcp-server-windows"
        assert context.target_loop_platform() == "windows"

    def test_env_runner_targets_distribution(self, make_context, windows_platform):
        context = make_context(platform=windows_platform)
        context.wsl_distro = "Ubuntu-24.04"

        runner = context.env_runner()

        assert isinstance(runner, WSLCommandRunner)
        assert runner.distro == "Ubuntu-24.04"
        assert context.env_runner() is runner
        assert context.env_platform().is_wsl

    def test_ensure_wsl_target_without_distribution(self, make_context, windows_platform):
        with pytest.raises(PhaseError, match="No WSL distribution found"):
            make_context(platform=windows_platform).ensure_wsl_target()

    def test_ensure_wsl_target_what_if(self, make_context, windows_platform, fake_runner_cls):
        context = make_context(
            platform=windows_platform, runner=fake_runner_cls(dry_run=True), what_if=True
        )
        assert context.ensure_wsl_target() == "Ubuntu-24.04"

    def test_ensure_wsl_target_existing(self, make_context, windows_platform, fake_runner):
        fake_runner.respond(["wsl", "--list", "--quiet"], stdout="Ubuntu-24.04\n")
        context = make_context(platform=windows_platform)

        assert context.ensure_wsl_target() == "Ubuntu-24.04"
        assert context.wsl_distro == "Ubuntu-24.04"

    def test_local_project_root(self, make_context, tmp_path):
        context = make_context()
        with pytest.raises(PhaseError):
            context.local_project_root()

        context.project = ProjectInfo("my-api", str(tmp_path), "python-cli", "linux")
        assert context.local_project_root() == tmp_path

    def test_local_project_root_in_wsl(self, make_context, windows_platform):
        context = make_context(platform=windows_platform)
        context.wsl_distro = "Ubuntu"
        context.project = ProjectInfo(
            "my-api", "/home/ada/projects/my-api", "python-cli", "linux", target="wsl:Ubuntu"
        )

        root = context.local_project_root()
        assert str(root) == "\\\\wsl.localhost\\Ubuntu\\home\\ada\\projects\\my-api"

    def test_persists_state(self, make_context):
        assert make_context().persists_state
        assert not make_context(what_if=True).persists_state
        assert not make_context(check_only=True).persists_state


class TestEnsureTool:
    """Tests for PhaseHandler.ensure_tool."""

    def test_installed_tool(self, env_phase, make_context, fake_runner_cls, state_manager):
        context = make_context(runner=git_runner(fake_runner_cls))

        result = env_phase.ensure_tool(context, "git")

        assert result.status == SUCCESS
        assert result.message == "Git 2.43.0 (/usr/bin/git)"
        assert state_manager.load().tool_versions == {"git": "2.43.0"}

    def test_missing_tool_check_only(self, env_phase, make_context):
        with pytest.raises(StageError, match="Git not installed"):
            env_phase.ensure_tool(make_context(check_only=True), "git")

    def test_missing_tool_what_if(self, env_phase, make_context, fake_runner_cls):
        context = make_context(runner=fake_runner_cls(dry_run=True), what_if=True)

        result = env_phase.ensure_tool(context, "git")

        assert result.message == "Would install Git"

    def test_outdated_tool_what_if(self, env_phase, make_context, fake_runner_cls):
        runner = fake_runner_cls(executables={"git": "/usr/bin/git"}, dry_run=True)
        runner.respond(["git", "--version"], stdout="git version 2.30.1\n")

        result = env_phase.ensure_tool(make_context(runner=runner, what_if=True), "git")

        assert result.message == "Would upgrade Git"

    def test_docker_daemon_down_is_warning(self, env_phase, make_context, fake_runner_cls):
        runner = fake_runner_cls(executables={"docker": "/usr/bin/docker"})
        runner.respond(["docker", "--version"], stdout="Docker version 24.0.7, build afdd53b\n")
        runner.respond(["docker", "info"], 1, stderr="Cannot connect to the Docker daemon")

        result = env_phase.docker(make_context(runner=runner))

        assert result.status == WARNING
        assert "daemon not running" in result.message


class TestCoreStages:
    """Tests for phase 1 stages."""

    def test_azure_cli_installed(self, core_phase, make_context, fake_runner_cls):
        runner = fake_runner_cls(executables={"az": "/usr/bin/az"})
        runner.respond(["az", "version"], stdout=json.dumps({"azure-cli": "2.61.0"}))

        result = core_phase.azure_cli(make_context(runner=runner))

        assert result.message == "Azure CLI 2.61.0 (/usr/bin/az)"

    def test_login_without_azure_cli(self, core_phase, make_context):
        with pytest.raises(StageError, match="Azure CLI is not installed"):
            core_phase.azure_login(make_context())

    def test_login_what_if_without_azure_cli(self, core_phase, make_context, fake_runner_cls):
        context = make_context(runner=fake_runner_cls(dry_run=True), what_if=True)
        assert "Would run az login" in core_phase.azure_login(context).message

    def test_already_signed_in(self, core_phase, make_context, fake_runner_cls):
        runner = fake_runner_cls(executables={"az": "/usr/bin/az"})
        runner.respond(
            ACCOUNT_SHOW, stdout=json.dumps({"name": "Dev", "user": {"name": "ada@contoso.com"}})
        )

        result = core_phase.azure_login(make_context(runner=runner))

        assert result.message == "Signed in as ada@contoso.com (Dev)"
        assert runner.interactive_calls == []

    def test_not_signed_in_check_only(self, core_phase, make_context, fake_runner_cls):
        runner = fake_runner_cls(executables={"az": "/usr/bin/az"})
        runner.respond(ACCOUNT_SHOW, 1)

        with pytest.raises(StageError, match="Not signed in"):
            core_phase.azure_login(make_context(runner=runner, check_only=True))

    def test_not_signed_in_non_interactive(self, core_phase, make_context, fake_runner_cls):
        runner = fake_runner_cls(executables={"az": "/usr/bin/az"})
        runner.respond(ACCOUNT_SHOW, 1)

        with pytest.raises(StageError, match="re-run setup"):
            core_phase.azure_login(make_context(runner=runner))
        assert runner.interactive_calls == []

    @pytest.mark.parametrize("returncode,ok", [(0, True), (1, False)])
    def test_interactive_login(self, core_phase, make_context, fake_runner_cls, returncode, ok):
        runner = fake_runner_cls(
            executables={"az": "/usr/bin/az"}, interactive_returncode=returncode
        )
        runner.respond(ACCOUNT_SHOW, 1)
        context = make_context(runner=runner, assume_yes=False)

        with patch("sys.stdin") as stdin:
            stdin.isatty.return_value = True
            if ok:
                assert core_phase.azure_login(context).status == SUCCESS
            else:
                with pytest.raises(StageError, match="az login failed"):
                    core_phase.azure_login(context)

        assert runner.interactive_calls == [["az", "login"]]


class TestEnvironmentStages:
    """Tests for phase 2 stages."""

    def test_wsl_skipped_on_linux(self, env_phase, make_context):
        result = env_phase.wsl(make_context())
        assert (result.status, result.message) == (SKIPPED, "Not a Windows host")

    def test_wsl_skipped_with_no_wsl(self, env_phase, make_context, windows_platform):
        result = env_phase.wsl(make_context(platform=windows_platform, no_wsl=True))
        assert result.status == SKIPPED

    def test_wsl_skipped_for_windows_loop(self, env_phase, make_context, windows_platform):
        context = make_context(
            platform=windows_platform, loop_name="csharp-mcp-server-windows"
        )
        assert env_phase.wsl(context).message == "Windows loop selected; WSL not needed"

    def test_wsl_missing_check_only(self, env_phase, make_context, windows_platform):
        context = make_context(platform=windows_platform, check_only=True)
        with pytest.raises(StageError, match="expected Ubuntu-24.04"):
            env_phase.wsl(context)

    def test_git_identity_configured(self, env_phase, make_context, fake_runner_cls):
        runner = git_runner(fake_runner_cls)
        runner.respond(["git", "config", "--global", "user.name"], stdout="Ada\n")
        runner.respond(["git", "config", "--global", "user.email"], stdout="ada@contoso.com\n")

        result = env_phase.git(make_context(runner=runner))

        assert result.status == SUCCESS
        assert result.message == "Git 2.43.0 (/usr/bin/git)"

    def test_git_identity_missing(self, env_phase, make_context, fake_runner_cls):
        runner = git_runner(fake_runner_cls)
        runner.respond(["git", "config", "--global", "user.name"], stdout="Ada\n")
        runner.respond(["git", "config", "--global", "user.email"], 1)

        result = env_phase.git(make_context(runner=runner))

        assert result.status == WARNING
        assert result.message.endswith("git user.email not configured")

    def test_git_identity_prompted(self, env_phase, make_context, fake_runner_cls):
        runner = git_runner(fake_runner_cls)
        runner.respond(["git", "config", "--global", "user.name"], 1)
        runner.respond(["git", "config", "--global", "user.email"], 1)
        runner.respond(["git", "config", "--global", "user.name", "Ada"], 0)
        runner.respond(["git", "config", "--global", "user.email", "ada@contoso.com"], 0)
        context = make_context(runner=runner, assume_yes=False)

        with patch("sys.stdin") as stdin, patch(
            "slbootstrap.phases.environment.prompt_value",
            side_effect=["Ada", "ada@contoso.com"],
        ):
            stdin.isatty.return_value = True
            result = env_phase.git(context)

        assert result.message.endswith("identity Ada <ada@contoso.com>")
        assert ["git", "config", "--global", "user.name", "Ada"] in runner.calls


class TestLoopSelection:
    """Tests for phase 3 loop selection."""

    def test_requested_loop(self, project_phase, make_context):
        context = make_context(loop_name="python-cli")

        result = project_phase.loop_selection(context)

        assert result.message == "Loop python-cli (linux)"
        assert (context.loop, context.loop_platform) == ("python-cli", "linux")

    def test_windows_loop_on_linux(self, project_phase, make_context):
        with pytest.raises(StageError, match="needs a Windows host"):
            project_phase.select_loop(make_context(loop_name="csharp-dotnet-webapi-windows"))

    def test_linux_loop_with_no_wsl(self, project_phase, make_context, windows_platform):
        context = make_context(platform=windows_platform, no_wsl=True, loop_name="python-cli")
        with pytest.raises(StageError, match="drop --no-wsl"):
            project_phase.select_loop(context)

    def test_no_loop_non_interactive(self, project_phase, make_context):
        with pytest.raises(ProjectError, match="--loop-name"):
            project_phase.loop_selection(make_context())

    def test_check_only_without_loop(self, project_phase, make_context):
        result = project_phase.loop_selection(make_context(check_only=True))
        assert result.status == SKIPPED


class TestProjectInit:
    """Tests for phase 3 project creation and git init."""

    def test_creates_project(self, project_phase, make_context, fake_runner, tmp_path, state_manager):
        context = make_context(
            loop_name="python-cli", project_name="my-api", project_path=str(tmp_path)
        )

        result = project_phase.project_init(context)

        target = tmp_path.resolve() / "my-api"
        assert result.message == f"Created my-api at {target} [local]"
        assert context.project.path == str(target)
        assert fake_runner.called("strangeloop", "init", "--loop", "python-cli")
        assert state_manager.load().last_project.loop == "python-cli"

    def test_missing_project_name(self, project_phase, make_context):
        with pytest.raises(StageError, match="--project-name"):
            project_phase.project_init(make_context(loop_name="python-cli"))

    def test_check_only(self, project_phase, make_context, fake_runner):
        result = project_phase.project_init(make_context(check_only=True, project_name="x"))

        assert result.status == SKIPPED
        assert fake_runner.calls == []

    def test_git_init(self, project_phase, make_context, fake_runner, tmp_path):
        fake_runner.respond(["git", "rev-parse"], 128)
        context = make_context()
        context.project = ProjectInfo("my-api", str(tmp_path), "python-cli", "linux")

        result = project_phase.git_init(context)

        assert result.message == "Initialized repository (branch main); Created initial commit"

    def test_git_init_disabled(self, project_phase, make_context, tmp_path):
        context = make_context(no_git=True)
        context.project = ProjectInfo("my-api", str(tmp_path), "python-cli", "linux")
        assert project_phase.git_init(context).status == SKIPPED

    def test_git_init_without_project(self, project_phase, make_context):
        assert project_phase.git_init(make_context()).status == SKIPPED


class TestPipelinesStage:
    """Tests for phase 3 pipeline generation and registration."""

    def _context(self, make_context, tmp_path, **options):
        context = make_context(**options)
        context.project = ProjectInfo("my-api", str(tmp_path), "python-cli", "linux")
        return context

    def test_without_project(self, project_phase, make_context):
        assert project_phase.pipelines(make_context()).status == SKIPPED

    def test_missing_settings_warns(self, project_phase, make_context, tmp_path):
        result = project_phase.pipelines(self._context(make_context, tmp_path))

        assert result.status == WARNING
        assert "--devops-project" in result.message
        assert (tmp_path / ".pipelines" / "ci.yml").exists()

    def test_registers_pipelines(self, project_phase, make_context, tmp_path):
        context = self._context(
            make_context,
            tmp_path,
            organization="contoso",
            devops_project="Platform",
            repository="my-api",
            max_parallel=2,
        )
        results = [PipelineResult(name=f"my-api-{n}", success=True) for n in ("ci", "pr")]

        with patch(
            "slbootstrap.phases.bootstrap.setup_pipelines", return_value=results
        ) as mock_setup:
            result = project_phase.pipelines(context)

        assert result.status == SUCCESS
        assert result.message.endswith("2 pipeline(s) registered")
        client = mock_setup.call_args.args[0]
        assert client.settings.organization == "contoso"
        assert mock_setup.call_args.kwargs["max_parallel"] == 2

    def test_settings_from_git_remote(self, project_phase, make_context, fake_runner, tmp_path):
        fake_runner.respond(
            ["git", "-C", str(tmp_path), "remote", "get-url", "origin"],
            stdout="https://dev.azure.com/contoso/Platform/_git/my-api\n",
        )

        with patch("slbootstrap.phases.bootstrap.setup_pipelines", return_value=[]) as mock_setup:
            project_phase.pipelines(self._context(make_context, tmp_path))

        settings = mock_setup.call_args.args[0].settings
        assert (settings.organization, settings.project, settings.repository) == (
            "contoso",
            "Platform",
            "my-api",
        )

    def test_failed_creation(self, project_phase, make_context, tmp_path):
        context = self._context(
            make_context, tmp_path, organization="o", devops_project="p", repository="r"
        )
        results = [
            PipelineResult(name="my-api-ci", success=True),
            PipelineResult(name="my-api-pr", success=False, message="denied"),
        ]

        with patch("slbootstrap.phases.bootstrap.setup_pipelines", return_value=results):
            with pytest.raises(StageError, match="my-api-pr"):
                project_phase.pipelines(context)

    def test_pipeline_error_warns(self, project_phase, make_context, tmp_path):
        context = self._context(
            make_context, tmp_path, organization="o", devops_project="p", repository="r"
        )

        with patch(
            "slbootstrap.phases.bootstrap.setup_pipelines",
            side_effect=PipelineError("Repository 'r' not found"),
        ):
            result = project_phase.pipelines(context)

        assert result.status == WARNING
        assert "Repository 'r' not found" in result.message

    def test_what_if(self, project_phase, make_context, fake_runner_cls, tmp_path):
        runner = fake_runner_cls(dry_run=True)
        context = self._context(
            make_context,
            tmp_path,
            runner=runner,
            what_if=True,
            organization="contoso",
            devops_project="Platform",
            repository="my-api",
        )

        result = project_phase.pipelines(context)

        assert result.status == SUCCESS
        assert result.message.endswith("3 pipeline(s) registered")
        assert not (tmp_path / ".pipelines").exists()


class TestVSCodeStage:
    """Tests for phase 3 VS Code integration."""

    def _context(self, make_context, tmp_path, **options):
        context = make_context(**options)
        context.project = ProjectInfo("my-api", str(tmp_path), "python-cli", "linux")
        return context

    def test_disabled(self, project_phase, make_context, tmp_path):
        context = self._context(make_context, tmp_path, no_vscode=True)
        assert project_phase.vscode(context).status == SKIPPED

    def test_without_project(self, project_phase, make_context):
        assert project_phase.vscode(make_context()).status == SKIPPED

    def test_configured_and_opened(self, project_phase, make_context, fake_runner_cls, tmp_path):
        runner = fake_runner_cls(executables={"code": "/usr/bin/code"})

        result = project_phase.vscode(self._context(make_context, tmp_path, runner=runner))

        assert result.status == SUCCESS
        assert (tmp_path / ".vscode" / "settings.json").exists()
        assert (tmp_path / ".vscode" / "extensions.json").exists()
        assert runner.calls == [["code", str(tmp_path)]]

    def test_code_missing_warns(self, project_phase, make_context, tmp_path):
        result = project_phase.vscode(self._context(make_context, tmp_path))

        assert result.status == WARNING
        assert (tmp_path / ".vscode" / "settings.json").exists()

    def test_what_if(self, project_phase, make_context, fake_runner_cls, tmp_path):
        context = self._context(
            make_context, tmp_path, runner=fake_runner_cls(dry_run=True), what_if=True
        )

        assert project_phase.vscode(context).status == SUCCESS
        assert not (tmp_path / ".vscode").exists()
