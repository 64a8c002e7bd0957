"""
Tests for Azure DevOps pipeline creation.
"""

import json
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from slbootstrap.config.parser import PipelineTemplate
from slbootstrap.core.exceptions import PipelineError
from slbootstrap.pipelines.azure_devops import (
    AzureDevOpsClient,
    AzureDevOpsSettings,
    PipelineDefinition,
    PipelineResult,
    create_pipelines,
    definitions_from_templates,
    setup_pipelines,
)

TOKEN_CMD = ["az", "account", "get-access-token"]
LIST_CMD = ["az", "pipelines", "list"]
CREATE_CMD = ["az", "pipelines", "create"]


def make_settings(**overrides):
    values = {
        "organization": "contoso",
        "project": "Platform Team",
        "repository": "my-api",
        "branch": "main",
    }
    values.update(overrides)
    return AzureDevOpsSettings(**values)


def make_client(runner, session=None, **overrides):
    return AzureDevOpsClient(runner, make_settings(**overrides), session=session or MagicMock())


def http_response(status_code):
    response = MagicMock()
    response.status_code = status_code
    return response


class TestAzureDevOpsSettings:
    @pytest.mark.parametrize(
        "organization,url",
        [
            ("contoso", "https://dev.azure.com/contoso"),
            ("https://dev.azure.com/contoso/", "https://dev.azure.com/contoso"),
            ("https://contoso.visualstudio.com", "https://contoso.visualstudio.com"),
        ],
    )
    def test_organization_url(self, organization, url):
        assert make_settings(organization=organization).organization_url == url

    def test_missing_fields(self):
        settings = AzureDevOpsSettings(organization="contoso")

        assert settings.missing() == ["project", "repository"]
        assert not settings.is_complete()
        assert make_settings().is_complete()


def test_definitions_from_templates():
    templates = [PipelineTemplate("ci", "ci.yml"), PipelineTemplate("pr", "pr.yml", "pr")]

    definitions = definitions_from_templates(templates, "my-api", folder="/.pipelines/")

    assert definitions == [
        PipelineDefinition("my-api-ci", "/.pipelines/ci.yml", "\\my-api"),
        PipelineDefinition("my-api-pr", "/.pipelines/pr.yml", "\\my-api"),
    ]


class TestCreatePipeline:
    """Tests for AzureDevOpsClient.create_pipeline."""

    definition = PipelineDefinition("my-api-ci", "/.pipelines/ci.yml", "\\my-api")

    def test_existing_pipeline_skipped(self, fake_runner):
        fake_runner.respond(LIST_CMD, stdout="42\n")

        result = make_client(fake_runner).create_pipeline(self.definition)

        assert result.success and result.skipped
        assert fake_runner.called(*CREATE_CMD) == []

    def test_creates_pipeline(self, fake_runner):
        fake_runner.respond(
            CREATE_CMD,
            stdout=json.dumps(
                {
                    "id": 17,
                    "_links": {"web": {"href": "https://dev.azure.com/contoso/_build?definitionId=17"}},
                }
            ),
        )

        result = make_client(fake_runner).create_pipeline(self.definition)

        assert result == PipelineResult(
            name="my-api-ci",
            success=True,
            pipeline_id=17,
            url="https://dev.azure.com/contoso/_build?definitionId=17",
            message="created",
        )
        args = fake_runner.called(*CREATE_CMD)[0]
        assert args[args.index("--yml-path") + 1] == "/.pipelines/ci.yml"
        assert args[args.index("--repository") + 1] == "my-api"
        assert args[args.index("--skip-first-run") + 1] == "true"
        assert args[args.index("--folder-path") + 1] == "\\my-api"
        assert args[args.index("--organization") + 1] == "https://dev.azure.com/contoso"
        assert args[args.index("--project") + 1] == "Platform Team"

    def test_non_json_output(self, fake_runner):
        fake_runner.respond(CREATE_CMD, stdout="created\n")

        result = make_client(fake_runner).create_pipeline(self.definition)

        assert result.success
        assert result.pipeline_id is None and result.url is None

    @pytest.mark.parametrize("output", ["[]", "null", "17", '"created"'])
    def test_json_that_is_not_an_object(self, fake_runner, output):
        fake_runner.respond(CREATE_CMD, stdout=output)

        result = make_client(fake_runner).create_pipeline(self.definition)

        assert result.success
        assert result.pipeline_id is None and result.url is None

    def test_creation_failure(self, fake_runner):
        fake_runner.respond(CREATE_CMD, 1, stderr="TF401019: repository not found\n")

        result = make_client(fake_runner).create_pipeline(self.definition)

        assert not result.success
        assert result.message == "TF401019: repository not found"

    def test_what_if(self, fake_runner_cls):
        runner = fake_runner_cls(dry_run=True)

        result = make_client(runner).create_pipeline(self.definition)

        assert result.success
        assert result.message == "what-if"


class SlowClient:
    """Stand-in client that tracks how many creations overlap."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.active = 0
        self.peak = 0
        self.lock = threading.Lock()

    def create_pipeline(self, definition):
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.05)
        with self.lock:
            self.active -= 1
        if definition.name in self.fail:
            raise PipelineError(f"{definition.name} exploded")
        return PipelineResult(name=definition.name, success=True, message="created")


def definitions(count):
    return [PipelineDefinition(f"p{i:02d}", f"/.pipelines/p{i}.yml") for i in range(count)]


class TestCreatePipelines:
    """Tests for bounded concurrent creation."""

    def test_parallelism_bounded(self):
        client = SlowClient()

        results = create_pipelines(client, definitions(10), max_parallel=4)

        assert len(results) == 10
        assert 1 < client.peak <= 4

    def test_sequential_when_max_parallel_is_one(self):
        client = SlowClient()
        create_pipelines(client, definitions(3), max_parallel=1)
        assert client.peak == 1

    def test_failure_does_not_cancel_others(self):
        client = SlowClient(fail={"p01"})

        results = create_pipelines(client, definitions(3))

        assert [r.name for r in results] == ["p00", "p01", "p02"]
        assert [r.success for r in results] == [True, False, True]
        assert results[1].message == "p01 exploded"

    def test_unexpected_error_does_not_cancel_others(self):
        client = SlowClient()
        original = client.create_pipeline

        def create(definition):
            if definition.name == "p01":
                raise AttributeError("'list' object has no attribute 'get'")
            return original(definition)

        client.create_pipeline = create

        results = create_pipelines(client, definitions(3))

        assert [r.name for r in results] == ["p00", "p01", "p02"]
        assert [r.success for r in results] == [True, False, True]
        assert "no attribute" in results[1].message

    def test_empty(self):
        assert create_pipelines(SlowClient(), []) == []


class TestRepositoryExists:
    """Tests for the REST repository lookup."""

    def _client(self, fake_runner, session):
        fake_runner.respond(TOKEN_CMD, stdout="tok\n")
        return make_client(fake_runner, session=session)

    def test_found(self, fake_runner):
        session = MagicMock()
        session.get.return_value = http_response(200)

        assert self._client(fake_runner, session).repository_exists()

        session.get.assert_called_once_with(
            "https://dev.azure.com/contoso/Platform%20Team/_apis/git/repositories/my-api",
            headers={"Authorization": "Bearer tok", "Accept": "application/json"},
            params={"api-version": "7.1"},
            timeout=30,
        )

    def test_not_found(self, fake_runner):
        session = MagicMock()
        session.get.return_value = http_response(404)
        assert self._client(fake_runner, session).repository_exists() is False

    def test_server_error(self, fake_runner):
        session = MagicMock()
        session.get.return_value = http_response(500)
        with pytest.raises(PipelineError, match="HTTP 500"):
            self._client(fake_runner, session).repository_exists()

    def test_request_exception(self, fake_runner):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(PipelineError, match="request failed"):
            self._client(fake_runner, session).repository_exists()

    def test_token_cached(self, fake_runner):
        session = MagicMock()
        session.get.return_value = http_response(200)
        client = self._client(fake_runner, session)

        client.repository_exists()
        client.repository_exists()

        assert len(fake_runner.called(*TOKEN_CMD)) == 1

    def test_not_logged_in(self, fake_runner):
        fake_runner.respond(TOKEN_CMD, 1, stderr="Please run 'az login'")
        with pytest.raises(PipelineError, match="az login"):
            make_client(fake_runner).get_access_token()


class TestEnsureExtension:
    def test_already_installed(self, fake_runner):
        make_client(fake_runner).ensure_extension()
        assert fake_runner.called("az", "extension", "add") == []

    def test_installs_missing_extension(self, fake_runner):
        fake_runner.respond(["az", "extension", "show"], 1)
        make_client(fake_runner).ensure_extension()
        assert fake_runner.called("az", "extension", "add", "--name", "azure-devops")

    def test_install_failure(self, fake_runner):
        fake_runner.respond(["az", "extension", "show"], 1)
        fake_runner.respond(["az", "extension", "add"], 1, stderr="no network")
        with pytest.raises(PipelineError, match="no network"):
            make_client(fake_runner).ensure_extension()


class TestSetupPipelines:
    templates = [PipelineTemplate("ci", "ci.yml"), PipelineTemplate("pr", "pr.yml", "pr")]

    def test_creates_one_pipeline_per_template(self, fake_runner):
        fake_runner.respond(TOKEN_CMD, stdout="tok\n")
        session = MagicMock()
        session.get.return_value = http_response(200)

        results = setup_pipelines(make_client(fake_runner, session), "my-api", self.templates)

        assert [r.name for r in results] == ["my-api-ci", "my-api-pr"]
        assert len(fake_runner.called(*CREATE_CMD)) == 2

    def test_missing_repository(self, fake_runner):
        fake_runner.respond(TOKEN_CMD, stdout="tok\n")
        session = MagicMock()
        session.get.return_value = http_response(404)

        with pytest.raises(PipelineError, match="Repository 'my-api' not found"):
            setup_pipelines(make_client(fake_runner, session), "my-api", self.templates)
        assert fake_runner.called(*CREATE_CMD) == []

    def test_what_if_skips_repository_lookup(self, fake_runner_cls):
        runner = fake_runner_cls(dry_run=True)
        session = MagicMock()

        results = setup_pipelines(make_client(runner, session), "my-api", self.templates)

        assert all(r.message == "what-if" for r in results)
        session.get.assert_not_called()
