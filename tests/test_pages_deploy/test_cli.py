"""Tests for the command line entry point."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from src.pages_deploy import cli
from src.pages_deploy.config import DEFAULT_BUILD_DIR
from src.pages_deploy.exceptions import PagesDeployError, RequestError
from src.pages_deploy.orchestrator import CleanResult, DeployResult
from src.pages_deploy.retention import PruneResult


CREDENTIALS = {
    "GITHUB_TOKEN": "gh",
    "CLOUDFLARE_API_TOKEN": "cf",
    "CLOUDFLARE_ACCOUNT_ID": "acc",
}


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """Run every test outside any git checkout or project file."""
    monkeypatch.chdir(tmp_path)
    with patch.object(cli, "current_branch", return_value="feature-x"), patch.object(
        cli, "remote_url", return_value="git@github.com:owner/site.git"
    ):
        yield tmp_path


@pytest.fixture
def deployer():
    mock = MagicMock()
    mock.deploy.return_value = DeployResult(
        environment="feature-x",
        url="https://abc123.site.pages.dev",
        pruned=[PruneResult(platform="github", environment="feature-x", kept=5)],
    )
    mock.clean.return_value = CleanResult(environment="feature-x", destroyed=True)
    with patch.object(cli, "build_deployer", return_value=mock) as factory:
        mock.factory = factory
        yield mock


class TestParser:
    """Tests for argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_repeatable_names(self):
        args = cli.build_parser().parse_args(
            ["deploy", "-s", "API_KEY", "-s", "TOKEN", "--variable", "PUBLIC_URL"]
        )
        assert args.secret == ["API_KEY", "TOKEN"]
        assert args.variable == ["PUBLIC_URL"]

    def test_negative_max_deployments_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["clean", "-m", "-1"])

    def test_max_deployments_zero_allowed(self):
        args = cli.build_parser().parse_args(["clean", "--max-deployments", "0"])
        assert args.max_deployments == 0


class TestMissingConfiguration:
    """Tests for failures before any network call."""

    def test_unset_secret_fails_without_network(self):
        """Test a named secret missing from the environment exits 1 before any client is built."""
        with patch.object(cli, "clients_from_config") as clients, patch.object(
            cli, "build_deployer"
        ) as factory:
            code = cli.main(["deploy", "--secret", "API_KEY"], environ=dict(CREDENTIALS))

        assert code == cli.EXIT_CONFIG
        clients.assert_not_called()
        factory.assert_not_called()

    def test_missing_credential(self, deployer):
        environ = {k: v for k, v in CREDENTIALS.items() if k != "CLOUDFLARE_API_TOKEN"}
        assert cli.main(["clean"], environ=environ) == cli.EXIT_CONFIG
        deployer.factory.assert_not_called()

    def test_no_environment(self, deployer):
        """Test a detached checkout without --environment is a configuration error."""
        with patch.object(cli, "current_branch", return_value=None):
            assert cli.main(["clean"], environ=dict(CREDENTIALS)) == cli.EXIT_CONFIG

    def test_no_repository(self, deployer):
        with patch.object(cli, "remote_url", return_value=None):
            assert cli.main(["clean"], environ=dict(CREDENTIALS)) == cli.EXIT_CONFIG

    def test_explicit_config_must_exist(self, deployer):
        code = cli.main(["--config", "missing.yaml", "clean"], environ=dict(CREDENTIALS))
        assert code == cli.EXIT_CONFIG


class TestDeployCommand:
    """Tests for the deploy subcommand."""

    def test_defaults_from_git(self, deployer, capsys):
        """Test repository, environment and name default from the checkout."""
        code = cli.main(["deploy"], environ=dict(CREDENTIALS))

        assert code == cli.EXIT_OK
        deployer.check_repository.assert_called_once_with(
            "owner/site", "feature-x", "master", "deploy"
        )
        deployer.deploy.assert_called_once_with(
            "owner/site", "site", "feature-x", "master", 5, Path(DEFAULT_BUILD_DIR)
        )
        assert capsys.readouterr().out.strip() == "https://abc123.site.pages.dev"

    def test_secrets_and_variables_resolved(self, deployer):
        environ = dict(CREDENTIALS, API_KEY="s3cret", PUBLIC_URL="https://example.com")
        cli.main(
            ["deploy", "--secret", "API_KEY", "--variable", "PUBLIC_URL"], environ=environ
        )
        config = deployer.factory.call_args[0][0]
        assert config.secrets == {"API_KEY": "s3cret"}
        assert config.variables == {"PUBLIC_URL": "https://example.com"}

    def test_explicit_options(self, deployer):
        argv = [
            "-r", "acme/www", "-e", "release", "--head", "main",
            "deploy", "-n", "www-pages", "-m", "2", "-d", "dist",
        ]
        cli.main(argv, environ=dict(CREDENTIALS))
        deployer.deploy.assert_called_once_with(
            "acme/www", "www-pages", "release", "main", 2, Path("dist")
        )

    def test_project_file_defaults(self, deployer, workdir):
        (workdir / ".pages-deploy.yaml").write_text(
            "name: ${SITE_NAME}\n"
            "max_deployments: 3\n"
            "secrets:\n"
            "  - API_KEY\n"
        )
        environ = dict(CREDENTIALS, SITE_NAME="docs", API_KEY="s3cret")
        assert cli.main(["deploy"], environ=environ) == cli.EXIT_OK

        deployer.deploy.assert_called_once_with(
            "owner/site", "docs", "feature-x", "master", 3, Path(DEFAULT_BUILD_DIR)
        )
        assert deployer.factory.call_args[0][0].secrets == {"API_KEY": "s3cret"}

    def test_insecure_flag(self, deployer):
        cli.main(["-k", "deploy"], environ=dict(CREDENTIALS))
        assert deployer.factory.call_args[0][0].insecure is True

    def test_failure_exit_code(self, deployer):
        deployer.deploy.side_effect = RequestError("POST", "https://api.github.com/x", 500)
        assert cli.main(["deploy"], environ=dict(CREDENTIALS)) == cli.EXIT_FAILURE

    def test_interrupted(self, deployer):
        deployer.deploy.side_effect = KeyboardInterrupt
        assert cli.main(["deploy"], environ=dict(CREDENTIALS)) == cli.EXIT_INTERRUPTED


class TestCleanCommand:
    """Tests for the clean subcommand."""

    def test_clean(self, deployer):
        code = cli.main(["-e", "feature-y", "clean", "-m", "0"], environ=dict(CREDENTIALS))

        assert code == cli.EXIT_OK
        deployer.check_repository.assert_called_once_with(
            "owner/site", "feature-y", "master", "clean"
        )
        deployer.clean.assert_called_once_with("owner/site", "site", "feature-y", "master", 0)
        deployer.deploy.assert_not_called()

    def test_clean_ignores_deploy_names(self, deployer):
        """Test clean does not resolve secrets, so none need to be set."""
        cli.main(["clean"], environ=dict(CREDENTIALS))
        config = deployer.factory.call_args[0][0]
        assert config.secrets == {}
        assert config.variables == {}

    def test_validation_failure(self, deployer):
        deployer.check_repository.side_effect = PagesDeployError("Repository not reachable")
        assert cli.main(["clean"], environ=dict(CREDENTIALS)) == cli.EXIT_FAILURE
        deployer.clean.assert_not_called()


class TestOptionPlacement:
    """Tests for options given after the subcommand."""

    def test_deploy_options_after_subcommand(self, deployer):
        argv = [
            "deploy", "--repository", "acme/www", "--name", "www",
            "--environment", "feature-x", "--head", "main", "--max-deployments", "3",
        ]
        assert cli.main(argv, environ=dict(CREDENTIALS)) == cli.EXIT_OK
        deployer.check_repository.assert_called_once_with(
            "acme/www", "feature-x", "main", "deploy"
        )
        deployer.deploy.assert_called_once_with(
            "acme/www", "www", "feature-x", "main", 3, Path(DEFAULT_BUILD_DIR)
        )

    def test_clean_options_after_subcommand(self, deployer):
        argv = [
            "clean", "--repository", "acme/www", "--name", "www",
            "--environment", "feature-x", "--head", "master", "--max-deployments", "5",
        ]
        assert cli.main(argv, environ=dict(CREDENTIALS)) == cli.EXIT_OK
        deployer.clean.assert_called_once_with("acme/www", "www", "feature-x", "master", 5)

    def test_options_before_subcommand_still_work(self, deployer):
        argv = ["-r", "acme/www", "-e", "feature-x", "--head", "main", "clean"]
        assert cli.main(argv, environ=dict(CREDENTIALS)) == cli.EXIT_OK
        deployer.clean.assert_called_once_with("acme/www", "www", "feature-x", "main", 5)

    def test_option_after_subcommand_wins(self, deployer):
        argv = ["-e", "feature-x", "clean", "-e", "feature-y"]
        cli.main(argv, environ=dict(CREDENTIALS))
        assert deployer.clean.call_args[0][2] == "feature-y"


class TestRemoveCommand:
    """Tests for the remove subcommand."""

    def test_remove(self, deployer):
        code = cli.main(["remove", "--name", "www"], environ=dict(CREDENTIALS))

        assert code == cli.EXIT_OK
        deployer.check_repository.assert_called_once_with(
            "owner/site", "master", "master", "remove"
        )
        deployer.remove.assert_called_once_with("www")
        deployer.deploy.assert_not_called()
        deployer.clean.assert_not_called()

    def test_remove_needs_no_branch(self, deployer):
        """Test a detached checkout can still remove the project."""
        with patch.object(cli, "current_branch", return_value=None):
            assert cli.main(["remove"], environ=dict(CREDENTIALS)) == cli.EXIT_OK
        deployer.remove.assert_called_once_with("site")

    def test_remove_does_not_take_environment(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["remove", "--environment", "feature-x"])
