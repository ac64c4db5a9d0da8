"""
Shared test fixtures for Pages deployment tests.

These fixtures provide a recording fake API client that stands in for the
GitHub and Cloudflare REST APIs, allowing tests to run without network
access and to assert on the exact order of calls.
"""
from unittest.mock import MagicMock

import pytest

from src.pages_deploy.config import Credentials, DeployConfig
from src.pages_deploy.exceptions import RequestError
from src.pages_deploy.github import GitHubDeployments
from src.pages_deploy.orchestrator import PagesDeployer
from src.pages_deploy.pages import PagesRegistry
from src.pages_deploy.publisher import Publisher


ACCOUNT_ID = "acc123"


class FakeApi:
    """Recording stand-in for ApiClient.

    Responses are registered per (method, path). A registered value may be
    a plain value, an exception instance (raised), or a callable taking the
    request body.
    """

    def __init__(self):
        self.calls = []
        self.routes = {}

    def on(self, method, path, response):
        self.routes[(method, path)] = response
        return self

    def request(self, path, method="GET", body=None):
        self.calls.append((method, path, body))
        response = self.routes.get((method, path))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(body)
        return response

    def get(self, path):
        return self.request(path, "GET")

    def post(self, path, body=None):
        return self.request(path, "POST", body)

    def put(self, path, body=None):
        return self.request(path, "PUT", body)

    def patch(self, path, body=None):
        return self.request(path, "PATCH", body)

    def delete(self, path):
        return self.request(path, "DELETE")

    def methods(self):
        return [(m, p) for m, p, _ in self.calls]


def request_error(method="DELETE", status=500):
    return RequestError(method, "https://example.invalid", status, "Internal Server Error")


def gh_deployment(deployment_id, updated_at, environment="feature-x"):
    """Deployment object as returned by the GitHub deployments API."""
    return {
        "id": deployment_id,
        "ref": environment,
        "environment": environment,
        "updated_at": updated_at,
        "statuses_url": f"https://api.github.com/deployments/{deployment_id}/statuses",
    }


def cf_deployment(deployment_id, created_on, branch="feature-x"):
    """Deployment object as returned by the Cloudflare Pages API."""
    trigger = {"type": "ad_hoc", "metadata": {"branch": branch, "commit_hash": "abc"}}
    return {"id": deployment_id, "created_on": created_on, "deployment_trigger": trigger}


@pytest.fixture
def github_api():
    return FakeApi()


@pytest.fixture
def cloudflare_api():
    return FakeApi()


@pytest.fixture
def github(github_api):
    return GitHubDeployments(github_api)


@pytest.fixture
def pages(cloudflare_api):
    return PagesRegistry(cloudflare_api, ACCOUNT_ID)


@pytest.fixture
def deploy_config():
    return DeployConfig(
        credentials=Credentials(
            github_token="gh_token",
            cloudflare_api_token="cf_token",
            cloudflare_account_id=ACCOUNT_ID,
        ),
        secrets={"API_KEY": "s3cret"},
        variables={"PUBLIC_URL": "https://example.com"},
    )


@pytest.fixture
def publisher():
    mock = MagicMock(spec=Publisher)
    mock.publish.return_value = "https://abc123.site.pages.dev"
    return mock


@pytest.fixture
def deployer(deploy_config, github, pages, publisher):
    return PagesDeployer(
        config=deploy_config, github=github, pages=pages, publisher=publisher
    )
