"""Cloudflare Pages projects, deployments and environment variables."""

from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import quote

from .api import ApiClient
from .exceptions import DecodeError, PagesDeployError
from .logger import get_logger
from .models import PageDeployment, PagesProject, unwrap_result
from .retention import PruneResult, newest_first, select_excess

logger = get_logger("pages")

PRODUCTION_SECTION = "production"
PREVIEW_SECTION = "preview"

COMPATIBILITY_DATE = "2022-01-01"
COMPATIBILITY_FLAGS = ["url_standard"]


def config_section(environment: str, head: str) -> str:
    """Deployment config section written for an environment."""
    return PRODUCTION_SECTION if environment == head else PREVIEW_SECTION


def build_env_vars(
    variables: Mapping[str, str], secrets: Mapping[str, str]
) -> dict[str, dict[str, str]]:
    """Merge plain variables and secrets into the ``env_vars`` wire shape."""
    env_vars: dict[str, dict[str, str]] = {
        name: {"value": value} for name, value in variables.items()
    }
    env_vars.update(
        {name: {"value": value, "type": "secret_text"} for name, value in secrets.items()}
    )
    return env_vars


class PagesRegistry:
    """Pages registry for one Cloudflare account."""

    def __init__(self, api: ApiClient, account_id: str):
        self.api = api
        self.account_id = account_id

    def _projects_path(self, project: Optional[str] = None) -> str:
        path = f"accounts/{self.account_id}/pages/projects"
        if project is not None:
            path = f"{path}/{quote(project, safe='')}"
        return path

    def list_projects(self) -> list[PagesProject]:
        result = unwrap_result(self.api.get(self._projects_path()), "projects")
        if result is None:
            return []
        if not isinstance(result, list):
            raise DecodeError("Expected a list of pages projects")
        return [PagesProject.from_json(item) for item in result]

    def find_project(self, name: str) -> Optional[PagesProject]:
        """Look a project up by name among the account's projects."""
        for project in self.list_projects():
            if project.name == name:
                return project
        return None

    def get_project(self, name: str) -> PagesProject:
        result = unwrap_result(self.api.get(self._projects_path(name)), "project")
        if result is None:
            raise PagesDeployError(f"Pages project '{name}' not found")
        return PagesProject.from_json(result)

    def list_page_deployments(
        self, project: str, environment: Optional[str] = None
    ) -> list[PageDeployment]:
        """
        List a project's deployments, newest first.

        When ``environment`` is given only deployments triggered from that
        branch are returned.
        """
        logger.debug(
            f"Listing Cloudflare page deployments for project '{project}', "
            f"environment {environment}"
        )
        result = unwrap_result(
            self.api.get(f"{self._projects_path(project)}/deployments"), "deployments"
        )
        if result is None:
            result = []
        if not isinstance(result, list):
            raise DecodeError("Expected a list of page deployments")
        deployments = [PageDeployment.from_json(item) for item in result]
        if environment is not None:
            deployments = [d for d in deployments if d.branch == environment]
        deployments = newest_first(deployments, key=lambda d: d.created_on)
        logger.debug(
            f"Found {len(deployments)} Cloudflare page deployments for project '{project}'"
        )
        return deployments

    def prune_page_deployments(
        self, project: str, environment: Optional[str], max_deployments: int
    ) -> PruneResult:
        """
        Delete page deployments beyond the ``max_deployments`` newest.

        Cloudflare rejects deletion of some deployments (the live one, one
        still building); such failures are logged and skipped.
        """
        deployments = self.list_page_deployments(project, environment)
        excess = select_excess(deployments, max_deployments)
        result = PruneResult(
            platform="cloudflare",
            environment=environment or "*",
            kept=len(deployments) - len(excess),
        )
        if excess:
            logger.debug(f"Removing {len(excess)} deployments")
        for deployment in excess:
            logger.debug(
                f"Removing deployment '{deployment.id}/{deployment.created_on.isoformat()}'"
            )
            try:
                self.api.delete(f"{self._projects_path(project)}/deployments/{deployment.id}")
            except PagesDeployError as e:
                logger.warning(
                    f"Unable to remove deployment '{deployment.id}'", error_message=str(e)
                )
                result.failed.append(deployment.id)
            else:
                logger.debug(f"Deployment '{deployment.id}' removed")
                result.removed.append(deployment.id)
        return result

    def patch_environment_variables(
        self,
        project: str,
        environment: str,
        head: str,
        variables: Mapping[str, str],
        secrets: Mapping[str, str],
    ) -> dict[str, Any]:
        """
        Write variables and secrets into the environment's deployment config.

        The current ``deployment_configs`` are read first and sent back with
        only the target section changed, so the sibling section is kept.

        Returns:
            The ``deployment_configs`` body that was sent
        """
        section = config_section(environment, head)
        logger.debug(f"Adding variables {sorted(variables)} to project '{project}'")
        logger.debug(f"Adding secrets {sorted(secrets)} to project '{project}'")

        current = self.get_project(project)
        configs = dict(current.deployment_configs)
        target = dict(configs.get(section) or {})
        target.setdefault("compatibility_date", COMPATIBILITY_DATE)
        target.setdefault("compatibility_flags", list(COMPATIBILITY_FLAGS))
        target["env_vars"] = build_env_vars(variables, secrets)
        configs[section] = target

        self.api.patch(self._projects_path(project), {"deployment_configs": configs})
        return configs
