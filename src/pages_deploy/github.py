"""GitHub deployment, deployment status and environment bookkeeping."""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote, urlencode

from .api import ApiClient
from .exceptions import (
    DecodeError,
    DeploymentCreationError,
    PagesDeployError,
    PruneItemError,
    StatusCreationError,
)
from .logger import get_logger
from .models import DeploymentRecord
from .retention import PruneResult, newest_first, select_excess

logger = get_logger("github")


def _segment(value: str) -> str:
    return quote(value, safe="")


class GitHubDeployments:
    """Source-host deployment registry for one GitHub API client."""

    def __init__(self, api: ApiClient):
        self.api = api

    def get_repository(self, repository: str) -> Optional[dict[str, Any]]:
        """Repository metadata, or None if it does not exist."""
        return self.api.get(f"repos/{repository}")

    def branch_exists(self, repository: str, branch: str) -> bool:
        return self.api.get(f"repos/{repository}/branches/{_segment(branch)}") is not None

    def list_deployments(self, repository: str, environment: str) -> list[DeploymentRecord]:
        """
        List deployments for an environment, most recently updated first.

        Deployments are filtered on ref and environment both equal to the
        environment name.
        """
        logger.debug(
            f"Listing deployments for repository '{repository}', environment '{environment}'"
        )
        query = urlencode({"ref": environment, "environment": environment})
        payload = self.api.get(f"repos/{repository}/deployments?{query}")
        if payload is None:
            payload = []
        if not isinstance(payload, list):
            raise DecodeError("Expected a list of deployments")
        deployments = newest_first(
            [DeploymentRecord.from_json(item) for item in payload],
            key=lambda d: d.updated_at,
        )
        logger.debug(
            f"Found {len(deployments)} deployments for repository '{repository}', "
            f"environment '{environment}'"
        )
        return deployments

    def get_or_create_deployment(self, repository: str, environment: str) -> int:
        """
        Return the most recent deployment id for the environment, creating one if none exist.

        Raises:
            DeploymentCreationError: If the create call returns no content
        """
        logger.debug(f"Retrieving Github deployment for environment '{environment}'")
        deployments = self.list_deployments(repository, environment)
        if deployments:
            deployment = deployments[0]
            logger.debug(f"Found existing deployment with id {deployment.id}")
            return deployment.id

        created = self.api.post(
            f"repos/{repository}/deployments",
            {
                "ref": environment,
                "environment": environment,
                "required_contexts": [],
                "transient_environment": True,
            },
        )
        if not created:
            logger.debug(f"Unable to create deployment for repository {repository}")
            raise DeploymentCreationError(repository)
        if created.get("id") is None:
            raise DecodeError("Created deployment has no 'id'")
        logger.debug(f"Created deployment with id {created['id']}")
        return created["id"]

    def create_deployment_status(self, repository: str, deployment_id: int, url: str) -> int:
        """
        Mark a deployment successful at ``url``.

        Raises:
            StatusCreationError: If the create call returns no content
        """
        logger.debug(f"Creating Github deployment status for deployment '{deployment_id}'")
        status = self.api.post(
            f"repos/{repository}/deployments/{deployment_id}/statuses",
            {"state": "success", "environment_url": url, "auto_inactive": True},
        )
        if not status:
            logger.debug(f"Unable to create deployment status for deployment {deployment_id}")
            raise StatusCreationError(deployment_id)
        logger.debug(f"Created deployment status with id '{status.get('id')}'")
        return status.get("id")

    def ensure_environment(self, repository: str, environment: str) -> None:
        """Create or update the environment with no protection rules."""
        self.api.put(
            f"repos/{repository}/environments/{_segment(environment)}",
            {"wait_timer": 0, "reviewers": None, "deployment_branch_policy": None},
        )

    def delete_environment(self, repository: str, environment: str) -> None:
        """Delete the environment; an already absent environment is not an error."""
        self.api.delete(f"repos/{repository}/environments/{_segment(environment)}")

    def _remove(self, repository: str, deployment: DeploymentRecord) -> None:
        logger.debug(f"Removing deployment '{deployment.id}': '{deployment.updated_at.isoformat()}'")
        try:
            # GitHub refuses to delete a deployment that is still active
            self.api.post(
                f"repos/{repository}/deployments/{deployment.id}/statuses",
                {"state": "inactive"},
            )
            self.api.delete(f"repos/{repository}/deployments/{deployment.id}")
        except PagesDeployError as e:
            raise PruneItemError(str(deployment.id), e)
        logger.debug(f"Deployment '{deployment.id}' removed")

    def prune_deployments(
        self, repository: str, environment: str, max_deployments: int
    ) -> PruneResult:
        """
        Deactivate and delete deployments beyond the ``max_deployments`` newest.

        Each stale deployment is handled on its own: a failure is logged
        and recorded, and the remaining deployments are still processed.
        """
        deployments = self.list_deployments(repository, environment)
        excess = select_excess(deployments, max_deployments)
        result = PruneResult(
            platform="github",
            environment=environment,
            kept=len(deployments) - len(excess),
        )
        if excess:
            logger.debug(f"Removing {len(excess)} deployments")
        for deployment in excess:
            try:
                self._remove(repository, deployment)
            except PruneItemError as e:
                logger.error(str(e), deployment_id=deployment.id)
                result.failed.append(e.record_id)
            else:
                result.removed.append(str(deployment.id))
        return result
