"""Deploy and clean orchestration across GitHub and Cloudflare Pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import DeployConfig
from .exceptions import ConfigurationError
from .github import GitHubDeployments
from .logger import get_logger, log_context
from .pages import PagesRegistry
from .publisher import Publisher
from .retention import PruneResult

logger = get_logger("orchestrator")


def environment_kind(environment: str, head: str) -> str:
    """``production`` for the head branch, ``preview`` for anything else."""
    return "production" if environment == head else "preview"


@dataclass
class DeployResult:
    """Result of a deploy run."""

    environment: str
    url: str
    deployment_id: Optional[int] = None
    status_id: Optional[int] = None
    project_created: bool = False
    built: bool = False
    pruned: list[PruneResult] = field(default_factory=list)


@dataclass
class CleanResult:
    """Result of a clean run."""

    environment: str
    destroyed: bool = False
    pruned: list[PruneResult] = field(default_factory=list)


class PagesDeployer:
    """Main orchestrator for deploy and clean operations."""

    def __init__(
        self,
        config: DeployConfig,
        github: GitHubDeployments,
        pages: PagesRegistry,
        publisher: Publisher,
    ):
        self.config = config
        self.github = github
        self.pages = pages
        self.publisher = publisher

    def check_repository(
        self, repository: str, environment: str, head: str, operation: str
    ) -> None:
        """
        Validate that the repository and the branches the operation needs exist.

        Raises:
            ConfigurationError: If the repository or a required branch is missing
        """
        logger.debug("Validating source repository settings")
        if self.github.get_repository(repository) is None:
            raise ConfigurationError(f"Repository '{repository}' not found")
        if not self.github.branch_exists(repository, head):
            raise ConfigurationError(
                f"Master branch '{head}' for repository '{repository}' not found"
            )
        if operation == "deploy" and not self.github.branch_exists(repository, environment):
            raise ConfigurationError(
                f"Deploy branch '{environment}' for repository '{repository}' not found"
            )
        logger.debug("Source repository validation successful")

    def ensure_project(self, name: str, head: str) -> bool:
        """Create the pages project if it does not exist. Returns True if created."""
        if self.pages.find_project(name) is not None:
            logger.debug(f"Found pages project '{name}'")
            return False
        logger.info(f"Creating pages project '{name}' with production branch '{head}'")
        self.publisher.create_project(name, head)
        return True

    def prune(
        self, repository: str, name: str, environment: str, max_deployments: int
    ) -> list[PruneResult]:
        """Apply the retention threshold on GitHub, then on Cloudflare."""
        with logger.operation_context("prune", max_deployments=max_deployments):
            return [
                self.github.prune_deployments(repository, environment, max_deployments),
                self.pages.prune_page_deployments(name, environment, max_deployments),
            ]

    def deploy(
        self,
        repository: str,
        name: str,
        environment: str,
        head: str,
        max_deployments: int,
        build_dir: Path,
    ) -> DeployResult:
        """
        Build, publish and record a deployment, then apply retention.

        Steps are not transactional: a failure after publishing leaves the
        published deployment live with incomplete bookkeeping.
        """
        kind = environment_kind(environment, head)
        log_context.update(repository=repository, environment=environment)
        logger.debug(f"Deploying project {name}, environment {environment} from {repository}")

        with logger.operation_context("project"):
            project_created = self.ensure_project(name, head)

        built = False
        if not build_dir.exists():
            with logger.operation_context("build"):
                logger.info(f"Build directory '{build_dir}' not found, building")
                self.publisher.build()
                built = True

        with logger.operation_context("publish"):
            url = self.publisher.publish(build_dir, name, environment)
        logger.debug(f"Published {name} to {url}")

        with logger.operation_context("variables"):
            self.pages.patch_environment_variables(
                name, environment, head, self.config.variables, self.config.secrets
            )

        with logger.operation_context("record"):
            logger.debug(
                f"Creating Github deployment for repository '{repository}', "
                f"environment '{environment}'"
            )
            self.github.ensure_environment(repository, environment)
            deployment_id = self.github.get_or_create_deployment(repository, environment)
            status_id = self.github.create_deployment_status(repository, deployment_id, url)

        pruned = self.prune(repository, name, environment, max_deployments)
        logger.info(f"{kind.capitalize()} deployment published at url {url}")
        return DeployResult(
            environment=environment,
            url=url,
            deployment_id=deployment_id,
            status_id=status_id,
            project_created=project_created,
            built=built,
            pruned=pruned,
        )

    def clean(
        self,
        repository: str,
        name: str,
        environment: str,
        head: str,
        max_deployments: int,
    ) -> CleanResult:
        """
        Apply retention to an environment and tear it down if it is a preview.

        The head branch's environment is only pruned, never wiped or deleted.
        """
        kind = environment_kind(environment, head)
        log_context.update(repository=repository, environment=environment)
        logger.debug(f"Cleaning up {kind} environment {environment} for project {name}")

        result = CleanResult(environment=environment)
        result.pruned.extend(self.prune(repository, name, environment, max_deployments))

        if environment != head:
            logger.info(f"Destroying {kind} environment {environment} for project {name}")
            result.pruned.extend(self.prune(repository, name, environment, 0))
            with logger.operation_context("delete-environment"):
                self.github.delete_environment(repository, environment)
            result.destroyed = True
            logger.debug(f"Destroyed {kind} environment {environment} for project {name}")

        logger.debug(f"Cleaned up {kind} environment {environment} for project {name}")
        return result

    def remove(self, name: str) -> bool:
        """
        Delete the pages project and all of its deployments.

        Returns False when there is no such project.
        """
        if self.pages.find_project(name) is None:
            logger.info(f"Pages project '{name}' not found, nothing to remove")
            return False
        with logger.operation_context("remove-project", project=name):
            self.publisher.delete_project(name)
        logger.info(f"Pages project '{name}' removed")
        return True
