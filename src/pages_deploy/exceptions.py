"""Custom exceptions for Cloudflare Pages deployment."""

from __future__ import annotations

from typing import Optional


class PagesDeployError(Exception):
    """Base exception for all deployment errors."""

    pass


class ConfigurationError(PagesDeployError):
    """Raised when a credential, named secret/variable or branch is missing."""

    pass


class RequestError(PagesDeployError):
    """Raised when an API call fails with a non-tolerated response."""

    def __init__(
        self,
        method: str,
        uri: str,
        status: Optional[int] = None,
        status_text: str = "",
    ):
        self.method = method
        self.uri = uri
        self.status = status
        self.status_text = status_text
        if status is None:
            message = f"{method} {uri} failed: {status_text}"
        else:
            message = f"{method} {uri} failed with status {status}"
        super().__init__(message)


class DecodeError(PagesDeployError):
    """Raised when an API response does not have the expected shape."""

    pass


class CreationError(PagesDeployError):
    """Raised when creating a source-host resource returns no content."""

    pass


class DeploymentCreationError(CreationError):
    """Raised when a deployment record could not be created."""

    def __init__(self, repository: str):
        self.repository = repository
        super().__init__(f"Unable to create deployment for repository {repository}")


class StatusCreationError(CreationError):
    """Raised when a deployment status could not be created."""

    def __init__(self, deployment_id: int):
        self.deployment_id = deployment_id
        super().__init__(
            f"Unable to create deployment status for deployment {deployment_id}"
        )


class PruneItemError(PagesDeployError):
    """Raised (and tolerated) when a single stale record cannot be removed."""

    def __init__(self, record_id: str, cause: Exception):
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"Unable to remove deployment '{record_id}': {cause}")


class PublishError(PagesDeployError):
    """Raised when the external publish tool fails."""

    def __init__(self, command: list[str], returncode: Optional[int], output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        status = returncode if returncode is not None else "interrupted"
        super().__init__(
            f"Command '{' '.join(command)}' failed with status {status}"
        )
