"""
Cloudflare Pages deployment package.

This package publishes builds to Cloudflare Pages, mirrors each deployment
as a GitHub deployment, and prunes old deployments on both platforms.
"""

from .exceptions import (
    PagesDeployError,
    ConfigurationError,
    RequestError,
    DecodeError,
    CreationError,
    DeploymentCreationError,
    StatusCreationError,
    PruneItemError,
    PublishError,
)
from .config import DeployConfig, load_config
from .retention import RetentionPolicy, select_excess

__all__ = [
    "PagesDeployError",
    "ConfigurationError",
    "RequestError",
    "DecodeError",
    "CreationError",
    "DeploymentCreationError",
    "StatusCreationError",
    "PruneItemError",
    "PublishError",
    "DeployConfig",
    "load_config",
    "RetentionPolicy",
    "select_excess",
]
