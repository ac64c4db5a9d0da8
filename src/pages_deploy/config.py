"""Configuration loading and validation for Pages deployment."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import yaml

from .exceptions import ConfigurationError


GITHUB_API_URL = "https://api.github.com"
CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4"

MAX_DEPLOYMENTS = 5
DEFAULT_BUILD_DIR = ".svelte-kit/cloudflare"
DEFAULT_HEAD = "master"
DEFAULT_PROJECT_FILE = ".pages-deploy.yaml"

# Credential environment variables, in the order they are checked
GITHUB_TOKEN_VAR = "GITHUB_TOKEN"
CLOUDFLARE_TOKEN_VAR = "CLOUDFLARE_API_TOKEN"
CLOUDFLARE_ACCOUNT_VAR = "CLOUDFLARE_ACCOUNT_ID"

# Pattern to match ${VAR_NAME} or ${VAR_NAME:-default}
ENV_VAR_PATTERN = re.compile(r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}')


@dataclass(frozen=True)
class Credentials:
    """API credentials for both platforms."""

    github_token: str
    cloudflare_api_token: str
    cloudflare_account_id: str


@dataclass(frozen=True)
class DeployConfig:
    """Immutable run configuration, built once at startup."""

    credentials: Credentials
    secrets: dict[str, str] = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)
    insecure: bool = False
    github_api_url: str = GITHUB_API_URL
    cloudflare_api_url: str = CLOUDFLARE_API_URL


@dataclass
class ProjectDefaults:
    """Defaults read from the optional YAML project file."""

    name: Optional[str] = None
    head: Optional[str] = None
    max_deployments: Optional[int] = None
    directory: Optional[str] = None
    secrets: list[str] = field(default_factory=list)
    variables: list[str] = field(default_factory=list)


def _required(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if not value:
        raise ConfigurationError(f"{name} environment variable is not set")
    return value


def load_credentials(environ: Mapping[str, str]) -> Credentials:
    """
    Read API credentials from the environment.

    Raises:
        ConfigurationError: If any credential is missing or empty
    """
    return Credentials(
        github_token=_required(environ, GITHUB_TOKEN_VAR),
        cloudflare_api_token=_required(environ, CLOUDFLARE_TOKEN_VAR),
        cloudflare_account_id=_required(environ, CLOUDFLARE_ACCOUNT_VAR),
    )


def resolve_named(environ: Mapping[str, str], names: Iterable[str]) -> dict[str, str]:
    """
    Resolve caller-designated secret/variable names to their values.

    Raises:
        ConfigurationError: On the first name that is unset or empty
    """
    resolved = {}
    for name in names:
        value = environ.get(name)
        if not value:
            raise ConfigurationError(f"Environment variable '{name}' is not set")
        resolved[name] = value
    return resolved


def load_config(
    environ: Mapping[str, str],
    secrets: Iterable[str] = (),
    variables: Iterable[str] = (),
    insecure: bool = False,
) -> DeployConfig:
    """
    Build the run configuration from the process environment.

    This is the only place the environment is read; every named secret
    and variable is resolved here so a missing one fails the run before
    any network call is made.

    Args:
        environ: Environment mapping (normally os.environ)
        secrets: Names of variables to publish as secret_text
        variables: Names of variables to publish as plain text
        insecure: Disable TLS certificate verification

    Returns:
        Frozen DeployConfig
    """
    return DeployConfig(
        credentials=load_credentials(environ),
        secrets=resolve_named(environ, secrets),
        variables=resolve_named(environ, variables),
        insecure=insecure,
    )


def _substitute_env_vars(value: Any, environ: Mapping[str, str]) -> Any:
    """
    Recursively substitute environment variables in project file values.

    Supports patterns:
        ${VAR_NAME} - Required variable, raises error if not set
        ${VAR_NAME:-default} - Optional variable with default value
    """
    if isinstance(value, str):
        def replace_match(match: re.Match) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = environ.get(var_name)

            if env_value is not None:
                return env_value
            elif default is not None:
                return default
            else:
                raise ConfigurationError(
                    f"Environment variable '{var_name}' is not set and has no default. "
                    f"Set it with: export {var_name}=<value>"
                )

        return ENV_VAR_PATTERN.sub(replace_match, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v, environ) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item, environ) for item in value]

    else:
        return value


def _name_list(data: Mapping[str, Any], key: str, path: Path) -> list[str]:
    """A list of environment variable names; a lone name is accepted."""
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"'{key}' in {path} must be a list of variable names")
    return list(value)


def load_project_file(
    path: Path, environ: Mapping[str, str], required: bool = False
) -> ProjectDefaults:
    """
    Load CLI defaults from a YAML project file.

    A missing file yields empty defaults unless ``required`` is set
    (an explicit --config path).
    """
    if not path.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found: {path}")
        return ProjectDefaults()

    try:
        with open(path) as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}")

    if not raw_data:
        return ProjectDefaults()
    if not isinstance(raw_data, dict):
        raise ConfigurationError(f"Expected a mapping in {path}")

    data = _substitute_env_vars(raw_data, environ)

    max_deployments = data.get("max_deployments")
    if max_deployments is not None:
        try:
            max_deployments = int(max_deployments)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"max_deployments must be an integer, got {max_deployments!r}"
            )
        if max_deployments < 0:
            raise ConfigurationError("max_deployments must not be negative")

    return ProjectDefaults(
        name=data.get("name"),
        head=data.get("head"),
        max_deployments=max_deployments,
        directory=data.get("directory"),
        secrets=_name_list(data, "secrets", path),
        variables=_name_list(data, "variables", path),
    )
