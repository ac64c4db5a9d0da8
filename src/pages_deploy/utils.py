"""Utility functions for Pages deployment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import git


# Default path for the .env file
ENV_PATH = Path(".env")


def load_env_file(env_path: Optional[Path] = None) -> dict[str, str]:
    """
    Load environment variables from a .env file.

    Args:
        env_path: Path to env file (defaults to .env in the cwd)

    Returns:
        Dictionary of environment variables
    """
    path = env_path or ENV_PATH
    env_vars = {}

    if not path.exists():
        return env_vars

    with open(path) as f:
        for line in f:
            line = line.strip()
            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                # Remove quotes if present
                if len(value) > 1 and value[0] in ('"', "'") and value[-1] == value[0]:
                    value = value[1:-1]
                env_vars[key] = value

    return env_vars


def load_and_set_env(env_path: Optional[Path] = None) -> dict[str, str]:
    """
    Load .env and set its values as environment variables.

    Variables already present in the environment are not overridden.
    """
    env_vars = load_env_file(env_path)
    for key, value in env_vars.items():
        if key not in os.environ:
            os.environ[key] = value
    return env_vars


def parse_repository_slug(remote_url: str) -> Optional[str]:
    """
    Turn a git remote URL into an ``owner/repo`` slug.

    Handles ``git@host:owner/repo.git`` and ``https://host/owner/repo(.git)``.
    """
    if not remote_url:
        return None
    url = remote_url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    for prefix in ("https://", "http://", "ssh://"):
        if url.startswith(prefix):
            url = url[len(prefix):]
    if "@" in url:
        url = url.split("@", 1)[1]
    parts = [p for p in url.replace(":", "/").split("/") if p]
    if len(parts) < 2:
        return None
    return "/".join(parts[-2:])


def _open_repo(path: Optional[Path] = None) -> Optional[git.Repo]:
    try:
        return git.Repo(path or Path.cwd(), search_parent_directories=True)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        return None


def current_branch(path: Optional[Path] = None) -> Optional[str]:
    """Name of the checked out branch, or None when detached or not a repo."""
    repo = _open_repo(path)
    if repo is None:
        return None
    try:
        return repo.active_branch.name
    except TypeError:
        # Detached HEAD
        return None


def remote_url(path: Optional[Path] = None, remote: str = "origin") -> Optional[str]:
    """URL of the given remote, or None if it is not configured."""
    repo = _open_repo(path)
    if repo is None:
        return None
    try:
        return repo.remote(remote).url
    except ValueError:
        return None
