"""Build and publish capability, backed by the wrangler CLI."""

from __future__ import annotations

import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from .exceptions import PublishError
from .logger import get_logger

logger = get_logger("publisher")

WRANGLER_COMMAND = ("npm", "exec", "--", "wrangler")
BUILD_COMMAND = ("npm", "run", "build")


def _fmt(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in args)


def extract_url(output: str) -> str:
    """The published URL is the last whitespace-separated token of the output."""
    tokens = output.split()
    if not tokens:
        raise PublishError(["publish"], 0, output)
    return tokens[-1].strip()


class Publisher(ABC):
    """Everything the orchestrators need from the pages platform's tooling."""

    @abstractmethod
    def build(self) -> None:
        """Produce the build artifact."""

    @abstractmethod
    def create_project(self, name: str, production_branch: str) -> None:
        """Create a pages project whose production branch is ``production_branch``."""

    @abstractmethod
    def publish(self, build_dir: Path, project: str, environment: str) -> str:
        """Upload ``build_dir`` as a deployment of ``environment`` and return its URL."""

    @abstractmethod
    def delete_project(self, name: str) -> None:
        """Delete a pages project and all of its deployments."""


class WranglerPublisher(Publisher):
    """Publisher that shells out to ``wrangler`` through npm."""

    def __init__(
        self,
        cwd: Optional[Path] = None,
        wrangler: Sequence[str] = WRANGLER_COMMAND,
        build_command: Sequence[str] = BUILD_COMMAND,
    ):
        self.cwd = cwd
        self.wrangler = list(wrangler)
        self.build_command = list(build_command)

    def _run(self, args: Sequence[str]) -> str:
        cmd = list(args)
        logger.debug(f"Executing '{_fmt(cmd)}'")
        try:
            p = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                cwd=self.cwd,
            )
        except OSError as e:
            logger.error(f"Command execution failed: {e}")
            raise PublishError(cmd, None, str(e))
        if p.returncode != 0:
            logger.error(f"Command execution failed with status {p.returncode}")
            logger.debug(p.stdout.strip())
            raise PublishError(cmd, p.returncode, p.stdout)
        return p.stdout.strip()

    def build(self) -> None:
        self._run(self.build_command)

    def create_project(self, name: str, production_branch: str) -> None:
        self._run(
            [*self.wrangler, "pages", "project", "create", name,
             "--production-branch", production_branch]
        )

    def publish(self, build_dir: Path, project: str, environment: str) -> str:
        output = self._run(
            [*self.wrangler, "pages", "deploy", str(build_dir),
             "--project-name", project, "--branch", environment,
             "--commit-dirty=true"]
        )
        return extract_url(output)

    def delete_project(self, name: str) -> None:
        self._run([*self.wrangler, "pages", "project", "delete", name, "--yes"])
