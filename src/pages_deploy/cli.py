#!/usr/bin/env python3
"""
Cloudflare Pages Deploy Script

Publishes a build to Cloudflare Pages, records the deployment on GitHub
and prunes old deployments on both platforms.

Usage:
    python -m src.pages_deploy.cli deploy --secret API_KEY --variable PUBLIC_URL
    python -m src.pages_deploy.cli clean --environment feature-x --head main
    python -m src.pages_deploy.cli --verbose deploy --max-deployments 3
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .api import clients_from_config
from .config import (
    DEFAULT_BUILD_DIR,
    DEFAULT_HEAD,
    DEFAULT_PROJECT_FILE,
    MAX_DEPLOYMENTS,
    DeployConfig,
    ProjectDefaults,
    load_config,
    load_project_file,
)
from .exceptions import ConfigurationError, PagesDeployError
from .github import GitHubDeployments
from .logger import configure_logging, get_logger
from .orchestrator import PagesDeployer
from .pages import PagesRegistry
from .publisher import WranglerPublisher
from .retention import PruneResult
from .utils import current_branch, load_and_set_env, parse_repository_slug, remote_url

__version__ = "0.1.0"

logger = get_logger("cli")

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_FAILURE = 2
EXIT_INTERRUPTED = 130


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pages-deploy",
        description="Deploy a project to Cloudflare Pages and track it on GitHub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Deploy the current branch:
    pages-deploy deploy --secret API_KEY

  Remove a merged preview environment:
    pages-deploy clean --environment feature-x

  Delete the pages project:
    pages-deploy remove --name my-site

Environment:
  GITHUB_TOKEN, CLOUDFLARE_API_TOKEN, CLOUDFLARE_ACCOUNT_ID (a .env file
  in the working directory is loaded if present)
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="quiet output (overrides verbose)"
    )
    parser.add_argument(
        "-k",
        "--insecure",
        action="store_true",
        help="disable TLS certificate verification for API calls",
    )
    parser.add_argument("--log-json", action="store_true", help="log as JSON lines")
    parser.add_argument(
        "-r", "--repository", help="github repository in <owner>/<repo> format (default: origin)"
    )
    parser.add_argument(
        "-e", "--environment", help="environment to deploy or clean (default: current branch)"
    )
    parser.add_argument("--head", help=f"head (production) branch (default: {DEFAULT_HEAD})")
    parser.add_argument(
        "--config", help=f"project file with defaults (default: {DEFAULT_PROJECT_FILE})"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Also accepted after the subcommand; SUPPRESS keeps a value given before it
    location = argparse.ArgumentParser(add_help=False)
    location.add_argument(
        "-r",
        "--repository",
        default=argparse.SUPPRESS,
        help="github repository in <owner>/<repo> format",
    )
    location.add_argument(
        "--head", default=argparse.SUPPRESS, help="head (production) branch"
    )
    location.add_argument("-n", "--name", help="pages project name (default: repository name)")

    common = argparse.ArgumentParser(add_help=False, parents=[location])
    common.add_argument(
        "-e", "--environment", default=argparse.SUPPRESS, help="environment to deploy or clean"
    )
    common.add_argument(
        "-m",
        "--max-deployments",
        type=_non_negative_int,
        help=f"deployments kept per environment (default: {MAX_DEPLOYMENTS})",
    )

    deploy = subparsers.add_parser("deploy", parents=[common], help="publish and record a deployment")
    deploy.add_argument(
        "-d", "--directory", help=f"build directory (default: {DEFAULT_BUILD_DIR})"
    )
    deploy.add_argument(
        "-s",
        "--secret",
        action="append",
        default=[],
        metavar="NAME",
        help="environment variable published as a page secret (repeatable)",
    )
    deploy.add_argument(
        "--variable",
        action="append",
        default=[],
        metavar="NAME",
        help="environment variable published as a page variable (repeatable)",
    )

    subparsers.add_parser("clean", parents=[common], help="prune and tear down an environment")
    subparsers.add_parser(
        "remove", parents=[location], help="delete the pages project and all of its deployments"
    )
    return parser


def _merge_names(*groups: Sequence[str]) -> list[str]:
    names: list[str] = []
    for group in groups:
        for name in group:
            if name not in names:
                names.append(name)
    return names


def build_deployer(config: DeployConfig) -> PagesDeployer:
    """Wire the registries and publisher for a run."""
    github_api, cloudflare_api = clients_from_config(config)
    return PagesDeployer(
        config=config,
        github=GitHubDeployments(github_api),
        pages=PagesRegistry(cloudflare_api, config.credentials.cloudflare_account_id),
        publisher=WranglerPublisher(),
    )


def _log_prune_summary(results: Sequence[PruneResult]) -> None:
    for r in results:
        logger.info(
            f"Pruned {r.platform} deployments for '{r.environment}'",
            kept=r.kept,
            removed=len(r.removed),
            failed=len(r.failed),
        )
        if r.failed:
            logger.warning(
                f"Could not remove {len(r.failed)} {r.platform} deployment(s): "
                f"{', '.join(r.failed)}"
            )


def run(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Resolve settings, validate, and dispatch to the orchestrator."""
    config_path = Path(args.config or DEFAULT_PROJECT_FILE)
    defaults: ProjectDefaults = load_project_file(
        config_path, environ, required=bool(args.config)
    )

    repository = args.repository or parse_repository_slug(remote_url() or "")
    if not repository:
        raise ConfigurationError("Repository not set and no git remote 'origin' found")
    head = args.head or defaults.head or DEFAULT_HEAD
    name = args.name or defaults.name or repository.split("/")[-1]

    if args.command == "remove":
        config = load_config(environ, insecure=args.insecure)
        deployer = build_deployer(config)
        deployer.check_repository(repository, head, head, args.command)
        logger.info(f"Removing pages project '{name}'")
        deployer.remove(name)
        return EXIT_OK

    environment = args.environment or current_branch()
    if not environment:
        raise ConfigurationError("Environment not set and no current git branch found")
    max_deployments = (
        args.max_deployments
        if args.max_deployments is not None
        else defaults.max_deployments
        if defaults.max_deployments is not None
        else MAX_DEPLOYMENTS
    )

    if args.command == "deploy":
        secrets = _merge_names(defaults.secrets, args.secret)
        variables = _merge_names(defaults.variables, args.variable)
    else:
        secrets, variables = [], []

    logger.info("Validating deployment parameters")
    config = load_config(environ, secrets=secrets, variables=variables, insecure=args.insecure)
    deployer = build_deployer(config)
    deployer.check_repository(repository, environment, head, args.command)

    if args.command == "deploy":
        directory = Path(args.directory or defaults.directory or DEFAULT_BUILD_DIR)
        logger.info(
            f"Creating deployment for repository '{repository}', environment '{environment}'"
        )
        result = deployer.deploy(repository, name, environment, head, max_deployments, directory)
        _log_prune_summary(result.pruned)
        print(result.url)
    else:
        logger.info(f"Cleaning deployments for repository '{repository}'")
        result = deployer.clean(repository, name, environment, head, max_deployments)
        _log_prune_summary(result.pruned)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_format=args.log_json)

    if environ is None:
        load_and_set_env()
        environ = os.environ

    try:
        return run(args, environ)
    except ConfigurationError as e:
        logger.fatal(str(e))
        return EXIT_CONFIG
    except PagesDeployError as e:
        logger.fatal(f"{args.command} failed: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.fatal("Cancelled.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
