"""
Generic REST client shared by the GitHub and Cloudflare registries.

Normalizes the three "no content" outcomes (204, and 404 on GET/DELETE)
to ``None`` and raises RequestError for every other non-2xx response.
"""

from __future__ import annotations

from typing import Any, Optional

import requests
import urllib3

from .config import DeployConfig
from .exceptions import DecodeError, RequestError
from .logger import get_logger

logger = get_logger("api")

# Methods for which a 404 means "resource absent" rather than failure
ABSENT_OK_METHODS = ("GET", "DELETE")


class ApiClient:
    """HTTP client bound to one API base URL and auth scheme."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        session: Optional[requests.Session] = None,
        verify: bool = True,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update(headers)
        self.session.verify = verify
        self.timeout = timeout

    def request(self, path: str, method: str = "GET", body: Optional[Any] = None) -> Any:
        """
        Perform a request and decode the JSON response.

        Args:
            path: Path relative to the base URL (may include a query string)
            method: HTTP method
            body: JSON body; omitted from the request entirely when None

        Returns:
            Decoded JSON, or None for a tolerated empty result

        Raises:
            RequestError: On transport failure or a non-tolerated status
            DecodeError: If a success response body is not JSON
        """
        method = method.upper()
        uri = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"{method} {uri}")

        kwargs: dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        try:
            response = self.session.request(method, uri, **kwargs)
        except requests.RequestException as e:
            logger.debug(f"{method} {uri} failed: {e}")
            raise RequestError(method, uri, None, str(e))

        if response.status_code == 204:
            logger.debug(f"{method} {uri} succeeded with status 204")
            return None
        if response.status_code == 404 and method in ABSENT_OK_METHODS:
            logger.debug(f"{method} {uri} succeeded with empty response")
            return None
        if not response.ok:
            logger.debug(f"{method} {uri} failed with status {response.status_code}")
            logger.debug(f"{method} {uri} failed with message {response.reason}")
            raise RequestError(method, uri, response.status_code, response.reason or "")

        try:
            return response.json()
        except ValueError:
            raise DecodeError(f"{method} {uri} returned invalid JSON")

    def get(self, path: str) -> Any:
        return self.request(path, "GET")

    def post(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request(path, "POST", body)

    def put(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request(path, "PUT", body)

    def patch(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request(path, "PATCH", body)

    def delete(self, path: str) -> Any:
        return self.request(path, "DELETE")


def github_client(
    token: str,
    base_url: str = "https://api.github.com",
    session: Optional[requests.Session] = None,
    verify: bool = True,
) -> ApiClient:
    """Client for the GitHub REST API (``token`` auth scheme, v3 media type)."""
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/vnd.github.v3+json",
        "Authorization": f"token {token}",
    }
    return ApiClient(base_url, headers, session=session, verify=verify)


def cloudflare_client(
    token: str,
    base_url: str = "https://api.cloudflare.com/client/v4",
    session: Optional[requests.Session] = None,
    verify: bool = True,
) -> ApiClient:
    """Client for the Cloudflare v4 API (bearer token)."""
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Authorization": f"Bearer {token}",
    }
    return ApiClient(base_url, headers, session=session, verify=verify)


def clients_from_config(config: DeployConfig) -> tuple[ApiClient, ApiClient]:
    """Build the (github, cloudflare) client pair for a run."""
    verify = not config.insecure
    if config.insecure:
        logger.warning("TLS certificate verification is disabled (--insecure)")
        # Silence the per-request InsecureRequestWarning once the user opted in
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    github = github_client(
        config.credentials.github_token, config.github_api_url, verify=verify
    )
    cloudflare = cloudflare_client(
        config.credentials.cloudflare_api_token, config.cloudflare_api_url, verify=verify
    )
    return github, cloudflare
