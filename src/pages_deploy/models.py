"""Typed records decoded from the two platform APIs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .exceptions import DecodeError

# Fractional seconds of any precision, padded or cut to microseconds
FRACTION_PATTERN = re.compile(r"\.(\d+)")


def _normalize_fraction(match: re.Match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """Parse an ISO-8601 API timestamp (``Z`` suffix allowed)."""
    if not isinstance(value, str) or not value:
        raise DecodeError(f"Missing or invalid '{field_name}': {value!r}")
    normalized = FRACTION_PATTERN.sub(
        _normalize_fraction, value.replace("Z", "+00:00"), count=1
    )
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        raise DecodeError(f"Invalid timestamp in '{field_name}': {value!r}")


def _require(data: Any, key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a {kind} object, got {type(data).__name__}")
    if data.get(key) is None:
        raise DecodeError(f"{kind} is missing '{key}'")
    return data[key]


@dataclass(frozen=True)
class DeploymentRecord:
    """Source-host deployment bookkeeping entry."""

    id: int
    ref: str
    environment: str
    updated_at: datetime
    statuses_url: Optional[str] = None

    @classmethod
    def from_json(cls, data: Any) -> "DeploymentRecord":
        return cls(
            id=_require(data, "id", "deployment"),
            ref=data.get("ref") or "",
            environment=data.get("environment") or "",
            updated_at=parse_timestamp(data.get("updated_at"), "updated_at"),
            statuses_url=data.get("statuses_url"),
        )


@dataclass(frozen=True)
class PageDeployment:
    """One published build on the pages platform."""

    id: str
    created_on: datetime
    branch: Optional[str] = None

    @classmethod
    def from_json(cls, data: Any) -> "PageDeployment":
        deployment_id = _require(data, "id", "page deployment")
        trigger = data.get("deployment_trigger")
        metadata = trigger.get("metadata") if isinstance(trigger, dict) else None
        branch = metadata.get("branch") if isinstance(metadata, dict) else None
        return cls(
            id=str(deployment_id),
            created_on=parse_timestamp(data.get("created_on"), "created_on"),
            branch=branch,
        )


@dataclass(frozen=True)
class PagesProject:
    """A pages project and its per-environment deployment configs."""

    name: str
    production_branch: Optional[str] = None
    subdomain: Optional[str] = None
    deployment_configs: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> "PagesProject":
        configs = data.get("deployment_configs") if isinstance(data, dict) else None
        if configs is not None and not isinstance(configs, dict):
            raise DecodeError("Pages project 'deployment_configs' must be an object")
        return cls(
            name=_require(data, "name", "pages project"),
            production_branch=data.get("production_branch"),
            subdomain=data.get("subdomain"),
            deployment_configs=configs or {},
        )


def unwrap_result(payload: Any, kind: str) -> Any:
    """
    Extract ``result`` from a Cloudflare response envelope.

    A ``None`` payload (no content) yields ``None``.
    """
    if payload is None:
        return None
    if not isinstance(payload, dict) or "result" not in payload:
        raise DecodeError(f"Unexpected {kind} response envelope")
    return payload["result"]
