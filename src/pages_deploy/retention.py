"""
Retention policy shared by the GitHub and Cloudflare registries.

Both registries order their history newest first and hand it to
``select_excess``; the records it returns are the ones to remove.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetentionPolicy:
    """Number of most recent deployments kept per environment."""

    max_deployments: int

    def __post_init__(self):
        if self.max_deployments < 0:
            raise ValueError(
                f"max_deployments must not be negative, got {self.max_deployments}"
            )


def newest_first(records: Sequence[T], key: Callable[[T], datetime]) -> list[T]:
    """
    Sort records by timestamp, most recent first.

    The sort is stable, so records with equal timestamps keep API order.
    """
    return sorted(records, key=key, reverse=True)


def select_excess(records: Sequence[T], max_deployments: int) -> list[T]:
    """
    Select the records beyond the ``max_deployments`` most recent ones.

    Args:
        records: History ordered newest first
        max_deployments: How many records to keep; 0 removes everything

    Returns:
        The records at positions [max_deployments, len(records)), oldest last
    """
    policy = RetentionPolicy(max_deployments)
    if len(records) <= policy.max_deployments:
        return []
    return list(records[policy.max_deployments:])


@dataclass
class PruneResult:
    """Outcome of pruning one environment on one platform."""

    platform: str
    environment: str
    kept: int = 0
    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed
