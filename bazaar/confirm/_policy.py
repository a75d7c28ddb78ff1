"""
Confirmation policy — timeouts and tombstone retention.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from bazaar.confirm._types import FlowKind


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Confirmation policy configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        policy = (
            Policy()
            .with_single_timeout(seconds=30)
            .with_checkout_timeout(seconds=60)
            .with_retention(minutes=5)
        )

    Note: Immutable — each method returns new Policy.
    """

    single_timeout: timedelta = timedelta(seconds=30)
    checkout_timeout: timedelta = timedelta(seconds=60)
    # Note: Resolved sessions stay as tombstones this long.
    # Зачем: A late duplicate "confirm" still sees SessionAlreadyResolved
    # instead of SessionNotFound.
    # Past this window a duplicate gets SessionNotFound; front-ends must
    # treat both as "already handled".
    retain_resolved: timedelta = timedelta(minutes=5)

    def timeout_for(self, kind: FlowKind) -> timedelta:
        match kind:
            case FlowKind.SINGLE:
                return self.single_timeout
            case FlowKind.CHECKOUT:
                return self.checkout_timeout

    def with_single_timeout(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """
        Set deadline for single-item buys.

        Example:
            .with_single_timeout(seconds=30)
        """
        timeout = delta if delta is not None else timedelta(
            seconds=seconds if seconds is not None else 30
        )
        return Policy(
            single_timeout=timeout,
            checkout_timeout=self.checkout_timeout,
            retain_resolved=self.retain_resolved,
        )

    def with_checkout_timeout(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """
        Set deadline for cart checkouts.

        Example:
            .with_checkout_timeout(seconds=60)
        """
        timeout = delta if delta is not None else timedelta(
            seconds=seconds if seconds is not None else 60
        )
        return Policy(
            single_timeout=self.single_timeout,
            checkout_timeout=timeout,
            retain_resolved=self.retain_resolved,
        )

    def with_retention(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """
        Set how long resolved sessions are remembered.

        Example:
            .with_retention(minutes=5)
            .with_retention(seconds=0)   # forget immediately
        """
        if delta is not None:
            retain = delta
        else:
            retain = timedelta(seconds=(seconds or 0) + (minutes or 0) * 60)
        return Policy(
            single_timeout=self.single_timeout,
            checkout_timeout=self.checkout_timeout,
            retain_resolved=retain,
        )


__all__ = ("Policy",)
