"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from bounty_distribution.contributions import (
    ActivityCounts,
    ContributionWeights,
    Contributor,
)


def address(n: int) -> str:
    """Digits-only test address; identical to its checksummed form."""
    return f"0x{n:040d}"


@pytest.fixture
def weights() -> ContributionWeights:
    """Weights counting every activity once."""
    return ContributionWeights(version="test-v1", commit=1, pull_request=1, review=1)


@pytest.fixture
def make_contributor() -> Callable[..., Contributor]:
    """
    Factory for contributors.

    Usage:
        alice = make_contributor("alice", commits=10)
    """

    def _make(
        contributor_id: str,
        commits: int = 0,
        pull_requests: int = 0,
        reviews: int = 0,
    ) -> Contributor:
        return Contributor(
            id=contributor_id,
            login=contributor_id,
            activity=ActivityCounts(
                commits=commits,
                pull_requests=pull_requests,
                reviews=reviews,
            ),
        )

    return _make


@pytest.fixture
def make_address() -> Callable[[int], str]:
    """Factory for distinct valid addresses."""
    return address
