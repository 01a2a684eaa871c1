"""Contribution normalization: raw activity counts to percentage shares."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from bounty_distribution.utils.apportionment import apportion

from .errors import InvalidActivityError, NoContributionDataError
from .models import (
    ContributionShare,
    ContributionWeights,
    Contributor,
    NormalizedContributions,
)

logger = logging.getLogger(__name__)


class ContributionNormalizer:
    """
    Turn raw activity counts into percentage shares summing to exactly 100.

    Scores use the configured weights. Percentages are fixed-point with
    `precision` decimal places (0 = whole percent) and are rounded with the
    largest-remainder method, ties broken by input order.

    Usage:
        weights = ContributionWeights(version="v1", commit=3, pull_request=5, review=2)
        normalizer = ContributionNormalizer(weights)
        result = normalizer.normalize(contributors)
    """

    def __init__(self, weights: ContributionWeights, precision: int = 0):
        """
        Initialize normalizer.

        Args:
            weights: Versioned activity weights
            precision: Decimal places of the percentage scale

        Raises:
            InvalidActivityError: If weights or precision are invalid
        """
        for name in ("commit", "pull_request", "review"):
            value = getattr(weights, name)
            if not isinstance(value, int) or value < 0:
                raise InvalidActivityError(
                    f"Weight '{name}' must be a non-negative integer, got {value!r}"
                )
        if weights.commit + weights.pull_request + weights.review == 0:
            raise InvalidActivityError("At least one weight must be positive")
        if precision < 0:
            raise InvalidActivityError(f"Precision must be >= 0, got {precision}")

        self._weights = weights
        self._precision = precision

    @property
    def weights(self) -> ContributionWeights:
        return self._weights

    @property
    def scale(self) -> int:
        """Fixed-point value representing 100%."""
        return 100 * 10**self._precision

    def normalize(self, contributors: Sequence[Contributor]) -> NormalizedContributions:
        """
        Compute each contributor's share of the total weighted activity.

        Args:
            contributors: Ordered contributors with raw activity counts

        Returns:
            NormalizedContributions in input order, units summing to scale

        Raises:
            InvalidActivityError: If a count is negative or an id repeats
            NoContributionDataError: If there is no activity at all
        """
        self._check_input(contributors)

        scores = [self._weights.score(c.activity) for c in contributors]
        total_score = sum(scores)
        if total_score == 0:
            raise NoContributionDataError(
                f"No contribution activity across {len(contributors)} contributors"
            )

        units = apportion(scores, self.scale)
        shares = tuple(
            ContributionShare(
                contributor=contributor,
                score=score,
                units=unit,
                precision=self._precision,
            )
            for contributor, score, unit in zip(contributors, scores, units)
        )

        logger.info(
            f"Normalized {len(shares)} contributors "
            f"(weights={self._weights.version}, total_score={total_score})"
        )
        for share in shares:
            logger.debug(
                f"  {share.contributor.login or share.contributor_id}: "
                f"score={share.score} share={share.contribution_percentage}%"
            )

        return NormalizedContributions(
            shares=shares,
            weights=self._weights,
            precision=self._precision,
        )

    def _check_input(self, contributors: Sequence[Contributor]) -> None:
        if not contributors:
            raise NoContributionDataError("No contributors to normalize")

        seen: set[str] = set()
        for contributor in contributors:
            if contributor.id in seen:
                raise InvalidActivityError(f"Duplicate contributor id: {contributor.id}")
            seen.add(contributor.id)

            activity = contributor.activity
            for name, value in (
                ("commits", activity.commits),
                ("pull_requests", activity.pull_requests),
                ("reviews", activity.reviews),
            ):
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise InvalidActivityError(
                        f"{name} for {contributor.id} must be a non-negative integer, "
                        f"got {value!r}"
                    )
