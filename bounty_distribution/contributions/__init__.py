"""
Contributions module: raw repository activity to contribution shares.

This module handles:
- Fetching per-contributor activity counts (commits, pull requests, reviews)
- Weighting activity with a versioned, explicit weight table
- Normalizing scores to percentages that sum to exactly 100

Usage:
    from bounty_distribution.contributions import (
        ContributionNormalizer,
        ContributionWeights,
        HttpContributionSource,
    )

    contributors = await source.fetch_contributors("repo-id", token)
    weights = ContributionWeights(version="v1", commit=3, pull_request=5, review=2)
    normalized = ContributionNormalizer(weights).normalize(contributors)
"""

from .errors import (
    ContributionSourceAuthError,
    ContributionSourceError,
    InvalidActivityError,
    NoContributionDataError,
)
from .models import (
    ActivityCounts,
    ContributionShare,
    ContributionWeights,
    Contributor,
    NormalizedContributions,
)
from .normalizer import ContributionNormalizer
from .source import (
    ContributionSource,
    ContributionSourceConfig,
    HttpContributionSource,
    StaticContributionSource,
)

__all__ = [
    # Main components
    "ContributionNormalizer",
    "ContributionSource",
    "HttpContributionSource",
    "StaticContributionSource",
    # Configuration
    "ContributionSourceConfig",
    "ContributionWeights",
    # Models
    "ActivityCounts",
    "Contributor",
    "ContributionShare",
    "NormalizedContributions",
    # Errors
    "ContributionSourceAuthError",
    "ContributionSourceError",
    "InvalidActivityError",
    "NoContributionDataError",
]
