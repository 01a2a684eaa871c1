"""Data models for contributions module."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ContributionWeights:
    """
    Versioned weighting of raw activity into a contribution score.

    score = commits * commit + pull_requests * pull_request + reviews * review

    Integer weights keep the score exact; bump `version` whenever the
    weights change so past normalizations stay reproducible.
    """

    version: str
    commit: int
    pull_request: int
    review: int

    def score(self, activity: ActivityCounts) -> int:
        """Weighted score for one contributor's activity."""
        return (
            activity.commits * self.commit
            + activity.pull_requests * self.pull_request
            + activity.reviews * self.review
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "commit": self.commit,
            "pull_request": self.pull_request,
            "review": self.review,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContributionWeights:
        """Parse weights from a config mapping (keys as in to_dict)."""
        return cls(
            version=str(data["version"]),
            commit=int(data["commit"]),
            pull_request=int(data["pull_request"]),
            review=int(data["review"]),
        )


@dataclass(frozen=True)
class ActivityCounts:
    """Raw activity counts for one contributor."""

    commits: int = 0
    pull_requests: int = 0
    reviews: int = 0

    @property
    def is_empty(self) -> bool:
        """True when every count is zero."""
        return self.commits == 0 and self.pull_requests == 0 and self.reviews == 0


@dataclass(frozen=True)
class Contributor:
    """A repository contributor as reported by the contribution source."""

    id: str
    login: str
    activity: ActivityCounts
    avatar_url: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Contributor:
        """
        Parse a contributor item from the contribution API.

        Expected format:
        {
            "id": "123",
            "login": "octocat",
            "avatarUrl": "https://...",
            "contributions": {"commits": 10, "pullRequests": 2, "reviews": 4}
        }

        Counts may also appear at the top level of the item.
        """
        counts = data.get("contributions") or data
        return cls(
            id=str(data["id"]),
            login=data.get("login", ""),
            avatar_url=data.get("avatarUrl", ""),
            activity=ActivityCounts(
                commits=counts.get("commits", 0),
                pull_requests=counts.get("pullRequests", 0),
                reviews=counts.get("reviews", 0),
            ),
        )


@dataclass(frozen=True)
class ContributionShare:
    """A contributor's normalized share of the total measured activity."""

    contributor: Contributor
    score: int
    """Weighted activity score."""

    units: int
    """Share in fixed-point percent units (1 unit = 10**-precision percent)."""

    precision: int = 0

    @property
    def contributor_id(self) -> str:
        return self.contributor.id

    @property
    def contribution_percentage(self) -> Decimal:
        """Share as a percentage of 100."""
        return Decimal(self.units).scaleb(-self.precision)


@dataclass(frozen=True)
class NormalizedContributions:
    """
    Result of normalizing one contributor set.

    Shares keep the contributor ordering of the input.
    Units always sum to `scale` exactly.
    """

    shares: tuple[ContributionShare, ...]
    weights: ContributionWeights
    precision: int = 0

    @property
    def scale(self) -> int:
        """Fixed-point value representing 100%."""
        return 100 * 10**self.precision

    @property
    def total_units(self) -> int:
        return sum(s.units for s in self.shares)

    @property
    def contributor_ids(self) -> list[str]:
        return [s.contributor_id for s in self.shares]

    def get_share(self, contributor_id: str) -> ContributionShare | None:
        """Get share by contributor id."""
        for share in self.shares:
            if share.contributor_id == contributor_id:
                return share
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "weights": self.weights.to_dict(),
            "precision": self.precision,
            "shares": {
                s.contributor_id: {
                    "login": s.contributor.login,
                    "score": s.score,
                    "percentage": str(s.contribution_percentage),
                }
                for s in self.shares
            },
        }
