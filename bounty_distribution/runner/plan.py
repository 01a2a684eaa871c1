"""
Distribution plan files.

A plan pins everything a run needs besides ledger credentials:

    run_id: acme-widgets-2026-10  # optional; derived from the contents if absent
    repository_id: "42"
    total_bounty: "1.0"          # display units, e.g. ETH
    project_index: 0
    precision: 0                 # decimal places of percentages
    token:
      address: "0x..."
      decimals: 18
    weights:
      version: v1
      commit: 3
      pull_request: 5
      review: 2
    recipients:
      "1001": "0x..."
    contributors:                # optional; fetched from the source if absent
      - id: "1001"
        login: alice
        commits: 10
        pull_requests: 2
        reviews: 1
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from bounty_distribution.contributions.models import (
    ActivityCounts,
    ContributionWeights,
    Contributor,
)
from bounty_distribution.errors import ValidationError


class PlanError(ValidationError):
    """
    Raised when a plan file is missing, unreadable or incomplete.

    This can happen when:
    - File not found or invalid YAML
    - Required keys missing (token, weights, recipients, total_bounty)
    - Values of the wrong type
    """

    pass


@dataclass(frozen=True)
class DistributionPlan:
    """Parsed plan file."""

    repository_id: str
    total_bounty: str
    token_address: str
    token_decimals: int
    weights: ContributionWeights
    recipients: dict[str, str]
    run_id: str
    project_index: int = 0
    precision: int = 0
    contributors: tuple[Contributor, ...] = field(default_factory=tuple)

    @property
    def has_static_contributors(self) -> bool:
        return bool(self.contributors)


def load_plan(path: Path) -> DistributionPlan:
    """
    Load and parse a plan file.

    Raises:
        PlanError: If the file is missing or malformed
    """
    if not path.exists():
        raise PlanError(f"Plan file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PlanError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise PlanError(f"Plan {path} must be a mapping")
    return parse_plan(data)


def parse_plan(data: dict[str, Any]) -> DistributionPlan:
    """
    Build a DistributionPlan from a mapping (see module docstring).

    A plan without run_id gets one derived from its contents, so running
    the same plan again resumes the same stored run.
    """
    missing = [
        key
        for key in ("repository_id", "total_bounty", "token", "weights", "recipients")
        if key not in data
    ]
    if missing:
        raise PlanError(f"Plan missing required keys: {', '.join(missing)}")

    try:
        token = data["token"]
        recipients = data["recipients"] or {}
        if not isinstance(recipients, dict):
            raise PlanError("'recipients' must map contributor id to address")

        plan = DistributionPlan(
            run_id=str(data["run_id"]) if data.get("run_id") else "",
            repository_id=str(data["repository_id"]),
            total_bounty=str(data["total_bounty"]),
            token_address=_parse_address(token["address"], "token.address"),
            token_decimals=int(token.get("decimals", 18)),
            project_index=int(data.get("project_index", 0)),
            precision=int(data.get("precision", 0)),
            weights=ContributionWeights.from_dict(data["weights"]),
            recipients={
                str(k): _parse_address(v, f"recipients.{k}")
                for k, v in recipients.items()
            },
            contributors=tuple(
                _parse_contributor(item) for item in data.get("contributors") or []
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise PlanError(f"Invalid plan: {e}") from e

    if not plan.run_id:
        plan = replace(plan, run_id=derive_run_id(plan))
    return plan


def derive_run_id(plan: DistributionPlan) -> str:
    """
    Stable run id from the plan's repository and a digest of its contents.

    Any change to amount, token, weights, recipients or contributors
    yields a different id.
    """
    content = {
        "repository_id": plan.repository_id,
        "total_bounty": plan.total_bounty,
        "token": [plan.token_address.lower(), plan.token_decimals],
        "project_index": plan.project_index,
        "precision": plan.precision,
        "weights": plan.weights.to_dict(),
        "recipients": sorted(
            [contributor_id, address.lower()]
            for contributor_id, address in plan.recipients.items()
        ),
        "contributors": sorted(
            [
                c.id,
                c.activity.commits,
                c.activity.pull_requests,
                c.activity.reviews,
            ]
            for c in plan.contributors
        ),
    }
    digest = hashlib.sha256(
        json.dumps(content, sort_keys=True, default=str).encode()
    ).hexdigest()
    prefix = re.sub(r"[^A-Za-z0-9_.-]+", "-", plan.repository_id).strip("-")
    return f"{prefix or 'plan'}-{digest[:16]}"


def _parse_address(value: Any, key: str) -> str:
    # Unquoted 0x... values load as hex integers
    if not isinstance(value, str):
        raise PlanError(
            f"'{key}' must be a quoted address string, got {value!r}; "
            "quote 0x addresses in YAML"
        )
    return value


def _parse_contributor(item: dict[str, Any]) -> Contributor:
    return Contributor(
        id=str(item["id"]),
        login=str(item.get("login", "")),
        avatar_url=str(item.get("avatar_url", "")),
        activity=ActivityCounts(
            commits=item.get("commits", 0),
            pull_requests=item.get("pull_requests", 0),
            reviews=item.get("reviews", 0),
        ),
    )
