"""Data models for allocation module."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RecipientAmount:
    """One recipient's slice of the bounty."""

    contributor_id: str
    address: str
    units: int
    """Contribution share in fixed-point percent units."""

    amount: int
    """Payout in the ledger's smallest unit."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "contributor_id": self.contributor_id,
            "address": self.address,
            "units": self.units,
            "amount": str(self.amount),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecipientAmount:
        return cls(
            contributor_id=data["contributor_id"],
            address=data["address"],
            units=int(data["units"]),
            amount=int(data["amount"]),
        )


@dataclass(frozen=True)
class BountyAllocation:
    """
    Immutable split of a bounty across recipients.

    Entries keep contributor order. Amounts sum to total_amount exactly.
    """

    total_amount: int
    entries: tuple[RecipientAmount, ...]
    precision: int = 0

    @property
    def scale(self) -> int:
        """Fixed-point value representing 100%."""
        return 100 * 10**self.precision

    @property
    def addresses(self) -> list[str]:
        return [e.address for e in self.entries]

    @property
    def percentages(self) -> list[int]:
        """Share units in entry order, as registered on-chain."""
        return [e.units for e in self.entries]

    @property
    def allocated(self) -> int:
        return sum(e.amount for e in self.entries)

    def amount_for(self, contributor_id: str) -> int:
        """Payout for a contributor (0 if not in the allocation)."""
        for entry in self.entries:
            if entry.contributor_id == contributor_id:
                return entry.amount
        return 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_amount": str(self.total_amount),
            "precision": self.precision,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BountyAllocation:
        return cls(
            total_amount=int(data["total_amount"]),
            precision=int(data.get("precision", 0)),
            entries=tuple(RecipientAmount.from_dict(e) for e in data["entries"]),
        )
