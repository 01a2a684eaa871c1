"""Data models for recipients module."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RecipientBinding:
    """A contributor's payout address (checksummed)."""

    contributor_id: str
    address: str


@dataclass(frozen=True)
class RecipientTable:
    """
    Closed contributor -> address mapping produced by finalize().

    Bindings follow contributor order. Every contributor has exactly one
    address and no address appears twice.
    """

    bindings: tuple[RecipientBinding, ...]

    def __len__(self) -> int:
        return len(self.bindings)

    @property
    def contributor_ids(self) -> list[str]:
        return [b.contributor_id for b in self.bindings]

    @property
    def addresses(self) -> list[str]:
        return [b.address for b in self.bindings]

    def address_for(self, contributor_id: str) -> str:
        """Get address for a contributor. Raises KeyError if unbound."""
        for binding in self.bindings:
            if binding.contributor_id == contributor_id:
                return binding.address
        raise KeyError(contributor_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {b.contributor_id: b.address for b in self.bindings}
