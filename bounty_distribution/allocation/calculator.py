"""Allocation of a bounty total across normalized contribution shares."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from bounty_distribution.utils.apportionment import apportion

from .errors import InvalidAmountError, InvalidPercentageTableError
from .models import BountyAllocation, RecipientAmount

if TYPE_CHECKING:
    from bounty_distribution.contributions.models import NormalizedContributions
    from bounty_distribution.recipients.models import RecipientTable

logger = logging.getLogger(__name__)


def to_base_units(amount: str | int | float | Decimal, decimals: int) -> int:
    """
    Convert a display amount (e.g. "1.5" tokens) to smallest ledger units.

    Raises:
        InvalidAmountError: If the amount is not a positive number or has
            more fractional digits than `decimals`
    """
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Not a number: {amount!r}") from e

    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Bounty amount must be positive, got {amount!r}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(
            f"Amount {amount!r} has more than {decimals} decimal places"
        )
    return int(scaled)


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Convert smallest ledger units back to a display amount."""
    return Decimal(amount).scaleb(-decimals)


class AllocationCalculator:
    """
    Split a bounty total by contribution share with exact conservation.

    Each recipient first gets floor(total * units / scale). The residual is
    handed out one unit at a time by largest fractional remainder, ties
    going to the earlier contributor. Nothing is lost or created.

    Usage:
        calculator = AllocationCalculator()
        allocation = calculator.allocate(total_amount, normalized, recipients)
    """

    def split(self, total_amount: int, units: Sequence[int], scale: int) -> list[int]:
        """
        Split total_amount by a raw percentage table.

        Args:
            total_amount: Bounty in smallest ledger units (> 0)
            units: Share units per recipient, in canonical order
            scale: Value of units representing 100%

        Returns:
            Amounts in the order of `units`, summing to total_amount

        Raises:
            InvalidAmountError: If total_amount is not a positive integer
            InvalidPercentageTableError: If units are negative or do not sum to scale
        """
        self._check_amount(total_amount)
        if not units:
            raise InvalidPercentageTableError("Percentage table is empty")
        if any(u < 0 for u in units):
            raise InvalidPercentageTableError("Percentages must be non-negative")
        if sum(units) != scale:
            raise InvalidPercentageTableError(
                f"Percentages sum to {sum(units)}, expected {scale}"
            )
        return apportion(units, total_amount)

    def allocate(
        self,
        total_amount: int,
        contributions: NormalizedContributions,
        recipients: RecipientTable,
    ) -> BountyAllocation:
        """
        Compute each recipient's payout.

        Args:
            total_amount: Bounty in smallest ledger units (> 0)
            contributions: Normalized shares (defines canonical order)
            recipients: Finalized address bindings for the same contributors

        Returns:
            BountyAllocation whose amounts sum to total_amount

        Raises:
            InvalidAmountError: If total_amount is not a positive integer
            InvalidPercentageTableError: If shares and bindings do not match
        """
        share_ids = contributions.contributor_ids
        if sorted(share_ids) != sorted(recipients.contributor_ids):
            raise InvalidPercentageTableError(
                "Recipient bindings do not cover the same contributors as the shares"
            )

        units = [s.units for s in contributions.shares]
        amounts = self.split(total_amount, units, contributions.scale)

        entries = tuple(
            RecipientAmount(
                contributor_id=share.contributor_id,
                address=recipients.address_for(share.contributor_id),
                units=share.units,
                amount=amount,
            )
            for share, amount in zip(contributions.shares, amounts)
        )
        allocation = BountyAllocation(
            total_amount=total_amount,
            entries=entries,
            precision=contributions.precision,
        )

        logger.info(f"Allocated {total_amount} across {len(entries)} recipients")
        for entry in entries:
            logger.debug(f"  {entry.contributor_id} ({entry.address}): {entry.amount}")

        return allocation

    def _check_amount(self, total_amount: int) -> None:
        if isinstance(total_amount, bool) or not isinstance(total_amount, int):
            raise InvalidAmountError(
                f"Bounty amount must be an integer in smallest units, got {total_amount!r}"
            )
        if total_amount <= 0:
            raise InvalidAmountError(f"Bounty amount must be positive, got {total_amount}")
