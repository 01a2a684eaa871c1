"""
Allocation module: bounty total to per-recipient amounts.

Amounts are integers in the ledger's smallest unit and always sum to the
bounty total exactly.

Usage:
    from bounty_distribution.allocation import AllocationCalculator, to_base_units

    total = to_base_units("1.0", decimals=18)
    allocation = AllocationCalculator().allocate(total, normalized, recipients)
"""

from .calculator import AllocationCalculator, from_base_units, to_base_units
from .errors import InvalidAmountError, InvalidPercentageTableError
from .models import BountyAllocation, RecipientAmount

__all__ = [
    "AllocationCalculator",
    "from_base_units",
    "to_base_units",
    # Models
    "BountyAllocation",
    "RecipientAmount",
    # Errors
    "InvalidAmountError",
    "InvalidPercentageTableError",
]
