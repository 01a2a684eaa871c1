"""
Recipients module: validated payout addresses per contributor.

Address and duplicate checks run here, before any transaction is built.

Usage:
    from bounty_distribution.recipients import RecipientRegistry

    registry = RecipientRegistry(["alice", "bob"])
    registry.bind("alice", "0x...")
    registry.bind("bob", "0x...")
    table = registry.finalize()
"""

from .errors import (
    DuplicateAddressError,
    IncompleteBindingError,
    InvalidAddressError,
    RegistryClosedError,
    UnknownContributorError,
)
from .models import RecipientBinding, RecipientTable
from .registry import RecipientRegistry

__all__ = [
    "RecipientRegistry",
    "RecipientBinding",
    "RecipientTable",
    # Errors
    "DuplicateAddressError",
    "IncompleteBindingError",
    "InvalidAddressError",
    "RegistryClosedError",
    "UnknownContributorError",
]
