"""Recipient registry: contributor -> payout address bindings for one run."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from bounty_distribution.chain.addresses import is_valid_address, normalize_address

from .errors import (
    DuplicateAddressError,
    IncompleteBindingError,
    InvalidAddressError,
    RegistryClosedError,
    UnknownContributorError,
)
from .models import RecipientBinding, RecipientTable

logger = logging.getLogger(__name__)


class RecipientRegistry:
    """
    Collect and validate payout addresses before any transaction exists.

    Enforces:
    - every address passes the ledger's format check
    - no two contributors share an address (case-insensitive)
    - only contributors of the active set can be bound
    - finalize() succeeds only when every contributor is bound

    State is in-memory only. After finalize() the registry is closed.

    Usage:
        registry = RecipientRegistry(normalized.contributor_ids)
        registry.bind("123", "0x...")
        table = registry.finalize()
    """

    def __init__(
        self,
        contributor_ids: Iterable[str],
        address_validator: Callable[[str], bool] = is_valid_address,
        address_normalizer: Callable[[str], str] = normalize_address,
    ):
        """
        Initialize registry for the active contributor set.

        Args:
            contributor_ids: Ids of every contributor in the run, in order
            address_validator: Ledger-specific syntactic address check
            address_normalizer: Canonical form for a valid address
        """
        self._contributor_ids = list(dict.fromkeys(contributor_ids))
        self._validator = address_validator
        self._normalizer = address_normalizer
        self._bindings: dict[str, str] = {}
        self._closed = False

    @property
    def is_finalized(self) -> bool:
        return self._closed

    @property
    def missing(self) -> list[str]:
        """Contributor ids still without an address, in contributor order."""
        return [cid for cid in self._contributor_ids if cid not in self._bindings]

    def validate_address(self, address: str) -> bool:
        """Pure format check; does not prove the address is reachable or owned."""
        try:
            return bool(self._validator(address))
        except (TypeError, ValueError):
            return False

    def bind(self, contributor_id: str, address: str) -> RecipientBinding:
        """
        Bind a payout address to a contributor.

        Re-binding the same contributor replaces its previous address.

        Raises:
            RegistryClosedError: If the registry was finalized
            UnknownContributorError: If the id is not in the active set
            InvalidAddressError: If the address fails validation
            DuplicateAddressError: If another contributor already has it
        """
        self._ensure_open()

        if contributor_id not in self._contributor_ids:
            raise UnknownContributorError(
                f"Contributor {contributor_id} is not part of this distribution"
            )
        if not self.validate_address(address):
            raise InvalidAddressError(
                f"Invalid payout address for {contributor_id}: {address!r}"
            )

        normalized = self._normalizer(address)
        for other_id, other_address in self._bindings.items():
            if other_id != contributor_id and other_address.lower() == normalized.lower():
                raise DuplicateAddressError(
                    f"Address {normalized} is already bound to contributor {other_id}",
                    address=normalized,
                    existing_contributor_id=other_id,
                )

        self._bindings[contributor_id] = normalized
        logger.debug(f"Bound {contributor_id} -> {normalized}")
        return RecipientBinding(contributor_id=contributor_id, address=normalized)

    def unbind(self, contributor_id: str) -> bool:
        """
        Remove a contributor's binding.

        Returns:
            True if a binding was removed, False if there was none
        """
        self._ensure_open()
        return self._bindings.pop(contributor_id, None) is not None

    def finalize(self) -> RecipientTable:
        """
        Close the registry and return the complete mapping.

        Raises:
            IncompleteBindingError: Listing every contributor without an address
        """
        self._ensure_open()

        missing = self.missing
        if missing:
            raise IncompleteBindingError(missing)

        self._closed = True
        table = RecipientTable(
            bindings=tuple(
                RecipientBinding(contributor_id=cid, address=self._bindings[cid])
                for cid in self._contributor_ids
            )
        )
        logger.info(f"Finalized {len(table)} recipient bindings")
        return table

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistryClosedError("Recipient registry is already finalized")
