"""Custom exceptions for recipients module."""

from __future__ import annotations

from bounty_distribution.errors import StateError, ValidationError


class InvalidAddressError(ValidationError):
    """
    Raised when a payout address fails format validation.

    This can happen when:
    - Address is not 0x-prefixed or not 40 hex digits
    - Mixed-case address with a wrong EIP-55 checksum
    """

    pass


class DuplicateAddressError(ValidationError):
    """
    Raised when two contributors bind the same address in one run.

    Comparison ignores case, so checksummed and lowercase forms collide.
    """

    def __init__(self, message: str, address: str, existing_contributor_id: str):
        super().__init__(message)
        self.address = address
        self.existing_contributor_id = existing_contributor_id


class UnknownContributorError(ValidationError):
    """Raised when binding an id outside the active contributor set."""

    pass


class IncompleteBindingError(ValidationError):
    """
    Raised on finalize when contributors still lack an address.

    Attributes:
        missing: Contributor ids without a binding, in contributor order
    """

    def __init__(self, missing: list[str]):
        super().__init__(
            f"{len(missing)} contributor(s) missing a payout address: "
            f"{', '.join(missing)}"
        )
        self.missing = missing


class RegistryClosedError(StateError):
    """Raised when modifying bindings after finalize()."""

    pass
