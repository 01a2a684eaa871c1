"""Custom exceptions for distribution orchestration."""

from bounty_distribution.errors import (
    BountyDistributionError,
    OnChainStepError,
    StateError,
    ValidationError,
)

# --- Validation errors ---


class InvalidProjectIndexError(ValidationError):
    """Raised when the distribution contract project index is negative."""

    pass


# --- On-chain step errors ---


class AllowanceCheckFailedError(OnChainStepError):
    """Raised when the current allowance cannot be read from the ledger."""

    pass


class AllowanceApprovalFailedError(OnChainStepError):
    """
    Raised when raising the spending allowance fails.

    This can happen when:
    - The approval transaction reverts
    - Confirmation times out (tx_hash is kept)
    - The node rejects the transaction

    The run resumes from ALLOWANCE_RAISING; a retry re-checks the current
    allowance first so it never approves twice.
    """

    pass


class RegistrationFailedError(OnChainStepError):
    """
    Raised when registering the contribution table fails.

    This can happen when:
    - The registration transaction reverts
    - Confirmation times out (tx_hash is kept)
    - The node rejects the transaction

    A retry first re-awaits an unconfirmed earlier submission.
    """

    pass


class SettlementFailedError(OnChainStepError):
    """
    Raised when triggering settlement fails.

    This can happen when:
    - The distributeFunds transaction reverts
    - Confirmation times out (tx_hash is kept)
    """

    pass


# --- State errors ---


class InvalidStateTransitionError(StateError):
    """Raised when a step is invoked out of order."""

    pass


class RunAlreadyCompletedError(StateError):
    """Raised on any step call against a run whose funds were distributed."""

    pass


class StepInProgressError(StateError):
    """Raised when a step is invoked while another step of the run is running."""

    pass


# --- Run store errors ---


class RunStoreError(BountyDistributionError):
    """
    Raised when persisted run state cannot be read or written.

    This can happen when:
    - Run file is corrupted or has an unknown layout
    - Store directory is not writable
    """

    pass
