"""
Error taxonomy shared by all distribution components.

Three families, each handled differently by callers:
- ValidationError: bad input caught before any transaction is built.
  Always recoverable locally.
- OnChainStepError: an approval, registration or settlement step failed
  or timed out. Carries the step name and any transaction hash obtained.
  Never retried automatically; the caller decides.
- StateError: out-of-order or repeated invocation. Always a caller bug.
"""

from __future__ import annotations


class BountyDistributionError(Exception):
    """Base exception for the distribution engine."""

    pass


# --- Validation errors ---


class ValidationError(BountyDistributionError):
    """Base exception for input rejected before any transaction is attempted."""

    pass


# --- On-chain step errors ---


class OnChainStepError(BountyDistributionError):
    """
    Base exception for a failed on-chain step.

    Attributes:
        step: Name of the step that failed (see orchestration.models.StepName)
        tx_hash: Hash of the transaction submitted for the step, if any
        cause: Underlying exception, if any (also set as __cause__)
    """

    def __init__(
        self,
        message: str,
        *,
        step: str,
        tx_hash: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.step = step
        self.tx_hash = tx_hash
        self.cause = cause


# --- State errors ---


class StateError(BountyDistributionError):
    """Base exception for invocations the current state does not allow."""

    pass
