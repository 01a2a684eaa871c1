"""
Distribution orchestration - sequences the on-chain steps of a run.

This module provides:
- DistributionOrchestrator: State machine over a DistributionRun
- DistributionRun: Allocation snapshot plus step progress
- RunStore: JSON persistence so interrupted runs resume where they stopped

Usage:
    from bounty_distribution.orchestration import DistributionOrchestrator, RunStore

    orchestrator = DistributionOrchestrator(ledger, store=RunStore(Path("runs")))
    run = orchestrator.create_run(allocation=allocation, ...)
    await orchestrator.resume(run)
"""

from .errors import (
    AllowanceApprovalFailedError,
    AllowanceCheckFailedError,
    InvalidProjectIndexError,
    InvalidStateTransitionError,
    RegistrationFailedError,
    RunAlreadyCompletedError,
    RunStoreError,
    SettlementFailedError,
    StepInProgressError,
)
from .models import (
    DistributionRun,
    RunState,
    StepFailure,
    StepName,
    StepRecord,
    TxState,
)
from .orchestrator import DistributionOrchestrator
from .store import RunStore

__all__ = [
    "DistributionOrchestrator",
    "RunStore",
    # Models
    "DistributionRun",
    "RunState",
    "StepFailure",
    "StepName",
    "StepRecord",
    "TxState",
    # Errors
    "AllowanceApprovalFailedError",
    "AllowanceCheckFailedError",
    "InvalidProjectIndexError",
    "InvalidStateTransitionError",
    "RegistrationFailedError",
    "RunAlreadyCompletedError",
    "RunStoreError",
    "SettlementFailedError",
    "StepInProgressError",
]
