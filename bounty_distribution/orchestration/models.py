"""Data models for distribution orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from bounty_distribution.allocation.models import BountyAllocation


class RunState(str, Enum):
    """Lifecycle of a distribution run."""

    CREATED = "created"
    ALLOWANCE_CHECKED = "allowance_checked"
    ALLOWANCE_RAISING = "allowance_raising"
    ALLOWANCE_SUFFICIENT = "allowance_sufficient"
    CONTRIBUTIONS_REGISTERED = "contributions_registered"
    FUNDS_DISTRIBUTED = "funds_distributed"
    FAILED = "failed"


class StepName(str, Enum):
    """On-chain steps of a run, in execution order."""

    CHECK_ALLOWANCE = "check_allowance"
    RAISE_ALLOWANCE = "raise_allowance"
    REGISTER_CONTRIBUTIONS = "register_contributions"
    EXECUTE_DISTRIBUTION = "execute_distribution"


class TxState(str, Enum):
    """What is known about the transaction a step submitted."""

    NONE = "none"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass
class StepRecord:
    """Progress of one step. Confirmation is tracked, not just submission."""

    step: StepName
    confirmed: bool = False
    tx_hash: str | None = None
    tx_state: TxState = TxState.NONE
    attempts: int = 0
    confirmed_at: datetime | None = None

    @property
    def pending_tx_hash(self) -> str | None:
        """Hash of a submitted transaction whose outcome is unknown."""
        return self.tx_hash if self.tx_state == TxState.PENDING else None

    @property
    def has_pending_tx(self) -> bool:
        return self.pending_tx_hash is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "confirmed": self.confirmed,
            "tx_hash": self.tx_hash,
            "tx_state": self.tx_state.value,
            "attempts": self.attempts,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepRecord:
        confirmed_at = data.get("confirmed_at")
        return cls(
            step=StepName(data["step"]),
            confirmed=bool(data.get("confirmed", False)),
            tx_hash=data.get("tx_hash"),
            tx_state=TxState(data.get("tx_state", TxState.NONE.value)),
            attempts=int(data.get("attempts", 0)),
            confirmed_at=datetime.fromisoformat(confirmed_at) if confirmed_at else None,
        )


@dataclass(frozen=True)
class StepFailure:
    """Why a run is in FAILED and where it resumes from."""

    step: StepName
    error: str
    error_type: str
    resume_state: RunState
    """State the run re-enters on retry."""

    tx_hash: str | None = None
    failed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "error": self.error,
            "error_type": self.error_type,
            "resume_state": self.resume_state.value,
            "tx_hash": self.tx_hash,
            "failed_at": self.failed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepFailure:
        return cls(
            step=StepName(data["step"]),
            error=data.get("error", ""),
            error_type=data.get("error_type", ""),
            resume_state=RunState(data["resume_state"]),
            tx_hash=data.get("tx_hash"),
            failed_at=datetime.fromisoformat(data["failed_at"]),
        )


@dataclass
class DistributionRun:
    """
    One end-to-end attempt to distribute a bounty.

    The allocation snapshot is frozen at creation. Only the orchestrator
    changes state, step records and failure.
    """

    run_id: str
    allocation: BountyAllocation
    token_address: str
    owner_address: str
    spender_address: str
    project_index: int = 0
    """Index of the registered project passed to distributeFunds."""

    repository_id: str = ""
    weights_version: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    state: RunState = RunState.CREATED
    last_confirmed_step: StepName | None = None
    observed_allowance: int | None = None
    failure: StepFailure | None = None
    steps: dict[StepName, StepRecord] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for step in StepName:
            self.steps.setdefault(step, StepRecord(step=step))

    @property
    def total_amount(self) -> int:
        return self.allocation.total_amount

    @property
    def effective_state(self) -> RunState:
        """State used for transitions: the resume point when FAILED."""
        if self.state == RunState.FAILED and self.failure is not None:
            return self.failure.resume_state
        return self.state

    @property
    def is_completed(self) -> bool:
        return self.state == RunState.FUNDS_DISTRIBUTED

    def step(self, name: StepName) -> StepRecord:
        return self.steps[name]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the run store."""
        return {
            "run_id": self.run_id,
            "repository_id": self.repository_id,
            "weights_version": self.weights_version,
            "token_address": self.token_address,
            "owner_address": self.owner_address,
            "spender_address": self.spender_address,
            "project_index": self.project_index,
            "created_at": self.created_at.isoformat(),
            "state": self.state.value,
            "last_confirmed_step": (
                self.last_confirmed_step.value if self.last_confirmed_step else None
            ),
            "observed_allowance": (
                str(self.observed_allowance)
                if self.observed_allowance is not None
                else None
            ),
            "failure": self.failure.to_dict() if self.failure else None,
            "steps": {name.value: rec.to_dict() for name, rec in self.steps.items()},
            "allocation": self.allocation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DistributionRun:
        last_step = data.get("last_confirmed_step")
        allowance = data.get("observed_allowance")
        failure = data.get("failure")
        return cls(
            run_id=data["run_id"],
            allocation=BountyAllocation.from_dict(data["allocation"]),
            token_address=data["token_address"],
            owner_address=data["owner_address"],
            spender_address=data["spender_address"],
            project_index=int(data.get("project_index", 0)),
            repository_id=data.get("repository_id", ""),
            weights_version=data.get("weights_version", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            state=RunState(data["state"]),
            last_confirmed_step=StepName(last_step) if last_step else None,
            observed_allowance=int(allowance) if allowance is not None else None,
            failure=StepFailure.from_dict(failure) if failure else None,
            steps={
                StepName(name): StepRecord.from_dict(rec)
                for name, rec in data.get("steps", {}).items()
            },
        )
