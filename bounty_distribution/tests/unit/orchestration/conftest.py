"""Shared fixtures for orchestration unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence

import pytest

from bounty_distribution.allocation.models import BountyAllocation, RecipientAmount
from bounty_distribution.chain.addresses import is_valid_address
from bounty_distribution.chain.errors import (
    ConfirmationTimeoutError,
    LedgerError,
    TransactionSubmissionError,
)
from bounty_distribution.chain.models import TxHandle, TxStatus
from bounty_distribution.orchestration import (
    DistributionOrchestrator,
    DistributionRun,
    RunStore,
)

OWNER = "0x" + "1" * 40
SPENDER = "0x" + "2" * 40
TOKEN = "0x" + "3" * 40

CONFIRM = "confirm"
REVERT = "revert"
TIMEOUT = "timeout"


class FakeLedger:
    """
    In-memory ledger.

    Outcomes of wait_for_confirmation are scripted per call kind
    ("approve", "register", "distribute") via `outcomes`; unscripted
    transactions confirm. A confirmed approval sets the allowance.
    Kinds listed in `unacknowledged` reach the ledger once but the
    submission itself raises with the hash attached.
    """

    def __init__(self, allowance: int = 0):
        self.allowance = allowance
        self.owner_address = OWNER
        self.distributor_address = SPENDER
        self.outcomes: dict[str, list[str]] = {}
        self.allowance_errors: list[LedgerError] = []
        self.allowance_gate: asyncio.Event | None = None
        self.unacknowledged: set[str] = set()
        self.calls: list[tuple] = []
        self._txs: dict[str, tuple[str, int | None]] = {}

    def is_valid_address(self, address: str) -> bool:
        return is_valid_address(address)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def get_allowance(self, owner: str, spender: str, token: str) -> int:
        self.calls.append(("get_allowance", owner, spender, token))
        if self.allowance_gate is not None:
            await self.allowance_gate.wait()
        if self.allowance_errors:
            raise self.allowance_errors.pop(0)
        return self.allowance

    async def approve(self, spender: str, token: str, amount: int) -> TxHandle:
        self.calls.append(("approve", spender, token, amount))
        return self._submit("approve", amount)

    async def register_contributions(
        self,
        addresses: Sequence[str],
        owner: str,
        percentages: Sequence[int],
        total_amount: int,
        token: str,
    ) -> TxHandle:
        self.calls.append(
            ("register", list(addresses), owner, list(percentages), total_amount, token)
        )
        return self._submit("register")

    async def distribute_funds(self, run_index: int) -> TxHandle:
        self.calls.append(("distribute", run_index))
        return self._submit("distribute")

    async def wait_for_confirmation(self, tx: TxHandle) -> TxStatus:
        self.calls.append(("wait", tx.tx_hash))
        kind, amount = self._txs[tx.tx_hash]
        scripted = self.outcomes.get(kind)
        outcome = scripted.pop(0) if scripted else CONFIRM

        if outcome == TIMEOUT:
            raise ConfirmationTimeoutError(
                f"Transaction {tx.tx_hash} not confirmed", tx_hash=tx.tx_hash
            )
        if outcome == REVERT:
            return TxStatus.REVERTED
        if kind == "approve" and amount is not None:
            self.allowance = amount
        return TxStatus.CONFIRMED

    def _submit(self, kind: str, amount: int | None = None) -> TxHandle:
        tx_hash = f"0x{len(self._txs) + 1:064x}"
        self._txs[tx_hash] = (kind, amount)
        if kind in self.unacknowledged:
            self.unacknowledged.discard(kind)
            raise TransactionSubmissionError(
                f"Broadcast of {tx_hash} not acknowledged", tx_hash=tx_hash
            )
        return TxHandle(tx_hash=tx_hash, nonce=len(self._txs))


def create_allocation(
    amounts: Sequence[int] = (60, 40),
    units: Sequence[int] | None = None,
) -> BountyAllocation:
    """Allocation over digits-only addresses 0x...01, 0x...02, ..."""
    units = list(units) if units is not None else list(amounts)
    return BountyAllocation(
        total_amount=sum(amounts),
        entries=tuple(
            RecipientAmount(
                contributor_id=f"c{i}",
                address=f"0x{i:040d}",
                units=unit,
                amount=amount,
            )
            for i, (unit, amount) in enumerate(zip(units, amounts), start=1)
        ),
    )


@pytest.fixture
def ledger() -> FakeLedger:
    """Fake ledger with zero allowance."""
    return FakeLedger()


@pytest.fixture
def store(tmp_path) -> RunStore:
    return RunStore(tmp_path / "runs")


@pytest.fixture
def orchestrator(ledger, store) -> DistributionOrchestrator:
    return DistributionOrchestrator(ledger, store=store)


@pytest.fixture
def make_run(orchestrator) -> Callable[..., DistributionRun]:
    """
    Factory creating a run through the orchestrator.

    Usage:
        run = make_run()                      # 60/40 split of 100
        run = make_run(amounts=(34, 33, 33))
    """

    def _make(
        amounts: Sequence[int] = (60, 40),
        project_index: int = 0,
        run_id: str | None = None,
    ) -> DistributionRun:
        return orchestrator.create_run(
            allocation=create_allocation(amounts),
            token_address=TOKEN,
            owner_address=OWNER,
            spender_address=SPENDER,
            project_index=project_index,
            run_id=run_id,
        )

    return _make


@pytest.fixture
def make_allocation() -> Callable[..., BountyAllocation]:
    """Factory for hand-built allocations (see create_allocation)."""
    return create_allocation
