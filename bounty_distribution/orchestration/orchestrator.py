"""Distribution orchestrator - sequences the on-chain steps of a run."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from bounty_distribution.allocation.errors import (
    InvalidAmountError,
    InvalidPercentageTableError,
)
from bounty_distribution.chain.errors import LedgerError
from bounty_distribution.chain.models import TxHandle, TxStatus
from bounty_distribution.recipients.errors import (
    DuplicateAddressError,
    InvalidAddressError,
)

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
from .models import DistributionRun, RunState, StepFailure, StepName, TxState

if TYPE_CHECKING:
    from bounty_distribution.allocation.models import BountyAllocation
    from bounty_distribution.chain.client import LedgerClient
    from bounty_distribution.errors import OnChainStepError

    from .store import RunStore

logger = logging.getLogger(__name__)

_PRE_REGISTRATION = frozenset(
    {
        RunState.CREATED,
        RunState.ALLOWANCE_CHECKED,
        RunState.ALLOWANCE_RAISING,
        RunState.ALLOWANCE_SUFFICIENT,
    }
)


class DistributionOrchestrator:
    """
    Drive a DistributionRun through its on-chain steps.

    Pipeline steps:
    1. check_allowance: read the spender's allowance (no side effect)
    2. raise_allowance: approve the total if the allowance is short
    3. register_contributions: submit the contribution table
    4. execute_distribution: trigger settlement

    Each step waits for confirmation before the run advances; submission
    alone never counts. Submitted transaction hashes are persisted before
    waiting, so a retry re-awaits an earlier submission instead of sending
    a second one. Steps of one run never overlap; separate runs are
    independent.

    All dependencies injected; the store is optional.
    """

    def __init__(self, ledger: LedgerClient, store: RunStore | None = None):
        """
        Initialize orchestrator.

        Args:
            ledger: Ledger client used for every on-chain call
            store: Run store; every transition is saved when given
        """
        self._ledger = ledger
        self._store = store
        self._in_flight: set[str] = set()

    def create_run(
        self,
        *,
        allocation: BountyAllocation,
        token_address: str,
        owner_address: str,
        spender_address: str,
        project_index: int = 0,
        repository_id: str = "",
        weights_version: str = "",
        run_id: str | None = None,
    ) -> DistributionRun:
        """
        Create a run for a fixed allocation snapshot.

        Re-checks conservation and addresses so a hand-built allocation
        cannot reach the ledger.

        Raises:
            InvalidAmountError: If the total is not positive
            InvalidPercentageTableError: If amounts do not sum to the total
            InvalidAddressError: If any address fails ledger validation
            DuplicateAddressError: If two entries share an address
            InvalidProjectIndexError: If project_index is negative
        """
        if allocation.total_amount <= 0:
            raise InvalidAmountError(
                f"Bounty amount must be positive, got {allocation.total_amount}"
            )
        if not allocation.entries:
            raise InvalidPercentageTableError("Allocation has no recipients")
        if allocation.allocated != allocation.total_amount:
            raise InvalidPercentageTableError(
                f"Allocation sums to {allocation.allocated}, "
                f"expected {allocation.total_amount}"
            )
        if project_index < 0:
            raise InvalidProjectIndexError(
                f"Project index must be >= 0, got {project_index}"
            )

        for label, address in (
            ("token", token_address),
            ("owner", owner_address),
            ("spender", spender_address),
        ):
            if not self._ledger.is_valid_address(address):
                raise InvalidAddressError(f"Invalid {label} address: {address!r}")

        seen: dict[str, str] = {}
        for entry in allocation.entries:
            if not self._ledger.is_valid_address(entry.address):
                raise InvalidAddressError(
                    f"Invalid payout address for {entry.contributor_id}: {entry.address!r}"
                )
            key = entry.address.lower()
            if key in seen:
                raise DuplicateAddressError(
                    f"Address {entry.address} appears for {seen[key]} "
                    f"and {entry.contributor_id}",
                    address=entry.address,
                    existing_contributor_id=seen[key],
                )
            seen[key] = entry.contributor_id

        run = DistributionRun(
            run_id=run_id or uuid.uuid4().hex,
            allocation=allocation,
            token_address=token_address,
            owner_address=owner_address,
            spender_address=spender_address,
            project_index=project_index,
            repository_id=repository_id,
            weights_version=weights_version,
        )
        self._persist(run)
        logger.info(
            f"Created run {run.run_id}: {len(allocation.entries)} recipients, "
            f"total={allocation.total_amount}"
        )
        return run

    # --- Public steps ---

    async def check_allowance(self, run: DistributionRun) -> int:
        """
        Read the current allowance for the run's owner and spender.

        Moves to ALLOWANCE_SUFFICIENT if it covers the total, otherwise to
        ALLOWANCE_CHECKED.

        Returns:
            Current allowance in smallest units

        Raises:
            AllowanceCheckFailedError: If the ledger read fails
            InvalidStateTransitionError: If contributions are already registered
        """
        async with self._guard(run):
            return await self._check_allowance(run)

    async def raise_allowance(self, run: DistributionRun) -> None:
        """
        Approve the run total for the spender and wait for confirmation.

        Raises:
            AllowanceApprovalFailedError: On revert, timeout or rejection
            InvalidStateTransitionError: If the allowance was not checked first
        """
        async with self._guard(run):
            await self._raise_allowance(run)

    async def register_contributions(self, run: DistributionRun) -> None:
        """
        Register the contribution table and wait for confirmation.

        Raises:
            RegistrationFailedError: On revert, timeout or rejection
            InvalidStateTransitionError: If the allowance is not sufficient yet
        """
        async with self._guard(run):
            await self._register_contributions(run)

    async def execute_distribution(self, run: DistributionRun) -> None:
        """
        Trigger settlement and wait for confirmation.

        Raises:
            SettlementFailedError: On revert, timeout or rejection
            InvalidStateTransitionError: If contributions are not registered
        """
        async with self._guard(run):
            await self._execute_distribution(run)

    async def resume(self, run: DistributionRun) -> DistributionRun:
        """
        Drive the run to FUNDS_DISTRIBUTED from its last confirmed state.

        Stops at the first failing step by raising its error; calling
        resume again retries from there.

        Returns:
            The completed run

        Raises:
            RunAlreadyCompletedError: If funds were already distributed
            OnChainStepError: If a step fails
        """
        async with self._guard(run):
            logger.info(
                f"Resuming run {run.run_id} from {run.effective_state.value}"
            )
            while True:
                state = run.effective_state
                if state == RunState.FUNDS_DISTRIBUTED:
                    return run
                if state == RunState.CREATED:
                    await self._check_allowance(run)
                elif state in (RunState.ALLOWANCE_CHECKED, RunState.ALLOWANCE_RAISING):
                    await self._raise_allowance(run)
                elif state == RunState.ALLOWANCE_SUFFICIENT:
                    await self._register_contributions(run)
                elif state == RunState.CONTRIBUTIONS_REGISTERED:
                    await self._execute_distribution(run)
                else:
                    raise InvalidStateTransitionError(
                        f"Run {run.run_id} cannot resume from {state.value}"
                    )

    # --- Step implementations ---

    async def _check_allowance(self, run: DistributionRun) -> int:
        step = StepName.CHECK_ALLOWANCE
        resume_state = self._require(run, step, _PRE_REGISTRATION)

        try:
            allowance = await self._ledger.get_allowance(
                run.owner_address, run.spender_address, run.token_address
            )
        except LedgerError as e:
            raise self._fail(
                run, step, AllowanceCheckFailedError, e, resume_state=resume_state
            ) from e

        run.observed_allowance = allowance
        self._mark_confirmed(run, step)
        self._transition(run, RunState.ALLOWANCE_CHECKED)
        if allowance >= run.total_amount:
            self._transition(run, RunState.ALLOWANCE_SUFFICIENT)
        else:
            logger.info(
                f"Run {run.run_id}: allowance {allowance} below total "
                f"{run.total_amount}, approval needed"
            )
        return allowance

    async def _raise_allowance(self, run: DistributionRun) -> None:
        step = StepName.RAISE_ALLOWANCE
        self._require(
            run, step, {RunState.ALLOWANCE_CHECKED, RunState.ALLOWANCE_RAISING}
        )
        self._transition(run, RunState.ALLOWANCE_RAISING)
        record = run.step(step)

        # An earlier approval may have landed since the last attempt
        pending = record.pending_tx_hash
        if pending is not None:
            status = await self._await_tx(
                run,
                step,
                pending,
                AllowanceApprovalFailedError,
                RunState.ALLOWANCE_RAISING,
            )
            if status == TxStatus.CONFIRMED:
                run.observed_allowance = run.total_amount
                self._transition(run, RunState.ALLOWANCE_SUFFICIENT)
                return

        try:
            current = await self._ledger.get_allowance(
                run.owner_address, run.spender_address, run.token_address
            )
        except LedgerError as e:
            raise self._fail(
                run,
                step,
                AllowanceApprovalFailedError,
                e,
                resume_state=RunState.ALLOWANCE_RAISING,
            ) from e

        run.observed_allowance = current
        if current >= run.total_amount:
            logger.info(
                f"Run {run.run_id}: allowance {current} already covers total, "
                "skipping approval"
            )
            self._mark_confirmed(run, step)
            self._transition(run, RunState.ALLOWANCE_SUFFICIENT)
            return

        await self._submit_and_confirm(
            run,
            step,
            lambda: self._ledger.approve(
                run.spender_address, run.token_address, run.total_amount
            ),
            AllowanceApprovalFailedError,
            RunState.ALLOWANCE_RAISING,
        )
        run.observed_allowance = run.total_amount
        self._transition(run, RunState.ALLOWANCE_SUFFICIENT)

    async def _register_contributions(self, run: DistributionRun) -> None:
        step = StepName.REGISTER_CONTRIBUTIONS
        self._require(run, step, {RunState.ALLOWANCE_SUFFICIENT})
        record = run.step(step)

        pending = record.pending_tx_hash
        if pending is not None:
            status = await self._await_tx(
                run, step, pending, RegistrationFailedError, RunState.ALLOWANCE_SUFFICIENT
            )
            if status == TxStatus.CONFIRMED:
                self._transition(run, RunState.CONTRIBUTIONS_REGISTERED)
                return

        allocation = run.allocation
        await self._submit_and_confirm(
            run,
            step,
            lambda: self._ledger.register_contributions(
                allocation.addresses,
                run.owner_address,
                allocation.percentages,
                allocation.total_amount,
                run.token_address,
            ),
            RegistrationFailedError,
            RunState.ALLOWANCE_SUFFICIENT,
        )
        self._transition(run, RunState.CONTRIBUTIONS_REGISTERED)

    async def _execute_distribution(self, run: DistributionRun) -> None:
        step = StepName.EXECUTE_DISTRIBUTION
        self._require(run, step, {RunState.CONTRIBUTIONS_REGISTERED})
        record = run.step(step)

        pending = record.pending_tx_hash
        if pending is not None:
            status = await self._await_tx(
                run,
                step,
                pending,
                SettlementFailedError,
                RunState.CONTRIBUTIONS_REGISTERED,
            )
            if status == TxStatus.CONFIRMED:
                self._transition(run, RunState.FUNDS_DISTRIBUTED)
                return

        await self._submit_and_confirm(
            run,
            step,
            lambda: self._ledger.distribute_funds(run.project_index),
            SettlementFailedError,
            RunState.CONTRIBUTIONS_REGISTERED,
        )
        self._transition(run, RunState.FUNDS_DISTRIBUTED)
        logger.info(
            f"Run {run.run_id} distributed {run.total_amount} to "
            f"{len(run.allocation.entries)} recipients"
        )

    # --- Transaction handling ---

    async def _submit_and_confirm(
        self,
        run: DistributionRun,
        step: StepName,
        submit: Callable[[], Awaitable[TxHandle]],
        error_cls: type[OnChainStepError],
        resume_state: RunState,
    ) -> None:
        record = run.step(step)
        record.attempts += 1
        try:
            tx = await submit()
        except LedgerError as e:
            unacknowledged = getattr(e, "tx_hash", None)
            if unacknowledged:
                # May have reached the node; the next attempt awaits it
                record.tx_hash = unacknowledged
                record.tx_state = TxState.PENDING
            raise self._fail(run, step, error_cls, e, resume_state=resume_state) from e

        record.tx_hash = tx.tx_hash
        record.tx_state = TxState.PENDING
        # Saved before waiting so a crash here still knows about the tx
        try:
            self._persist(run)
        except RunStoreError as e:
            raise self._fail(
                run,
                step,
                error_cls,
                e,
                resume_state=resume_state,
                message=(
                    f"{step.value} submitted {tx.tx_hash} but the run "
                    f"could not be saved: {e}"
                ),
            ) from e
        logger.info(f"Run {run.run_id}: {step.value} submitted {tx.tx_hash}")

        status = await self._await_tx(run, step, tx.tx_hash, error_cls, resume_state)
        if status == TxStatus.REVERTED:
            raise self._fail(
                run,
                step,
                error_cls,
                None,
                resume_state=resume_state,
                message=f"{step.value} transaction {tx.tx_hash} reverted",
            )

    async def _await_tx(
        self,
        run: DistributionRun,
        step: StepName,
        tx_hash: str,
        error_cls: type[OnChainStepError],
        resume_state: RunState,
    ) -> TxStatus:
        record = run.step(step)

        try:
            status = await self._ledger.wait_for_confirmation(TxHandle(tx_hash=tx_hash))
        except LedgerError as e:
            raise self._fail(run, step, error_cls, e, resume_state=resume_state) from e

        if status == TxStatus.CONFIRMED:
            record.tx_state = TxState.CONFIRMED
            self._mark_confirmed(run, step)
        else:
            record.tx_state = TxState.REVERTED
            logger.warning(f"Run {run.run_id}: {step.value} tx {tx_hash} reverted")
            self._persist(run)
        return status

    # --- State bookkeeping ---

    @asynccontextmanager
    async def _guard(self, run: DistributionRun) -> AsyncIterator[None]:
        if run.is_completed:
            raise RunAlreadyCompletedError(
                f"Run {run.run_id} already distributed its funds"
            )
        if run.run_id in self._in_flight:
            raise StepInProgressError(f"Run {run.run_id} has a step in progress")

        self._in_flight.add(run.run_id)
        try:
            yield
        finally:
            self._in_flight.discard(run.run_id)

    def _require(
        self,
        run: DistributionRun,
        step: StepName,
        allowed: frozenset[RunState] | set[RunState],
    ) -> RunState:
        state = run.effective_state
        if state not in allowed:
            raise InvalidStateTransitionError(
                f"Cannot {step.value} for run {run.run_id} in state {state.value}"
            )
        return state

    def _transition(self, run: DistributionRun, new_state: RunState) -> None:
        old_state = run.state
        run.state = new_state
        run.failure = None
        self._persist(run)
        logger.info(f"Run {run.run_id}: {old_state.value} -> {new_state.value}")

    def _mark_confirmed(self, run: DistributionRun, step: StepName) -> None:
        record = run.step(step)
        record.confirmed = True
        record.confirmed_at = datetime.now(UTC)
        run.last_confirmed_step = step

    def _fail(
        self,
        run: DistributionRun,
        step: StepName,
        error_cls: type[OnChainStepError],
        cause: BaseException | None,
        *,
        resume_state: RunState,
        message: str | None = None,
    ) -> OnChainStepError:
        tx_hash = getattr(cause, "tx_hash", None) or run.step(step).tx_hash
        message = message or f"{step.value} failed: {cause}"
        run.state = RunState.FAILED
        run.failure = StepFailure(
            step=step,
            error=message,
            error_type=type(cause).__name__ if cause else error_cls.__name__,
            resume_state=resume_state,
            tx_hash=tx_hash,
        )
        try:
            self._persist(run)
        except RunStoreError as e:
            # The returned error still carries the hash
            logger.error(f"Run {run.run_id}: could not save failed state: {e}")
        logger.error(
            f"Run {run.run_id}: {message} "
            f"(tx={tx_hash or 'none'}, resume from {resume_state.value})"
        )
        return error_cls(message, step=step.value, tx_hash=tx_hash, cause=cause)

    def _persist(self, run: DistributionRun) -> None:
        if self._store is not None:
            self._store.save(run)
