"""
Bounty distribution runner.

Wires the contribution source, normalizer, recipient registry, allocation
calculator and orchestrator into a single command-line flow.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from bounty_distribution.allocation import (
    AllocationCalculator,
    BountyAllocation,
    from_base_units,
    to_base_units,
)
from bounty_distribution.chain import EvmLedgerClient, LedgerClient, LedgerConfig
from bounty_distribution.chain.errors import LedgerError
from bounty_distribution.contributions import (
    ContributionNormalizer,
    ContributionSource,
    ContributionSourceConfig,
    ContributionSourceError,
    HttpContributionSource,
    NormalizedContributions,
    StaticContributionSource,
)
from bounty_distribution.errors import (
    OnChainStepError,
    StateError,
    ValidationError,
)
from bounty_distribution.orchestration import (
    DistributionOrchestrator,
    DistributionRun,
    RunStore,
    RunStoreError,
)
from bounty_distribution.recipients import RecipientRegistry

from .config import check_config, config_to_dict, get_config, setup_logging
from .plan import DistributionPlan, PlanError, load_plan

logger = logging.getLogger(__name__)


class DistributionRunner:
    """
    Run one plan end to end.

    Flow:
    1. Fetch contributors (plan counts or contributors API)
    2. Normalize to percentage shares
    3. Bind and finalize payout addresses
    4. Allocate the bounty in smallest units
    5. Create or load the run and drive it to completion

    A run found in the store under the plan's run_id is resumed from its
    saved snapshot; the allocation is never recomputed mid-run.
    """

    def __init__(
        self,
        config: argparse.Namespace,
        plan: DistributionPlan,
        *,
        source: ContributionSource | None = None,
        ledger: LedgerClient | None = None,
        store: RunStore | None = None,
    ):
        """
        Initialize runner.

        Args:
            config: Parsed runner configuration
            plan: Distribution plan
            source: Contribution source (built from plan/config if None)
            ledger: Ledger client (built from config on first use if None)
            store: Run store (built from config if None)
        """
        self.config = config
        self.plan = plan
        self._source = source or self._create_source()
        self._ledger = ledger
        self._store = store or RunStore(config.run_store_path)

    def _create_source(self) -> ContributionSource:
        if self.plan.has_static_contributors:
            return StaticContributionSource(self.plan.contributors)
        if not self.config.source_url:
            raise PlanError(
                "Plan has no contributors and --source.url is not set "
                "(or set CONTRIBUTION_SOURCE_URL env var)"
            )
        return HttpContributionSource(ContributionSourceConfig(url=self.config.source_url))

    def _ensure_ledger(self) -> LedgerClient:
        if self._ledger is None:
            self._ledger = EvmLedgerClient(
                LedgerConfig(
                    rpc_url=self.config.ledger_rpc_url,
                    chain_id=self.config.ledger_chain_id,
                    private_key=self.config.ledger_private_key,
                    distributor_address=self.config.ledger_distributor_address,
                    confirm_timeout_seconds=self.config.ledger_confirm_timeout,
                    confirm_poll_seconds=self.config.ledger_poll_interval,
                    min_confirmations=self.config.ledger_min_confirmations,
                )
            )
        return self._ledger

    async def build_allocation(self) -> tuple[NormalizedContributions, BountyAllocation]:
        """
        Compute shares and the per-recipient allocation for the plan.

        Raises:
            ContributionSourceError: If contributors cannot be fetched
            ValidationError: On any invalid count, address or amount
        """
        plan = self.plan
        contributors = await self._source.fetch_contributors(
            plan.repository_id, self.config.source_token or None
        )

        normalized = ContributionNormalizer(plan.weights, plan.precision).normalize(
            contributors
        )

        registry = RecipientRegistry(normalized.contributor_ids)
        for contributor_id, address in plan.recipients.items():
            registry.bind(contributor_id, address)
        recipients = registry.finalize()

        total = to_base_units(plan.total_bounty, plan.token_decimals)
        allocation = AllocationCalculator().allocate(total, normalized, recipients)
        return normalized, allocation

    async def execute(self) -> DistributionRun:
        """
        Create or resume the plan's run and drive it to completion.

        Raises:
            OnChainStepError: If a step fails (run stays resumable)
            StateError: If the run already completed
        """
        ledger = self._ensure_ledger()
        orchestrator = DistributionOrchestrator(ledger, store=self._store)

        run = self._store.load(self.plan.run_id)
        if run is not None:
            logger.info(
                f"Found stored run {run.run_id} in state {run.state.value}, resuming"
            )
        else:
            normalized, allocation = await self.build_allocation()
            run = orchestrator.create_run(
                allocation=allocation,
                token_address=self.plan.token_address,
                owner_address=ledger.owner_address,
                spender_address=ledger.distributor_address,
                project_index=self.plan.project_index,
                repository_id=self.plan.repository_id,
                weights_version=normalized.weights.version,
                run_id=self.plan.run_id,
            )

        return await orchestrator.resume(run)

    def print_allocation(self, allocation: BountyAllocation) -> None:
        """Print the allocation table."""
        decimals = self.plan.token_decimals
        print(f"Repository:   {self.plan.repository_id}")
        print(f"Total bounty: {from_base_units(allocation.total_amount, decimals)}")
        print()
        for entry in allocation.entries:
            percentage = from_base_units(entry.units, allocation.precision)
            print(
                f"  {entry.contributor_id:<20} {percentage:>7}%  "
                f"{from_base_units(entry.amount, decimals):>24}  {entry.address}"
            )


async def main(args: list[str] | None = None) -> int:
    """
    Command-line entry point.

    Returns:
        0 on success, 1 on validation or on-chain failure, 2 on bad configuration
    """
    # .env values become argument defaults
    load_dotenv()
    config = get_config(args)
    setup_logging(config.log_level)

    try:
        check_config(config)
        plan = load_plan(config.plan)
        runner = DistributionRunner(config, plan)
    except (ValueError, PlanError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    logger.info(f"Configuration: {config_to_dict(config)}")

    try:
        if config.dry_run:
            _, allocation = await runner.build_allocation()
            runner.print_allocation(allocation)
            return 0

        run = await runner.execute()
    except OnChainStepError as e:
        logger.error(
            f"Step {e.step} failed (tx={e.tx_hash or 'none'}): {e}. "
            "Re-run with the same plan to resume."
        )
        return 1
    except (
        ValidationError,
        StateError,
        ContributionSourceError,
        LedgerError,
        RunStoreError,
    ) as e:
        logger.error(f"Distribution aborted: {e}")
        return 1

    runner.print_allocation(run.allocation)
    print()
    print(f"Run {run.run_id}: {run.state.value}")
    for record in run.steps.values():
        if record.tx_hash:
            print(f"  {record.step.value:<24} {record.tx_hash}")
    return 0


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))
