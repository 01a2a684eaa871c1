"""
Runner configuration management.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any


def add_args(parser: argparse.ArgumentParser) -> None:
    """
    Add runner arguments to the parser.

    Arguments can be overridden by environment variables.
    """

    parser.add_argument(
        "--plan",
        type=str,
        help="Path to the distribution plan YAML file.",
        default=os.environ.get("DISTRIBUTION_PLAN", "plan.yaml"),
    )

    parser.add_argument(
        "--ledger.rpc_url",
        dest="ledger_rpc_url",
        type=str,
        help="JSON-RPC endpoint of the target chain.",
        default=os.environ.get("LEDGER_RPC_URL", ""),
    )

    parser.add_argument(
        "--ledger.chain_id",
        dest="ledger_chain_id",
        type=int,
        help="Chain id used when signing transactions.",
        default=int(os.environ.get("LEDGER_CHAIN_ID", "0")),
    )

    parser.add_argument(
        "--ledger.private_key",
        dest="ledger_private_key",
        type=str,
        help="Signing key of the account funding the bounty.",
        default=os.environ.get("LEDGER_PRIVATE_KEY", ""),
    )

    parser.add_argument(
        "--ledger.distributor_address",
        dest="ledger_distributor_address",
        type=str,
        help="Address of the distribution contract (allowance spender).",
        default=os.environ.get("LEDGER_DISTRIBUTOR_ADDRESS", ""),
    )

    parser.add_argument(
        "--ledger.confirm_timeout",
        dest="ledger_confirm_timeout",
        type=float,
        help="Seconds to wait for a transaction to confirm.",
        default=float(os.environ.get("LEDGER_CONFIRM_TIMEOUT", "180")),
    )

    parser.add_argument(
        "--ledger.poll_interval",
        dest="ledger_poll_interval",
        type=float,
        help="Seconds between receipt polls.",
        default=float(os.environ.get("LEDGER_POLL_INTERVAL", "3")),
    )

    parser.add_argument(
        "--ledger.min_confirmations",
        dest="ledger_min_confirmations",
        type=int,
        help="Blocks required before a transaction counts as confirmed.",
        default=int(os.environ.get("LEDGER_MIN_CONFIRMATIONS", "1")),
    )

    parser.add_argument(
        "--source.url",
        dest="source_url",
        type=str,
        help="Base URL of the contributors API.",
        default=os.environ.get("CONTRIBUTION_SOURCE_URL", ""),
    )

    parser.add_argument(
        "--source.token",
        dest="source_token",
        type=str,
        help="Access token for the contributors API.",
        default=os.environ.get("CONTRIBUTION_SOURCE_TOKEN", ""),
    )

    parser.add_argument(
        "--run_store.path",
        dest="run_store_path",
        type=str,
        help="Directory where run state is persisted for resume.",
        default=os.environ.get("RUN_STORE_PATH", "./runs"),
    )

    parser.add_argument(
        "--dry_run",
        action="store_true",
        help="Compute and print the allocation without touching the chain.",
        default=os.environ.get("DRY_RUN", "false").lower() == "true",
    )

    parser.add_argument(
        "--log_level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
        default=os.environ.get("LOG_LEVEL", "INFO"),
    )


def get_config(args: list[str] | None = None) -> argparse.Namespace:
    """Parse arguments and return configuration."""
    parser = argparse.ArgumentParser(
        prog="bounty-distribute",
        description="Distribute a bounty to repository contributors on-chain",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_args(parser)
    config = parser.parse_args(args)

    # Convert paths to Path objects
    config.plan = Path(config.plan)
    config.run_store_path = Path(config.run_store_path)

    return config


def check_config(config: argparse.Namespace) -> None:
    """
    Validate configuration.

    Ledger settings are only required when the run touches the chain.

    Raises:
        ValueError: If configuration is invalid.
    """
    if not config.plan.exists():
        raise ValueError(f"Plan file not found: {config.plan}")

    if config.dry_run:
        return

    if not config.ledger_rpc_url:
        raise ValueError("--ledger.rpc_url is required (or set LEDGER_RPC_URL env var)")

    if config.ledger_chain_id <= 0:
        raise ValueError("--ledger.chain_id is required (or set LEDGER_CHAIN_ID env var)")

    if not config.ledger_private_key:
        raise ValueError(
            "--ledger.private_key is required (or set LEDGER_PRIVATE_KEY env var)"
        )

    if not config.ledger_distributor_address:
        raise ValueError(
            "--ledger.distributor_address is required "
            "(or set LEDGER_DISTRIBUTOR_ADDRESS env var)"
        )

    if config.ledger_confirm_timeout <= 0:
        raise ValueError("--ledger.confirm_timeout must be positive")


def config_to_dict(config: argparse.Namespace) -> dict[str, Any]:
    """Convert config to dictionary for logging."""
    return {
        "plan": str(config.plan),
        "ledger_rpc_url": config.ledger_rpc_url,
        "ledger_chain_id": config.ledger_chain_id,
        "ledger_private_key": "***" if config.ledger_private_key else "",
        "ledger_distributor_address": config.ledger_distributor_address,
        "ledger_confirm_timeout": config.ledger_confirm_timeout,
        "ledger_poll_interval": config.ledger_poll_interval,
        "ledger_min_confirmations": config.ledger_min_confirmations,
        "source_url": config.source_url,
        "source_token": "***" if config.source_token else "",
        "run_store_path": str(config.run_store_path),
        "dry_run": config.dry_run,
        "log_level": config.log_level,
    }


def setup_logging(level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
