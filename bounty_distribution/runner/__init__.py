"""
Runner infrastructure layer.

This package contains:
- DistributionRunner: Wires source, ledger, store and orchestrator for one plan
- Config: CLI argument parsing and configuration
- Plan: YAML plan file loading

The distribution business logic lives in the contributions, recipients,
allocation and orchestration packages.
"""

from .config import (
    add_args,
    check_config,
    config_to_dict,
    get_config,
    setup_logging,
)
from .plan import DistributionPlan, PlanError, load_plan, parse_plan
from .runner import DistributionRunner, main

__all__ = [
    "DistributionRunner",
    "DistributionPlan",
    "PlanError",
    "add_args",
    "check_config",
    "config_to_dict",
    "get_config",
    "load_plan",
    "main",
    "parse_plan",
    "setup_logging",
]
