"""Type-safe ledger data models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TxStatus(str, Enum):
    """Final outcome of a mined transaction."""

    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class TxHandle:
    """
    Handle for a submitted transaction.

    Submission only means the node accepted it; confirmation must be
    awaited separately before trusting the effect.
    """

    tx_hash: str
    nonce: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"tx_hash": self.tx_hash, "nonce": self.nonce}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TxHandle:
        return cls(tx_hash=data["tx_hash"], nonce=data.get("nonce"))


@dataclass(frozen=True)
class TxReceipt:
    """Subset of an EVM transaction receipt."""

    tx_hash: str
    status: TxStatus
    block_number: int
    gas_used: int = 0

    @classmethod
    def from_rpc_response(cls, data: dict[str, Any]) -> TxReceipt:
        """Parse an eth_getTransactionReceipt result."""
        status = _to_int(data.get("status", 0))
        return cls(
            tx_hash=data.get("transactionHash", ""),
            status=TxStatus.CONFIRMED if status == 1 else TxStatus.REVERTED,
            block_number=_to_int(data.get("blockNumber", 0)),
            gas_used=_to_int(data.get("gasUsed", 0)),
        )


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        raw = value.strip()
        return int(raw, 16) if raw.startswith("0x") else int(raw)
    raise ValueError(f"Invalid numeric value: {value!r}")
