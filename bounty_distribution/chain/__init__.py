"""Ledger interaction layer over EVM JSON-RPC."""

from .addresses import is_valid_address, normalize_address
from .client import EvmLedgerClient, LedgerClient, LedgerConfig, encode_call
from .errors import (
    ConfirmationTimeoutError,
    LedgerConnectionError,
    LedgerError,
    LedgerRpcError,
    TransactionSubmissionError,
)
from .models import TxHandle, TxReceipt, TxStatus

__all__ = [
    # Client
    "EvmLedgerClient",
    "LedgerClient",
    "LedgerConfig",
    "encode_call",
    # Addresses
    "is_valid_address",
    "normalize_address",
    # Errors
    "ConfirmationTimeoutError",
    "LedgerConnectionError",
    "LedgerError",
    "LedgerRpcError",
    "TransactionSubmissionError",
    # Models
    "TxHandle",
    "TxReceipt",
    "TxStatus",
]
