"""Custom exceptions for ledger interactions."""


class LedgerError(Exception):
    """Base exception for ledger-related errors."""

    pass


class LedgerConnectionError(LedgerError):
    """
    Raised when the JSON-RPC endpoint cannot be reached.

    This can happen when:
    - RPC node is down or unreachable
    - Network connectivity issues
    - HTTP error status from the RPC gateway
    """

    pass


class LedgerRpcError(LedgerError):
    """
    Raised when the RPC node answers with an error object or garbage.

    This can happen when:
    - eth_call reverts
    - Invalid parameters
    - Response is not valid JSON-RPC
    """

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class TransactionSubmissionError(LedgerError):
    """
    Raised when a transaction cannot be signed or broadcast.

    This can happen when:
    - Node rejects the raw transaction (nonce, gas, balance)
    - Signing key is invalid
    - Broadcast was not acknowledged (connection lost mid-request)

    tx_hash is set when the signed transaction may have reached the node;
    it must be awaited, never signed again.
    """

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ConfirmationTimeoutError(LedgerError):
    """
    Raised when a submitted transaction is not confirmed in time.

    The transaction may still confirm later; tx_hash is kept so an
    operator can inspect it externally.
    """

    def __init__(self, message: str, tx_hash: str):
        super().__init__(message)
        self.tx_hash = tx_hash
