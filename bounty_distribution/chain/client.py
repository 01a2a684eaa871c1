"""JSON-RPC ledger client for ERC-20 approval and bounty distribution calls."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from eth_abi import decode, encode
from eth_account import Account
from eth_utils import function_signature_to_4byte_selector
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .addresses import is_valid_address, normalize_address
from .errors import (
    ConfirmationTimeoutError,
    LedgerConnectionError,
    LedgerRpcError,
    TransactionSubmissionError,
)
from .models import TxHandle, TxReceipt, TxStatus

logger = logging.getLogger(__name__)

# Retry decorator for read calls: 3 attempts with exponential backoff + jitter
_retry_on_connection_error = retry(
    wait=wait_exponential_jitter(initial=0.1, jitter=0.2),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(LedgerConnectionError),
    reraise=True,
)

ALLOWANCE_SIGNATURE = "allowance(address,address)"
APPROVE_SIGNATURE = "approve(address,uint256)"
REGISTER_SIGNATURE = "addProjectContributions(address[],address,uint256[],uint256,address)"
DISTRIBUTE_SIGNATURE = "distributeFunds(uint256)"


def encode_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> str:
    """ABI-encode a contract call as 0x-prefixed calldata."""
    selector = function_signature_to_4byte_selector(signature)
    return "0x" + (selector + encode(list(arg_types), list(args))).hex()


class LedgerClient(Protocol):
    """
    Ledger operations the distribution engine depends on.

    Every call may be slow. Every transaction handle must be confirmed
    with wait_for_confirmation before its effect is trusted.
    """

    @property
    def owner_address(self) -> str: ...

    @property
    def distributor_address(self) -> str: ...

    def is_valid_address(self, address: str) -> bool: ...

    async def get_allowance(self, owner: str, spender: str, token: str) -> int: ...

    async def approve(self, spender: str, token: str, amount: int) -> TxHandle: ...

    async def wait_for_confirmation(self, tx: TxHandle) -> TxStatus: ...

    async def register_contributions(
        self,
        addresses: Sequence[str],
        owner: str,
        percentages: Sequence[int],
        total_amount: int,
        token: str,
    ) -> TxHandle: ...

    async def distribute_funds(self, run_index: int) -> TxHandle: ...


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration for the EVM ledger client.

    Signer and chain identity are explicit here rather than taken from
    wallet or UI state.
    """

    rpc_url: str  # e.g., "https://sepolia.example.org"
    chain_id: int
    private_key: str
    distributor_address: str  # Distribution contract (allowance spender)
    timeout: float = 30.0  # Per-request timeout in seconds
    confirm_timeout_seconds: float = 180.0
    confirm_poll_seconds: float = 3.0
    min_confirmations: int = 1
    gas_limit: int | None = None  # None = eth_estimateGas with margin
    gas_margin_percent: int = 20


class EvmLedgerClient:
    """
    Ledger client speaking Ethereum JSON-RPC.

    Handles:
    - ERC-20 allowance reads and approvals
    - Registering the contribution table with the distribution contract
    - Triggering settlement
    - Polling receipts until confirmed, reverted or timed out

    Transactions are signed locally with the configured key and broadcast
    with eth_sendRawTransaction. Read calls retry on connection errors;
    a broadcast only ever resends the same signed bytes, and when it is
    never acknowledged the error carries the signed hash to await.
    """

    def __init__(self, config: LedgerConfig):
        """
        Initialize ledger client.

        Args:
            config: Ledger connection and signer configuration
        """
        self._config = config
        self._account = Account.from_key(config.private_key)
        self._distributor = normalize_address(config.distributor_address)

    @property
    def owner_address(self) -> str:
        """Address of the signing account."""
        return str(self._account.address)

    @property
    def distributor_address(self) -> str:
        return self._distributor

    def _client(self) -> httpx.AsyncClient:
        """Create a new HTTP client for a request."""
        return httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=self._config.timeout,
        )

    def is_valid_address(self, address: str) -> bool:
        return is_valid_address(address)

    @_retry_on_connection_error
    async def get_allowance(self, owner: str, spender: str, token: str) -> int:
        """
        Read the ERC-20 allowance granted by owner to spender.

        Retries on transient connection errors (3 attempts with exponential backoff).
        """
        data = encode_call(
            ALLOWANCE_SIGNATURE,
            ["address", "address"],
            [normalize_address(owner), normalize_address(spender)],
        )
        result = await self._rpc(
            "eth_call", [{"to": normalize_address(token), "data": data}, "latest"]
        )
        raw = bytes.fromhex(_strip_0x(result))
        if len(raw) < 32:
            raise LedgerRpcError(f"Empty allowance result from token {token}")
        (allowance,) = decode(["uint256"], raw)
        logger.debug(f"Allowance {owner} -> {spender} on {token}: {allowance}")
        return int(allowance)

    async def approve(self, spender: str, token: str, amount: int) -> TxHandle:
        """Submit an ERC-20 approve(spender, amount) transaction."""
        data = encode_call(
            APPROVE_SIGNATURE,
            ["address", "uint256"],
            [normalize_address(spender), amount],
        )
        tx = await self._send_transaction(normalize_address(token), data)
        logger.info(f"Submitted approval of {amount} for {spender}: {tx.tx_hash}")
        return tx

    async def register_contributions(
        self,
        addresses: Sequence[str],
        owner: str,
        percentages: Sequence[int],
        total_amount: int,
        token: str,
    ) -> TxHandle:
        """Submit the contribution table to the distribution contract."""
        if len(addresses) != len(percentages):
            raise ValueError(
                f"Got {len(addresses)} addresses but {len(percentages)} percentages"
            )
        data = encode_call(
            REGISTER_SIGNATURE,
            ["address[]", "address", "uint256[]", "uint256", "address"],
            [
                [normalize_address(a) for a in addresses],
                normalize_address(owner),
                list(percentages),
                total_amount,
                normalize_address(token),
            ],
        )
        tx = await self._send_transaction(self._distributor, data)
        logger.info(
            f"Submitted contribution registration for {len(addresses)} recipients: "
            f"{tx.tx_hash}"
        )
        return tx

    async def distribute_funds(self, run_index: int) -> TxHandle:
        """Submit distributeFunds(run_index) to the distribution contract."""
        data = encode_call(DISTRIBUTE_SIGNATURE, ["uint256"], [run_index])
        tx = await self._send_transaction(self._distributor, data)
        logger.info(f"Submitted settlement for project {run_index}: {tx.tx_hash}")
        return tx

    async def wait_for_confirmation(self, tx: TxHandle) -> TxStatus:
        """
        Poll for the transaction receipt.

        Returns:
            CONFIRMED once the receipt has status 1 and enough confirmations,
            REVERTED if the receipt has status 0

        Raises:
            ConfirmationTimeoutError: If no final outcome before the timeout
        """
        deadline = time.monotonic() + self._config.confirm_timeout_seconds
        while time.monotonic() < deadline:
            receipt = await self.get_receipt(tx.tx_hash)
            if receipt is not None:
                if receipt.status == TxStatus.REVERTED:
                    logger.warning(f"Transaction {tx.tx_hash} reverted")
                    return TxStatus.REVERTED
                if self._config.min_confirmations <= 1:
                    return TxStatus.CONFIRMED
                latest_block = await self._rpc_int("eth_blockNumber", [])
                confirmations = latest_block - receipt.block_number + 1
                if confirmations >= self._config.min_confirmations:
                    return TxStatus.CONFIRMED
            await asyncio.sleep(self._config.confirm_poll_seconds)

        raise ConfirmationTimeoutError(
            f"Transaction {tx.tx_hash} not confirmed within "
            f"{self._config.confirm_timeout_seconds:.0f}s",
            tx_hash=tx.tx_hash,
        )

    @_retry_on_connection_error
    async def get_receipt(self, tx_hash: str) -> TxReceipt | None:
        """Fetch a receipt, None while the transaction is pending."""
        result = await self._rpc("eth_getTransactionReceipt", [tx_hash])
        if not result:
            return None
        if not isinstance(result, dict):
            raise LedgerRpcError(f"Invalid receipt for {tx_hash}")
        return TxReceipt.from_rpc_response(result)

    async def _send_transaction(self, to: str, data: str) -> TxHandle:
        sender = self.owner_address
        nonce = await self._read_int("eth_getTransactionCount", [sender, "pending"])
        gas_price = await self._read_int("eth_gasPrice", [])
        gas = self._config.gas_limit
        if gas is None:
            estimate = await self._read_int(
                "eth_estimateGas", [{"from": sender, "to": to, "data": data}]
            )
            gas = estimate * (100 + self._config.gas_margin_percent) // 100

        tx = {
            "chainId": self._config.chain_id,
            "nonce": nonce,
            "to": to,
            "value": 0,
            "gas": gas,
            "gasPrice": gas_price,
            "data": data,
        }
        try:
            signed = self._account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise TransactionSubmissionError(f"Failed to sign transaction: {e}") from e

        raw_tx = getattr(signed, "raw_transaction", None) or getattr(
            signed, "rawTransaction", None
        )
        if raw_tx is None:
            raise TransactionSubmissionError("Signed transaction has no raw payload")
        raw_hex = _to_hex(raw_tx)

        # Known before broadcast so a lost acknowledgement can still be awaited
        signed_hash = _to_hex(signed.hash)

        try:
            tx_hash = await self._broadcast(raw_hex)
        except LedgerConnectionError as e:
            raise TransactionSubmissionError(
                f"Broadcast of {signed_hash} not acknowledged: {e}",
                tx_hash=signed_hash,
            ) from e
        except LedgerRpcError as e:
            if _is_already_known(e):
                logger.info(f"Transaction {signed_hash} already known to the node")
                return TxHandle(tx_hash=signed_hash, nonce=nonce)
            raise TransactionSubmissionError(f"Transaction rejected: {e}") from e

        if not isinstance(tx_hash, str) or not tx_hash.startswith("0x"):
            raise TransactionSubmissionError(
                f"Invalid transaction hash: {tx_hash!r}", tx_hash=signed_hash
            )
        return TxHandle(tx_hash=tx_hash, nonce=nonce)

    @_retry_on_connection_error
    async def _broadcast(self, raw_hex: str) -> Any:
        # Same signed bytes every attempt, so a resend cannot double-submit
        return await self._rpc("eth_sendRawTransaction", [raw_hex])

    @_retry_on_connection_error
    async def _read_int(self, method: str, params: list[Any]) -> int:
        return await self._rpc_int(method, params)

    async def _rpc_int(self, method: str, params: list[Any]) -> int:
        result = await self._rpc(method, params)
        if isinstance(result, int):
            return result
        if isinstance(result, str):
            return int(result, 16) if result.startswith("0x") else int(result)
        raise LedgerRpcError(f"Invalid numeric result for {method}: {result!r}")

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        async with self._client() as client:
            try:
                response = await client.post(self._config.rpc_url, json=payload)
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPStatusError as e:
                raise LedgerConnectionError(
                    f"RPC {method} failed: {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                raise LedgerConnectionError(f"Connection error: {e}") from e
            except ValueError as e:
                raise LedgerRpcError(f"Invalid JSON from RPC {method}: {e}") from e

        if not isinstance(body, dict):
            raise LedgerRpcError(f"Invalid JSON-RPC response for {method}")
        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise LedgerRpcError(
                    f"RPC {method} error: {error.get('message', 'unknown')}",
                    code=error.get("code"),
                )
            raise LedgerRpcError(f"RPC {method} error: {error}")
        return body.get("result")


def _strip_0x(value: Any) -> str:
    if not isinstance(value, str):
        raise LedgerRpcError(f"Expected hex string, got {value!r}")
    return value[2:] if value.startswith("0x") else value


def _to_hex(value: Any) -> str:
    text = value.hex() if isinstance(value, (bytes, bytearray)) else str(value)
    return text if text.startswith("0x") else "0x" + text


def _is_already_known(error: LedgerRpcError) -> bool:
    message = str(error).lower()
    return "already known" in message or "known transaction" in message
