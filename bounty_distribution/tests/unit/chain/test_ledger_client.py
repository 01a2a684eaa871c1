"""Tests for EvmLedgerClient."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from eth_abi import encode

from bounty_distribution.chain import (
    ConfirmationTimeoutError,
    EvmLedgerClient,
    LedgerConfig,
    LedgerConnectionError,
    LedgerRpcError,
    TransactionSubmissionError,
    TxHandle,
    TxStatus,
    encode_call,
    is_valid_address,
)
from bounty_distribution.chain.client import (
    ALLOWANCE_SIGNATURE,
    APPROVE_SIGNATURE,
    DISTRIBUTE_SIGNATURE,
    REGISTER_SIGNATURE,
)

RPC_URL = "https://rpc.example.org"
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
DISTRIBUTOR = "0x" + "2" * 40
TOKEN = "0x" + "3" * 40
TX_HASH = "0x" + "ab" * 32


def _word(value: int) -> str:
    return "0x" + encode(["uint256"], [value]).hex()


def _rpc_handler(overrides: dict | None = None):
    """Build an _rpc side effect answering common methods."""
    responses = {
        "eth_getTransactionCount": "0x5",
        "eth_gasPrice": "0x3b9aca00",
        "eth_estimateGas": "0x5208",
        "eth_sendRawTransaction": TX_HASH,
        "eth_blockNumber": "0xa",
    }
    responses.update(overrides or {})

    async def handler(method, params):
        value = responses[method]
        if isinstance(value, Exception):
            raise value
        return value

    return handler


@pytest.fixture
def config() -> LedgerConfig:
    return LedgerConfig(
        rpc_url=RPC_URL,
        chain_id=11155111,
        private_key=PRIVATE_KEY,
        distributor_address=DISTRIBUTOR,
        confirm_timeout_seconds=0.05,
        confirm_poll_seconds=0.01,
    )


@pytest.fixture
def client(config) -> EvmLedgerClient:
    return EvmLedgerClient(config)


class TestEncodeCall:
    """Tests for calldata encoding."""

    def test_known_selectors(self):
        assert encode_call(
            APPROVE_SIGNATURE, ["address", "uint256"], [DISTRIBUTOR, 1]
        ).startswith("0x095ea7b3")
        assert encode_call(
            ALLOWANCE_SIGNATURE, ["address", "address"], [DISTRIBUTOR, TOKEN]
        ).startswith("0xdd62ed3e")

    def test_argument_words(self):
        data = encode_call(DISTRIBUTE_SIGNATURE, ["uint256"], [7])

        # selector + one 32-byte word
        assert len(data) == 2 + 8 + 64
        assert data.endswith("7")


class TestIdentity:
    """Tests for signer and contract addresses."""

    def test_owner_address_from_key(self, client):
        assert is_valid_address(client.owner_address)

    def test_distributor_is_checksummed(self, client):
        assert client.distributor_address == DISTRIBUTOR


class TestGetAllowance:
    """Tests for get_allowance()."""

    async def test_decodes_uint256(self, client):
        with patch.object(
            client, "_rpc", new_callable=AsyncMock, return_value=_word(10**24)
        ) as mock_rpc:
            allowance = await client.get_allowance(client.owner_address, DISTRIBUTOR, TOKEN)

        assert allowance == 10**24
        method, params = mock_rpc.call_args.args
        assert method == "eth_call"
        assert params[0]["to"] == TOKEN
        assert params[0]["data"].startswith("0xdd62ed3e")

    async def test_empty_result_raises(self, client):
        with patch.object(client, "_rpc", new_callable=AsyncMock, return_value="0x"):
            with pytest.raises(LedgerRpcError):
                await client.get_allowance(client.owner_address, DISTRIBUTOR, TOKEN)

    async def test_connection_errors_retried(self, client):
        with patch.object(
            client,
            "_rpc",
            new_callable=AsyncMock,
            side_effect=LedgerConnectionError("down"),
        ) as mock_rpc:
            with pytest.raises(LedgerConnectionError):
                await client.get_allowance(client.owner_address, DISTRIBUTOR, TOKEN)

        assert mock_rpc.call_count == 3


class TestTransactions:
    """Tests for signed transaction submission."""

    async def test_approve_returns_handle(self, client):
        with patch.object(
            client, "_rpc", new_callable=AsyncMock, side_effect=_rpc_handler()
        ) as mock_rpc:
            tx = await client.approve(DISTRIBUTOR, TOKEN, 500)

        assert tx == TxHandle(tx_hash=TX_HASH, nonce=5)
        methods = [call.args[0] for call in mock_rpc.call_args_list]
        assert methods == [
            "eth_getTransactionCount",
            "eth_gasPrice",
            "eth_estimateGas",
            "eth_sendRawTransaction",
        ]
        estimate = mock_rpc.call_args_list[2].args[1][0]
        assert estimate["to"] == TOKEN
        assert estimate["data"] == encode_call(
            APPROVE_SIGNATURE, ["address", "uint256"], [DISTRIBUTOR, 500]
        )

    async def test_fixed_gas_limit_skips_estimate(self, config):
        client = EvmLedgerClient(
            LedgerConfig(
                rpc_url=config.rpc_url,
                chain_id=config.chain_id,
                private_key=config.private_key,
                distributor_address=config.distributor_address,
                gas_limit=200_000,
            )
        )
        with patch.object(
            client, "_rpc", new_callable=AsyncMock, side_effect=_rpc_handler()
        ) as mock_rpc:
            await client.distribute_funds(0)

        methods = [call.args[0] for call in mock_rpc.call_args_list]
        assert "eth_estimateGas" not in methods

    async def test_register_contributions_calldata(self, client):
        addresses = ["0x" + "0" * 39 + "1", "0x" + "0" * 39 + "2"]
        with patch.object(
            client, "_rpc", new_callable=AsyncMock, side_effect=_rpc_handler()
        ) as mock_rpc:
            await client.register_contributions(
                addresses, client.owner_address, [60, 40], 10**18, TOKEN
            )

        estimate = mock_rpc.call_args_list[2].args[1][0]
        assert estimate["to"] == DISTRIBUTOR
        assert estimate["data"] == encode_call(
            REGISTER_SIGNATURE,
            ["address[]", "address", "uint256[]", "uint256", "address"],
            [addresses, client.owner_address, [60, 40], 10**18, TOKEN],
        )

    async def test_register_length_mismatch(self, client):
        with pytest.raises(ValueError, match="percentages"):
            await client.register_contributions(
                ["0x" + "1" * 40], client.owner_address, [60, 40], 100, TOKEN
            )

    async def test_rejected_broadcast(self, client):
        handler = _rpc_handler(
            {"eth_sendRawTransaction": LedgerRpcError("nonce too low", code=-32000)}
        )
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            with pytest.raises(TransactionSubmissionError, match="nonce too low"):
                await client.distribute_funds(0)

    async def test_rejected_broadcast_has_no_hash(self, client):
        """A node rejection means nothing was submitted."""
        handler = _rpc_handler(
            {"eth_sendRawTransaction": LedgerRpcError("insufficient funds")}
        )
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            with pytest.raises(TransactionSubmissionError) as exc_info:
                await client.distribute_funds(0)

        assert exc_info.value.tx_hash is None

    async def test_unacknowledged_broadcast_keeps_signed_hash(self, client):
        """A lost acknowledgement resends the same bytes, then reports the hash."""
        handler = _rpc_handler(
            {"eth_sendRawTransaction": LedgerConnectionError("read timeout")}
        )
        with patch.object(
            client, "_rpc", new_callable=AsyncMock, side_effect=handler
        ) as mock_rpc:
            with pytest.raises(TransactionSubmissionError) as exc_info:
                await client.distribute_funds(0)

        methods = [call.args[0] for call in mock_rpc.call_args_list]
        broadcasts = [
            call.args[1]
            for call in mock_rpc.call_args_list
            if call.args[0] == "eth_sendRawTransaction"
        ]
        assert len(broadcasts) == 3
        assert all(params == broadcasts[0] for params in broadcasts)
        assert methods.count("eth_getTransactionCount") == 1
        tx_hash = exc_info.value.tx_hash
        assert tx_hash is not None
        assert tx_hash.startswith("0x")
        assert len(tx_hash) == 66

    async def test_already_known_returns_signed_hash(self, client):
        handler = _rpc_handler(
            {"eth_sendRawTransaction": LedgerRpcError("already known", code=-32000)}
        )
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            tx = await client.distribute_funds(0)

        assert tx.nonce == 5
        assert len(tx.tx_hash) == 66

    async def test_invalid_tx_hash(self, client):
        handler = _rpc_handler({"eth_sendRawTransaction": None})
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            with pytest.raises(TransactionSubmissionError):
                await client.distribute_funds(0)


class TestWaitForConfirmation:
    """Tests for wait_for_confirmation()."""

    async def test_confirmed(self, client):
        receipt = {"transactionHash": TX_HASH, "status": "0x1", "blockNumber": "0xa"}
        handler = _rpc_handler({"eth_getTransactionReceipt": receipt})
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            assert await client.wait_for_confirmation(TxHandle(TX_HASH)) == TxStatus.CONFIRMED

    async def test_reverted(self, client):
        receipt = {"transactionHash": TX_HASH, "status": "0x0", "blockNumber": "0xa"}
        handler = _rpc_handler({"eth_getTransactionReceipt": receipt})
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            assert await client.wait_for_confirmation(TxHandle(TX_HASH)) == TxStatus.REVERTED

    async def test_timeout_keeps_hash(self, client):
        handler = _rpc_handler({"eth_getTransactionReceipt": None})
        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler):
            with pytest.raises(ConfirmationTimeoutError) as exc_info:
                await client.wait_for_confirmation(TxHandle(TX_HASH))

        assert exc_info.value.tx_hash == TX_HASH

    async def test_waits_for_min_confirmations(self, config):
        client = EvmLedgerClient(
            LedgerConfig(
                rpc_url=config.rpc_url,
                chain_id=config.chain_id,
                private_key=config.private_key,
                distributor_address=config.distributor_address,
                confirm_timeout_seconds=1.0,
                confirm_poll_seconds=0.01,
                min_confirmations=3,
            )
        )
        receipt = {"transactionHash": TX_HASH, "status": "0x1", "blockNumber": "0xa"}
        blocks = iter(["0xa", "0xb", "0xc"])

        async def handler(method, params):
            if method == "eth_getTransactionReceipt":
                return receipt
            return next(blocks)

        with patch.object(client, "_rpc", new_callable=AsyncMock, side_effect=handler) as mock_rpc:
            status = await client.wait_for_confirmation(TxHandle(TX_HASH))

        assert status == TxStatus.CONFIRMED
        block_calls = [c for c in mock_rpc.call_args_list if c.args[0] == "eth_blockNumber"]
        assert len(block_calls) == 3


class TestRpcTransport:
    """Tests for the JSON-RPC transport."""

    async def test_returns_result(self, client):
        response = httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "result": "0x10"},
            request=httpx.Request("POST", RPC_URL),
        )
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock, return_value=response
        ) as mock_request:
            assert await client._rpc("eth_blockNumber", []) == "0x10"

        assert mock_request.call_args.kwargs["json"]["method"] == "eth_blockNumber"

    async def test_error_object(self, client):
        response = httpx.Response(
            200,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "error": {"code": -32000, "message": "execution reverted"},
            },
            request=httpx.Request("POST", RPC_URL),
        )
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock, return_value=response
        ):
            with pytest.raises(LedgerRpcError) as exc_info:
                await client._rpc("eth_call", [])

        assert exc_info.value.code == -32000

    async def test_http_error_status(self, client):
        response = httpx.Response(502, request=httpx.Request("POST", RPC_URL))
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock, return_value=response
        ):
            with pytest.raises(LedgerConnectionError, match="502"):
                await client._rpc("eth_gasPrice", [])

    async def test_connection_error(self, client):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("refused"),
        ):
            with pytest.raises(LedgerConnectionError):
                await client._rpc("eth_gasPrice", [])
