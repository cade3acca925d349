"""Tests for the web3 contract gateway.

No chain or RPC endpoint is used: ``Web3`` is replaced with a ``MagicMock``
whose contract functions return canned values.  Transaction signing runs for
real through ``eth_account`` with a throwaway key.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from backend.market.errors import GatewayUnavailable, UserRejected, WriteFailed
from backend.market.web3_gateway import Web3Gateway, classify_write_error, is_user_rejection

CONTRACT = "0x" + "11" * 20
# Well-known throwaway key from the web3.py documentation; never funded.
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TX_HASH = bytes.fromhex("ab" * 32)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def w3() -> MagicMock:
    mock = MagicMock()
    mock.eth.get_transaction_count.return_value = 7
    mock.eth.send_raw_transaction.return_value = TX_HASH
    mock.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 12}
    return mock


@pytest.fixture()
def functions(w3: MagicMock) -> MagicMock:
    return w3.eth.contract.return_value.functions


def _gateway(w3: MagicMock, private_key: str = "", chain_id=None) -> Web3Gateway:
    return Web3Gateway(
        rpc_url="http://localhost:8545",
        contract_address=CONTRACT,
        private_key=private_key,
        chain_id=chain_id,
        tx_timeout=5,
        w3=w3,
    )


def _legacy_tx(params: dict) -> dict:
    return {
        "to": CONTRACT,
        "value": 0,
        "gas": 100_000,
        "gasPrice": 1_000_000_000,
        "data": "0x",
        "nonce": params["nonce"],
        "chainId": params.get("chainId", 1),
    }


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_contract_address_required(self, w3: MagicMock) -> None:
        with pytest.raises(ValueError):
            Web3Gateway(rpc_url="http://localhost:8545", contract_address="", w3=w3)

    def test_signer_address_from_private_key(self, w3: MagicMock) -> None:
        gateway = _gateway(w3, private_key=PRIVATE_KEY)
        assert gateway.signer_address.startswith("0x")
        assert len(gateway.signer_address) == 42

    def test_no_signer_without_key(self, w3: MagicMock) -> None:
        assert _gateway(w3).signer_address is None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReads:
    async def test_is_available(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.isAvailable.return_value.call.return_value = True
        assert await _gateway(w3).is_available() is True

    async def test_get_data_returns_bytes(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.getData.return_value.call.return_value = b'["a1"]'
        assert await _gateway(w3).get_data("market_keys") == b'["a1"]'
        functions.getData.assert_called_with("market_keys")

    async def test_get_data_none_is_empty(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.getData.return_value.call.return_value = None
        assert await _gateway(w3).get_data("market_x") == b""

    async def test_rpc_failure_is_unavailable(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.getData.return_value.call.side_effect = OSError("connection refused")
        with pytest.raises(GatewayUnavailable):
            await _gateway(w3).get_data("market_keys")

    async def test_availability_failure_is_unavailable(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.isAvailable.return_value.call.side_effect = ValueError("bad response")
        with pytest.raises(GatewayUnavailable):
            await _gateway(w3).is_available()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class TestWrites:
    async def test_signs_locally_with_private_key(self, w3: MagicMock, functions: MagicMock) -> None:
        call = functions.setData.return_value
        call.build_transaction.side_effect = _legacy_tx
        gateway = _gateway(w3, private_key=PRIVATE_KEY, chain_id=1337)

        handle = await gateway.set_data("market_a1", b"{}")

        params = call.build_transaction.call_args.args[0]
        assert params["from"] == gateway.signer_address
        assert params["nonce"] == 7
        assert params["chainId"] == 1337
        w3.eth.send_raw_transaction.assert_called_once()
        assert handle.tx_hash == "0x" + "ab" * 32
        assert handle.key == "market_a1"
        assert handle.block_number == 12

    async def test_sends_from_caller_without_private_key(self, w3: MagicMock, functions: MagicMock) -> None:
        call = functions.setData.return_value
        call.transact.return_value = TX_HASH

        await _gateway(w3).set_data("market_a1", b"{}", sender=CONTRACT)

        assert call.transact.call_args.args[0]["from"].lower() == CONTRACT
        w3.eth.send_raw_transaction.assert_not_called()

    async def test_no_signer_and_no_sender(self, w3: MagicMock) -> None:
        with pytest.raises(WriteFailed):
            await _gateway(w3).set_data("market_a1", b"{}")

    async def test_reverted_receipt(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.setData.return_value.transact.return_value = TX_HASH
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 3}
        with pytest.raises(WriteFailed, match="reverted"):
            await _gateway(w3).set_data("market_a1", b"{}", sender=CONTRACT)

    async def test_user_rejection(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.setData.return_value.transact.side_effect = ValueError(
            {"code": 4001, "message": "MetaMask Tx Signature: User denied transaction signature."}
        )
        with pytest.raises(UserRejected):
            await _gateway(w3).set_data("market_a1", b"{}", sender=CONTRACT)

    async def test_other_rpc_error_is_write_failure(self, w3: MagicMock, functions: MagicMock) -> None:
        functions.setData.return_value.transact.side_effect = ValueError(
            {"code": -32000, "message": "insufficient funds for gas"}
        )
        with pytest.raises(WriteFailed):
            await _gateway(w3).set_data("market_a1", b"{}", sender=CONTRACT)


class TestErrorClassification:
    @pytest.mark.parametrize(
        "exc",
        [
            ValueError({"code": 4001, "message": "rejected"}),
            ValueError("User rejected the request."),
            RuntimeError("user denied transaction signature"),
        ],
    )
    def test_rejections(self, exc: Exception) -> None:
        assert is_user_rejection(exc)
        assert isinstance(classify_write_error(exc), UserRejected)

    def test_rpc_response_code(self) -> None:
        exc = ValueError("wrapped")
        exc.rpc_response = {"error": {"code": 4001, "message": "wrapped"}}
        assert is_user_rejection(exc)

    def test_other_errors(self) -> None:
        exc = OSError("timeout")
        assert not is_user_rejection(exc)
        assert isinstance(classify_write_error(exc), WriteFailed)
