"""On-chain gateway: the generic key-value contract through ``web3.py``.

Blocking web3 calls run in a worker thread so the event loop stays
responsive while a transaction is mined.

Signing
-------
* With ``private_key`` set, transactions are built, signed locally with
  ``eth_account`` and sent raw.
* Without it, ``setData`` is sent with ``eth_sendTransaction`` from the
  caller's address, leaving signing (and possible rejection) to the node or
  wallet behind the RPC endpoint.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from backend.market.errors import GatewayUnavailable, MarketError, UserRejected, WriteFailed
from backend.market.gateway import ContractGateway, TxHandle

KV_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "isAvailable",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "getData",
        "stateMutability": "view",
        "inputs": [{"name": "key", "type": "string"}],
        "outputs": [{"name": "", "type": "bytes"}],
    },
    {
        "type": "function",
        "name": "setData",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "key", "type": "string"},
            {"name": "value", "type": "bytes"},
        ],
        "outputs": [],
    },
]

# EIP-1193 "User Rejected Request"
_USER_REJECTED_CODE = 4001

_RPC_ERRORS = (Web3Exception, ValueError, OSError)


def _error_code(exc: BaseException) -> Optional[int]:
    payload = exc.args[0] if exc.args else None
    if isinstance(payload, dict) and isinstance(payload.get("code"), int):
        return payload["code"]
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), int):
            return error["code"]
    return None


def is_user_rejection(exc: BaseException) -> bool:
    """Return ``True`` if *exc* means the signer declined the transaction."""
    if _error_code(exc) == _USER_REJECTED_CODE:
        return True
    text = str(exc).lower()
    return "user rejected" in text or "user denied" in text


def classify_write_error(exc: BaseException) -> MarketError:
    """Map a web3/RPC exception raised during ``setData`` onto the taxonomy."""
    if is_user_rejection(exc):
        return UserRejected(str(exc) or "user rejected transaction")
    return WriteFailed(str(exc) or exc.__class__.__name__)


class Web3Gateway(ContractGateway):
    """Gateway to a deployed key-value contract on an EVM chain."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str = "",
        chain_id: Optional[int] = None,
        tx_timeout: float = 120.0,
        w3: Optional[Web3] = None,
    ):
        if not contract_address:
            raise ValueError("CONTRACT_ADDRESS is required for the web3 gateway")
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=KV_CONTRACT_ABI,
        )
        self.account = Account.from_key(private_key) if private_key else None
        self.chain_id = chain_id
        self.tx_timeout = tx_timeout

    @property
    def name(self) -> str:
        return "web3"

    @property
    def signer_address(self) -> Optional[str]:
        """Address of the locally held signing key, if one is configured."""
        return self.account.address if self.account else None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def is_available(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.contract.functions.isAvailable().call))
        except _RPC_ERRORS as exc:
            raise GatewayUnavailable(f"isAvailable() failed: {exc}") from exc

    async def get_data(self, key: str) -> bytes:
        try:
            value = await asyncio.to_thread(self.contract.functions.getData(key).call)
        except _RPC_ERRORS as exc:
            raise GatewayUnavailable(f"getData({key!r}) failed: {exc}") from exc
        return bytes(value or b"")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def set_data(self, key: str, value: bytes, sender: Optional[str] = None) -> TxHandle:
        try:
            return await asyncio.to_thread(self._send_set_data, key, value, sender)
        except _RPC_ERRORS as exc:
            raise classify_write_error(exc) from exc

    def _send_set_data(self, key: str, value: bytes, sender: Optional[str]) -> TxHandle:
        call = self.contract.functions.setData(key, value)

        if self.account is not None:
            params: dict[str, Any] = {
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address),
            }
            if self.chain_id is not None:
                params["chainId"] = self.chain_id
            tx = call.build_transaction(params)
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        elif sender:
            tx_hash = call.transact({"from": Web3.to_checksum_address(sender)})
        else:
            raise WriteFailed("no signing account configured")

        print(f"[WEB3] setData({key!r}) sent: {Web3.to_hex(tx_hash)}")
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        if receipt["status"] != 1:
            raise WriteFailed(f"setData({key!r}) reverted in block {receipt['blockNumber']}")

        return TxHandle(
            tx_hash=Web3.to_hex(tx_hash),
            key=key,
            block_number=receipt["blockNumber"],
        )
