"""web3.py-backed implementations of the collaborator interfaces.

web3 is an optional dependency (``pip install gateway[web3]``) and is
imported lazily so the rest of the package works without it.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from gateway.errors import RevertError, UserRejectedRequestError
from gateway.execution.interfaces import Receipt, ReceiptStatus, TxParams

logger = structlog.get_logger()

# EIP-1193 "user rejected request"
USER_REJECTED_RPC_CODE = 4001

# Return types of the view functions the orchestrator reads
RETURN_TYPES: dict[str, tuple[str, ...]] = {
    "allowance(address,address)": ("uint256",),
    "balanceOf(address)": ("uint256",),
    "decimals()": ("uint8",),
}


def argument_types(function_signature: str) -> list[str]:
    """Parse ``"f(address,uint256)"`` into ``["address", "uint256"]``."""
    inner = function_signature[function_signature.index("(") + 1 : function_signature.rindex(")")]
    return [t.strip() for t in inner.split(",")] if inner.strip() else []


def encode_call(function_signature: str, args: tuple[Any, ...]) -> bytes:
    """Calldata for a call: 4-byte selector followed by the ABI-encoded args."""
    selector = function_signature_to_4byte_selector(function_signature)
    return selector + encode(argument_types(function_signature), list(args))


def _require_web3():
    try:
        from web3 import AsyncWeb3
    except ImportError as e:
        raise ImportError(
            "web3 package required for the web3 adapter. Install with: pip install gateway[web3]"
        ) from e
    return AsyncWeb3


def _to_revert_error(error: Exception) -> RevertError | None:
    from web3.exceptions import ContractLogicError

    if not isinstance(error, ContractLogicError):
        return None
    data = getattr(error, "data", None)
    if not isinstance(data, str | bytes):
        data = None
    return RevertError(str(error), data=data)


def _is_rejection(error: Exception) -> bool:
    payload = error.args[0] if error.args else None
    if isinstance(payload, dict) and payload.get("code") == USER_REJECTED_RPC_CODE:
        return True
    return "user rejected" in str(error).lower() or "user denied" in str(error).lower()


def _tx_dict(tx: TxParams, sender: str | None = None) -> dict[str, Any]:
    params: dict[str, Any] = {
        "to": to_checksum_address(tx.to),
        "data": "0x" + encode_call(tx.function_signature, tx.args).hex(),
        "value": tx.value,
    }
    if sender is not None:
        params["from"] = to_checksum_address(sender)
    if tx.gas is not None:
        params["gas"] = tx.gas
    return params


class Web3ChainClient:
    """ChainReader over an AsyncWeb3 HTTP provider."""

    def __init__(self, rpc_url: str, sender: str | None = None):
        """Initialize the client.

        Args:
            rpc_url: HTTP RPC URL
            sender: Account used as ``from`` for simulations and estimates
        """
        AsyncWeb3 = _require_web3()
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.sender = sender

    async def read_contract(
        self, address: str, function_signature: str, args: tuple[Any, ...]
    ) -> Any:
        data = encode_call(function_signature, args)
        try:
            raw = await self.w3.eth.call({"to": to_checksum_address(address), "data": data})
        except Exception as e:
            revert = _to_revert_error(e)
            if revert is not None:
                raise revert from e
            raise
        types = RETURN_TYPES.get(function_signature, ("uint256",))
        values = decode(list(types), bytes(raw))
        return values[0] if len(values) == 1 else values

    async def simulate(self, tx: TxParams) -> None:
        try:
            await self.w3.eth.call(_tx_dict(tx, self.sender))
        except Exception as e:
            revert = _to_revert_error(e)
            if revert is not None:
                raise revert from e
            raise

    async def estimate_gas(self, tx: TxParams) -> int:
        params = _tx_dict(tx, self.sender)
        params.pop("gas", None)
        try:
            return int(await self.w3.eth.estimate_gas(params))
        except Exception as e:
            revert = _to_revert_error(e)
            if revert is not None:
                raise revert from e
            raise

    async def current_block_number(self) -> int:
        return int(await self.w3.eth.block_number)


class Web3WalletSigner:
    """WalletSigner sending through a node-managed account (eth_sendTransaction).

    The node or injected provider holds the key and may ask its owner to
    confirm; a refusal surfaces as UserRejectedRequestError.
    """

    def __init__(self, rpc_url: str, account: str):
        AsyncWeb3 = _require_web3()
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._address = to_checksum_address(account)

    @property
    def address(self) -> str:
        return self._address

    async def write_contract(self, tx: TxParams) -> str:
        try:
            tx_hash = await self.w3.eth.send_transaction(_tx_dict(tx, self._address))
        except Exception as e:
            if _is_rejection(e):
                raise UserRejectedRequestError(str(e)) from e
            revert = _to_revert_error(e)
            if revert is not None:
                raise revert from e
            raise
        tx_hash_hex = tx_hash.to_0x_hex() if hasattr(tx_hash, "to_0x_hex") else tx_hash.hex()
        logger.info("transaction_submitted", to=tx.to, function=tx.function_signature, tx_hash=tx_hash_hex)
        return tx_hash_hex


class Web3ReceiptSource:
    """ReceiptSource polling ``eth_getTransactionReceipt``.

    Polls until the receipt exists; the caller bounds the wait.
    """

    def __init__(self, rpc_url: str, poll_interval: float = 1.0):
        AsyncWeb3 = _require_web3()
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.poll_interval = poll_interval

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        from web3.exceptions import TransactionNotFound

        while True:
            try:
                raw = await self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                await asyncio.sleep(self.poll_interval)
                continue
            return Receipt(
                status=ReceiptStatus.SUCCESS if raw["status"] == 1 else ReceiptStatus.REVERTED,
                gas_used=int(raw["gasUsed"]),
                effective_gas_price=int(raw.get("effectiveGasPrice", 0)),
                block_number=int(raw["blockNumber"]),
                transaction_hash=tx_hash,
            )


__all__ = [
    "RETURN_TYPES",
    "Web3ChainClient",
    "Web3ReceiptSource",
    "Web3WalletSigner",
    "argument_types",
    "encode_call",
]
