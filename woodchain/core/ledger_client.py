# woodchain/core/ledger_client.py
"""
Async client for the OrderChain ledger contract.

Responsibilities:
  - Load the compiled contract artifact (abi + per-network deployments).
  - Resolve the deployed contract for the connected network once, at startup.
  - Send placeOrder / updateOrderStatus transactions signed by the caller's
    ledger account, with a fixed gas ceiling, and wait for the receipt.
  - Read getOrder / getOrderDetails for reconciliation.
  - Top up newly derived user accounts from a funder account (optional).

The client never retries and never wraps RPC or contract errors: whatever
web3 raises reaches the order pipeline unchanged.

Typical .env configuration (local Ganache):

    LEDGER_RPC_URL=http://localhost:7545
    LEDGER_ARTIFACT_PATH=build/contracts/OrderChain.json
    LEDGER_GAS_LIMIT=8000000
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any

from aiohttp import ClientTimeout
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from woodchain.core.config import Settings
from woodchain.core.errors import LedgerConfigurationError, LedgerTransactionFailed
from woodchain.models.order import STATUS_CONFIRMED

logger = logging.getLogger(__name__)

# Ledger-side status enum
LEDGER_STATUS_PENDING = 0
LEDGER_STATUS_CONFIRMED = 1

CENT = Decimal("1")

# Intrinsic gas of a plain value transfer
TRANSFER_GAS = 21_000


def to_minor_units(amount: Decimal | float | int | str) -> int:
    """
    Convert a currency amount to integer cents, rounding half up.

    Floats go through str() first so 59.99 stays 59.99 instead of
    59.98999999...
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * 100).quantize(CENT, rounding=ROUND_HALF_UP))


def to_unix_timestamp(day: date) -> int:
    """Midnight UTC of `day` as Unix seconds."""
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def encode_status(status: str | None) -> int:
    """
    Map an order status onto the ledger enum.

    Only the literal "Confirmed" maps to 1; everything else (including
    None) maps to 0. Callers validate the status before getting here.
    """
    return LEDGER_STATUS_CONFIRMED if status == STATUS_CONFIRMED else LEDGER_STATUS_PENDING


def resolve_deployment_address(artifact: dict[str, Any], network_id: str | int) -> str:
    """
    Return the checksummed contract address deployed on `network_id`.

    Raises:
        LedgerConfigurationError: if the artifact has no deployment record
        for that network.
    """
    deployed = (artifact.get("networks") or {}).get(str(network_id))
    if not deployed or not deployed.get("address"):
        raise LedgerConfigurationError(
            f"Contract not deployed on the current network ({network_id})"
        )
    return Web3.to_checksum_address(deployed["address"])


def load_artifact(path: str | Path) -> dict[str, Any]:
    """Read a Truffle-style contract artifact (must contain 'abi')."""
    artifact = json.loads(Path(path).read_text(encoding="utf-8"))
    if "abi" not in artifact:
        raise LedgerConfigurationError(f"Artifact {path} has no 'abi' entry")
    return artifact


@dataclass(frozen=True)
class LedgerLineItem:
    """One order line as the contract expects it (prices in cents)."""

    orderID: int
    productID: int
    productName: str
    productDescription: str
    quantity: int
    price: int


@dataclass(frozen=True)
class LedgerOrderRecord:
    """Projection of a local order onto the ledger call contract."""

    order_id: int
    supplier_id: int
    delivery_timestamp: int
    total_price: int
    line_items: tuple[LedgerLineItem, ...]


class LedgerClient:
    """
    Thin wrapper around the deployed OrderChain contract.

    Build it with `LedgerClient.connect(settings)`; the contract address is
    resolved exactly once there.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        contract: Any,
        gas_limit: int,
        receipt_timeout: float,
    ):
        self.w3 = w3
        self.contract = contract
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self._send_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    async def connect(cls, settings: Settings) -> "LedgerClient":
        """
        Connect to the ledger node and bind the deployed contract.

        Raises:
            LedgerConfigurationError: no deployment for the node's network id.
            Any web3 / aiohttp error if the node is unreachable.
        """
        w3 = AsyncWeb3(
            AsyncHTTPProvider(
                settings.LEDGER_RPC_URL,
                request_kwargs={"timeout": ClientTimeout(total=settings.LEDGER_RPC_TIMEOUT)},
            )
        )
        artifact = load_artifact(settings.LEDGER_ARTIFACT_PATH)
        network_id = await w3.net.version
        address = resolve_deployment_address(artifact, network_id)
        contract = w3.eth.contract(address=address, abi=artifact["abi"])

        logger.info("Ledger contract bound at %s (network %s)", address, network_id)
        return cls(
            w3,
            contract,
            gas_limit=settings.LEDGER_GAS_LIMIT,
            receipt_timeout=settings.LEDGER_RECEIPT_TIMEOUT,
        )

    # ----- Writes -----

    async def place_order(self, sender: LocalAccount, record: LedgerOrderRecord) -> str:
        """
        Send placeOrder(supplierID, deliveryDate, totalPrice, orderDetails).

        Returns:
            The transaction hash (0x-prefixed hex).
        """
        logger.info(
            "Placing order %s on ledger: supplier=%s total=%s lines=%d",
            record.order_id,
            record.supplier_id,
            record.total_price,
            len(record.line_items),
        )
        fn = self.contract.functions.placeOrder(
            record.supplier_id,
            record.delivery_timestamp,
            record.total_price,
            [asdict(item) for item in record.line_items],
        )
        return await self._transact(sender, fn)

    async def update_order_status(
        self,
        sender: LocalAccount,
        order_id: int,
        status_enum: int,
    ) -> str:
        """Send updateOrderStatus(orderID, status). Returns the tx hash."""
        logger.info("Updating ledger status: order=%s status=%s", order_id, status_enum)
        fn = self.contract.functions.updateOrderStatus(order_id, status_enum)
        return await self._transact(sender, fn)

    async def transfer(self, sender: LocalAccount, to: str, value_wei: int) -> str:
        """Send `value_wei` of ether from `sender` to `to`. Returns the tx hash."""
        logger.info("Funding ledger account %s with %s wei", to, value_wei)

        async def build(nonce: int) -> dict[str, Any]:
            return {
                "from": sender.address,
                "to": Web3.to_checksum_address(to),
                "value": value_wei,
                "gas": TRANSFER_GAS,
                "gasPrice": await self.w3.eth.gas_price,
                "chainId": await self.w3.eth.chain_id,
                "nonce": nonce,
            }

        return await self._sign_and_send(sender, build)

    # ----- Reads -----

    async def get_order(self, order_id: int) -> Any:
        """getOrder(orderID), decoded into a dict keyed by the ABI output names."""
        result = await self.contract.functions.getOrder(order_id).call()
        return self._named("getOrder", result)

    async def get_order_details(self, order_id: int) -> Any:
        """getOrderDetails(orderID), as a list of dicts (one per line)."""
        result = await self.contract.functions.getOrderDetails(order_id).call()
        return self._named("getOrderDetails", result)

    # ----- Helpers -----

    def _send_lock(self, address: str) -> asyncio.Lock:
        return self._send_locks.setdefault(address, asyncio.Lock())

    async def _transact(self, sender: LocalAccount, fn: Any) -> str:
        """Build `fn` as a transaction from `sender` and send it."""

        async def build(nonce: int) -> dict[str, Any]:
            return await fn.build_transaction(
                {
                    "from": sender.address,
                    "gas": self.gas_limit,
                    "nonce": nonce,
                }
            )

        return await self._sign_and_send(sender, build)

    async def _sign_and_send(
        self,
        sender: LocalAccount,
        build: Callable[[int], Awaitable[dict[str, Any]]],
    ) -> str:
        """
        Sign locally, send, and wait for the receipt.

        Reading the pending nonce and sending happen under the sender's lock,
        so two requests from one account never reuse a nonce. The receipt
        wait runs outside it.

        Raises:
            LedgerTransactionFailed: if the receipt status is not 1.
        """
        async with self._send_lock(sender.address):
            nonce = await self.w3.eth.get_transaction_count(sender.address, "pending")
            tx = await build(nonce)
            signed = sender.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash,
            timeout=self.receipt_timeout,
        )
        tx_hex = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise LedgerTransactionFailed(f"Transaction {tx_hex} reverted")
        return tx_hex

    def _named(self, fn_name: str, result: Any) -> Any:
        outputs = next(
            item["outputs"]
            for item in self.contract.abi
            if item.get("type") == "function" and item.get("name") == fn_name
        )
        if len(outputs) == 1:
            return name_abi_value(outputs[0], result)
        return {
            out.get("name") or str(i): name_abi_value(out, value)
            for i, (out, value) in enumerate(zip(outputs, result))
        }


def name_abi_value(abi: dict[str, Any], value: Any) -> Any:
    """
    Turn positional tuples returned by a contract call into dicts keyed by
    the ABI component names (recursively, including tuple arrays).
    """
    abi_type = abi.get("type", "")
    components = abi.get("components")
    if not components:
        return value
    if abi_type.endswith("[]"):
        element = {**abi, "type": abi_type[:-2]}
        return [name_abi_value(element, item) for item in value]
    return {
        comp.get("name") or str(i): name_abi_value(comp, item)
        for i, (comp, item) in enumerate(zip(components, value))
    }
