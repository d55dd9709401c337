"""Wallet and chain access for USDC transfers.

``ChainClient`` is the interface the payment flow depends on;
``Web3ChainClient`` implements it over JSON-RPC with web3.py.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from web3 import Web3

from payne.config import (
    RECEIPT_TIMEOUT,
    USDC_DECIMALS,
    get_chain_id,
    get_payer_private_key,
    get_rpc_url,
    get_usdc_address,
)

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


def to_base_units(amount: float, decimals: int = USDC_DECIMALS) -> int:
    """Token amount in base units, e.g. 12.5 USDC -> 12500000."""
    quantum = Decimal(1).scaleb(-decimals)
    value = Decimal(str(amount)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(value.scaleb(decimals))


def from_base_units(value: int, decimals: int = USDC_DECIMALS) -> float:
    return float(Decimal(value).scaleb(-decimals))


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    succeeded: bool
    block_number: int | None = None


class ChainClient(Protocol):
    """Connected payer wallet on the settlement network."""

    @property
    def account_address(self) -> str: ...

    def usdc_balance(self) -> float: ...

    def native_balance(self) -> float: ...

    def transfer_usdc(self, to: str, amount_base_units: int) -> str:
        """Submit an ERC-20 transfer and return the transaction hash."""
        ...

    def wait_for_receipt(self, tx_hash: str, timeout: float = RECEIPT_TIMEOUT) -> Receipt: ...


class Web3ChainClient:
    def __init__(
        self,
        rpc_url: str,
        usdc_address: str,
        private_key: str,
        chain_id: int | None = None,
    ) -> None:
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
        self._account = self.w3.eth.account.from_key(private_key)
        self._token = self.w3.eth.contract(
            address=Web3.to_checksum_address(usdc_address), abi=ERC20_ABI
        )
        self._chain_id = chain_id

    @classmethod
    def from_config(cls) -> Web3ChainClient:
        """Build a client from RPC_URL, USDC_ADDRESS, CHAIN_ID and the payer key.

        Raises KeyError when a required setting is missing.
        """
        return cls(
            rpc_url=get_rpc_url(),
            usdc_address=get_usdc_address(),
            private_key=get_payer_private_key(),
            chain_id=get_chain_id(),
        )

    @property
    def account_address(self) -> str:
        return self._account.address

    def usdc_balance(self) -> float:
        raw = self._token.functions.balanceOf(self._account.address).call()
        return from_base_units(raw)

    def native_balance(self) -> float:
        wei = self.w3.eth.get_balance(self._account.address)
        return float(Web3.from_wei(wei, "ether"))

    def transfer_usdc(self, to: str, amount_base_units: int) -> str:
        tx_params: dict = {
            "from": self._account.address,
            "nonce": self.w3.eth.get_transaction_count(self._account.address),
        }
        if self._chain_id is not None:
            tx_params["chainId"] = self._chain_id
        tx = self._token.functions.transfer(
            Web3.to_checksum_address(to), amount_base_units
        ).build_transaction(tx_params)
        signed = self._account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float = RECEIPT_TIMEOUT) -> Receipt:
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        return Receipt(
            transaction_hash=tx_hash,
            succeeded=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
        )
