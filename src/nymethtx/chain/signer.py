"""
nymethtx/chain/signer.py

Transaction drafts and the signing capability used by the relay client.

The client only needs `fill_and_sign(draft) -> SignedTransaction`; anything
implementing TransactionSigner can be plugged in (hardware wallets, test
doubles). Web3Signer fills missing fields from a chain node through web3.py
and signs with a local eth-account key.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import trio
from eth_account import Account
from eth_utils import is_address, to_checksum_address
from web3 import Web3

from ..codec import SignedTransaction
from ..config import RPC_REQUEST_TIMEOUT
from ..errors import SigningError

logger = logging.getLogger("nymethtx.chain.signer")


@dataclass
class TransactionDraft:
    """
    Unsigned transaction fields. Anything left as None is filled by the signer.

    `to` = None deploys a contract.
    """
    to: Optional[str] = None
    value: Optional[int] = None       # wei
    gas: Optional[int] = None
    gas_price: Optional[int] = None   # wei
    data: Optional[bytes] = None
    nonce: Optional[int] = None
    chain_id: Optional[int] = None

    def __post_init__(self):
        if self.to is not None:
            if not is_address(self.to):
                raise ValueError(f"Invalid recipient address: {self.to}")
            self.to = to_checksum_address(self.to)

    @classmethod
    def from_cli(
        cls,
        to: Optional[str] = None,
        value: Optional[str] = None,
        gas: Optional[str] = None,
        gas_price: Optional[str] = None,
        data: Optional[str] = None,
    ) -> "TransactionDraft":
        """
        Build a draft from user strings: value in ether, gas price in gwei,
        data as hex.
        """
        return cls(
            to=to,
            value=Web3.to_wei(Decimal(value), "ether") if value is not None else None,
            gas=int(gas, 0) if gas is not None else None,
            gas_price=Web3.to_wei(Decimal(gas_price), "gwei") if gas_price is not None else None,
            data=bytes.fromhex(data[2:] if data.startswith("0x") else data) if data is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Transaction dict in web3.py field names, without unset fields."""
        tx: Dict[str, Any] = {}
        if self.to is not None:
            tx["to"] = self.to
        if self.value is not None:
            tx["value"] = self.value
        if self.gas is not None:
            tx["gas"] = self.gas
        if self.gas_price is not None:
            tx["gasPrice"] = self.gas_price
        if self.data is not None:
            tx["data"] = self.data
        if self.nonce is not None:
            tx["nonce"] = self.nonce
        if self.chain_id is not None:
            tx["chainId"] = self.chain_id
        return tx


class TransactionSigner(ABC):
    """Capability: fill a draft and sign it."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksummed sender address."""

    @abstractmethod
    async def fill_and_sign(self, draft: TransactionDraft) -> SignedTransaction:
        """
        Fill missing fields and sign.

        Raises:
            SigningError: on invalid keys or when filling fails upstream
        """


class LocalSigner(TransactionSigner):
    """
    Signs fully specified drafts offline.

    Every field needed for a legacy transaction (nonce, gas, gas_price,
    chain_id) must be set; nothing is queried from a node.
    """

    def __init__(self, private_key: Union[str, bytes]):
        try:
            self._account = Account.from_key(private_key)
        except Exception as e:
            raise SigningError(f"Invalid private key: {e}") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, tx: Dict[str, Any]) -> SignedTransaction:
        try:
            signed = self._account.sign_transaction(tx)
        except Exception as e:
            raise SigningError(f"Cannot sign transaction: {e}") from e
        raw = bytes(signed.raw_transaction)
        result = SignedTransaction.from_raw(raw)
        logger.info(f"signed transaction {result.tx_hash}")
        return result

    async def fill_and_sign(self, draft: TransactionDraft) -> SignedTransaction:
        tx = draft.to_dict()
        tx.setdefault("value", 0)
        tx.setdefault("data", b"")
        missing = [k for k in ("nonce", "gas", "gasPrice", "chainId") if k not in tx]
        if missing:
            raise SigningError(f"Offline signing needs {', '.join(missing)}")
        return self.sign(tx)


class Web3Signer(LocalSigner):
    """
    Fills nonce, gas, gas price and chain id from a node, then signs locally.

    Example:
        signer = Web3Signer.from_key_file("client.key", "http://localhost:8545")
        signed = await signer.fill_and_sign(TransactionDraft(to=..., value=...))
    """

    def __init__(self, private_key: Union[str, bytes], w3: Web3):
        super().__init__(private_key)
        self.w3 = w3

    @classmethod
    def from_endpoint(cls, private_key: Union[str, bytes], endpoint: str) -> "Web3Signer":
        w3 = Web3(Web3.HTTPProvider(endpoint, request_kwargs={"timeout": RPC_REQUEST_TIMEOUT}))
        return cls(private_key, w3)

    @classmethod
    def from_key_file(cls, path: Union[str, Path], endpoint: str) -> "Web3Signer":
        """
        Load a hex private key from a file.

        Raises:
            SigningError: if the file cannot be read or holds no valid key
        """
        try:
            private_key = Path(path).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise SigningError(f"Cannot read key file {path}: {e}") from e
        return cls.from_endpoint(private_key, endpoint)

    def fill(self, draft: TransactionDraft) -> Dict[str, Any]:
        """Blocking: complete a draft with values from the node."""
        tx = draft.to_dict()
        tx["from"] = self.address
        tx.setdefault("value", 0)
        tx.setdefault("data", b"")
        try:
            if "nonce" not in tx:
                tx["nonce"] = self.w3.eth.get_transaction_count(self.address, "pending")
            if "chainId" not in tx:
                tx["chainId"] = self.w3.eth.chain_id
            if "gasPrice" not in tx:
                tx["gasPrice"] = self.w3.eth.gas_price
            if "gas" not in tx:
                tx["gas"] = self.w3.eth.estimate_gas(tx)
        except Exception as e:
            raise SigningError(f"Failed to fill transaction: {e}") from e
        del tx["from"]
        return tx

    async def fill_and_sign(self, draft: TransactionDraft) -> SignedTransaction:
        tx = await trio.to_thread.run_sync(self.fill, draft)
        logger.debug(f"filled transaction: {tx}")
        return self.sign(tx)
