"""
Shared test doubles for nymethtx tests.
"""

from typing import List, Optional

import pytest
import trio
from eth_utils import keccak
from trio_websocket import CloseReason, ConnectionClosed as WebSocketClosed

from nymethtx.chain.rpc import ChainRpc, PendingTransaction
from nymethtx.chain.signer import LocalSigner, TransactionDraft
from nymethtx.errors import SubmissionError
from nymethtx.mixnet.recipient import Recipient
from nymethtx.network import NetworkRegistry


# ============================================================================
# TEST DATA
# ============================================================================

TEST_PRIVATE_KEY = "0x" + "4c" * 32

TEST_RECIPIENT = Recipient(
    client_identity=bytes(range(32)),
    client_encryption_key=bytes(range(32, 64)),
    gateway=bytes(range(64, 96)),
)

RELAY_TARGET = "0x1ea700000000000000000000000000000000dafb"


# ============================================================================
# DOUBLES
# ============================================================================

class FakeWebSocket:
    """In-memory stand-in for a trio_websocket connection to a Nym client."""

    def __init__(self, frames=None):
        self.frames = list(frames or [])
        self.sent: List = []
        self.closed = False

    async def get_message(self):
        await trio.sleep(0)
        if self.closed or not self.frames:
            self.closed = True
            raise WebSocketClosed(CloseReason(1000, "no more frames"))
        return self.frames.pop(0)

    async def send_message(self, message):
        if self.closed:
            raise WebSocketClosed(CloseReason(1000, "closed"))
        self.sent.append(message)

    async def aclose(self, code=1000, reason=None):
        self.closed = True


class FakePending(PendingTransaction):

    def __init__(self, tx_hash: str, receipt: Optional[dict]):
        super().__init__(tx_hash)
        self.receipt = receipt

    async def wait(self, timeout=120.0, poll_latency=0.1):
        await trio.sleep(0)
        return self.receipt


class FakeChain(ChainRpc):
    """
    In-memory chain node.

    Accepts any raw transaction, mines it immediately and returns a receipt
    whose transactionHash is keccak(raw).
    """

    def __init__(self, endpoint: str = "memory://chain", reject: bool = False,
                 no_receipt: bool = False):
        self.endpoint = endpoint
        self.reject = reject
        self.no_receipt = no_receipt
        self.submitted: List[bytes] = []
        self.receipts: List[dict] = []

    async def submit_raw(self, raw: bytes) -> PendingTransaction:
        await trio.sleep(0)
        if self.reject:
            raise SubmissionError("transaction rejected by node")
        self.submitted.append(bytes(raw))
        tx_hash = "0x" + keccak(bytes(raw)).hex()
        receipt = None
        if not self.no_receipt:
            receipt = {
                "transactionHash": tx_hash,
                "blockNumber": len(self.submitted),
                "status": 1,
            }
            self.receipts.append(receipt)
        return FakePending(tx_hash, receipt)


def make_draft(nonce: int = 0, value: int = 100_000_000) -> TransactionDraft:
    return TransactionDraft(
        to=RELAY_TARGET,
        value=value,
        gas=21000,
        gas_price=10**9,
        nonce=nonce,
        chain_id=1337,
    )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def registry():
    return NetworkRegistry.default()


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def chain():
    return FakeChain()
