"""
nymethtx/chain - Ethereum-side capabilities used by the relay.

- TransactionSigner: fill_and_sign(draft) for the client
- ChainRpc: submit_raw(bytes) -> PendingTransaction for the server
"""

from .rpc import ChainRpc, PendingTransaction, RpcPool, Web3Rpc
from .signer import LocalSigner, TransactionDraft, TransactionSigner, Web3Signer

__all__ = [
    "ChainRpc",
    "PendingTransaction",
    "RpcPool",
    "Web3Rpc",
    "TransactionDraft",
    "TransactionSigner",
    "LocalSigner",
    "Web3Signer",
]
