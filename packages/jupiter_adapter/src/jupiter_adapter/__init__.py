"""Jupiter/Solana adapter for price data and swap execution.

This package provides:
- Batch USD prices from the Jupiter price API
- Quotes and unsigned swap transactions from the Jupiter swap API
- Sending and confirming signed transactions over Solana JSON-RPC
- Keypair transaction signing
- Client-side rate limiting
"""

from jupiter_adapter.price_client import JupiterPriceClient
from jupiter_adapter.swap_client import JupiterSwapClient, Quote, SwapTransaction
from jupiter_adapter.rpc_client import SolanaRpcClient, transaction_url
from jupiter_adapter.signer import KeypairSigner, SignedTransaction, Signer
from jupiter_adapter.rate_limiter import RateLimiter, RateLimitConfig

__all__ = [
    "JupiterPriceClient",
    "JupiterSwapClient",
    "Quote",
    "SwapTransaction",
    "SolanaRpcClient",
    "transaction_url",
    "KeypairSigner",
    "SignedTransaction",
    "Signer",
    "RateLimiter",
    "RateLimitConfig",
]
