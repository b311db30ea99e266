from .client import SolanaRpcClient
from .balance_source import SolanaBalanceSource
from .price_oracle import PythPriceOracle
from .swap_quoter import JupiterSwapQuoter
from .tx_status import SolanaTransactionStatusChecker
from .keys import validate_public_key
from .tokens import (
    TokenInfo,
    KNOWN_TOKENS,
    TOKEN_PROGRAM_ID,
    WRAPPED_SOL_MINT,
    symbol_for,
    decimals_for,
    price_feed_for,
)

__version__ = "1.0.0"

__all__ = [
    "SolanaRpcClient",
    "SolanaBalanceSource",
    "PythPriceOracle",
    "JupiterSwapQuoter",
    "SolanaTransactionStatusChecker",
    "validate_public_key",
    "TokenInfo",
    "KNOWN_TOKENS",
    "TOKEN_PROGRAM_ID",
    "WRAPPED_SOL_MINT",
    "symbol_for",
    "decimals_for",
    "price_feed_for",
    "__version__",
]
