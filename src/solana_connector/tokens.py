"""Known SPL token registry and Solana program constants"""

from typing import Dict, Optional
from pydantic import BaseModel

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9


class TokenInfo(BaseModel):
    """Static metadata for a well-known mint"""
    mint: str
    symbol: str
    decimals: int
    pyth_feed_id: Optional[str] = None


KNOWN_TOKENS: Dict[str, TokenInfo] = {
    token.mint: token for token in [
        TokenInfo(
            mint=WRAPPED_SOL_MINT,
            symbol="SOL",
            decimals=SOL_DECIMALS,
            pyth_feed_id="0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d"
        ),
        TokenInfo(
            mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
            symbol="USDC",
            decimals=6,
            pyth_feed_id="0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a"
        ),
        TokenInfo(
            mint="Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
            symbol="USDT",
            decimals=6,
            pyth_feed_id="0x2b89b9dc8fdf9f34709a5b106b472f0f39bb6ca9ce04b0fd7f2e971688e2e53b"
        ),
        TokenInfo(
            mint="mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So",
            symbol="mSOL",
            decimals=9,
            pyth_feed_id="0xc2289a6a43d2ce728c89b98de0c2cd82d3e5a95f2a1e9cc71e0b50c2c8d8e3e9"
        ),
        # No price feed configured for these; they value at $0
        TokenInfo(mint="DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", symbol="BONK", decimals=5),
        TokenInfo(mint="4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R", symbol="RAY", decimals=6),
        TokenInfo(mint="MangoCzJ36AjZyKwVj3VnYU4GTonjfVEnJmvvWaxLac", symbol="MNGO", decimals=6),
        TokenInfo(mint="orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE", symbol="ORCA", decimals=6),
    ]
}


def symbol_for(mint: str) -> str:
    """Registry symbol, or the first 8 characters of the mint for unknown tokens"""
    token = KNOWN_TOKENS.get(mint)
    return token.symbol if token else mint[:8]


def decimals_for(mint: str) -> Optional[int]:
    token = KNOWN_TOKENS.get(mint)
    return token.decimals if token else None


def price_feed_for(mint: str) -> Optional[str]:
    token = KNOWN_TOKENS.get(mint)
    return token.pyth_feed_id if token else None
