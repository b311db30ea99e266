import logging
from typing import List, Optional

from wallet_connector_base import BalanceSource, TokenHolding, BalanceFetchError
from .client import SolanaRpcClient
from .keys import validate_public_key
from .tokens import (
    TOKEN_PROGRAM_ID,
    WRAPPED_SOL_MINT,
    LAMPORTS_PER_SOL,
    SOL_DECIMALS,
    symbol_for,
)


class SolanaBalanceSource(BalanceSource):
    """SPL token and native SOL balances of a wallet"""

    def __init__(self, rpc: SolanaRpcClient, logger: Optional[logging.Logger] = None):
        self.rpc = rpc
        self.logger = logger or logging.getLogger(__name__)

    async def get_holdings(self, owner_id: str) -> List[TokenHolding]:
        """
        Token accounts with a positive balance plus native SOL.

        Native SOL is reported under the wrapped-SOL mint.

        Raises:
            BalanceFetchError: Malformed address or any RPC failure
        """
        if not validate_public_key(owner_id):
            raise BalanceFetchError(f"Invalid public key: {owner_id}")

        try:
            accounts = await self.rpc.call("getTokenAccountsByOwner", [
                owner_id,
                {"programId": TOKEN_PROGRAM_ID},
                {"encoding": "jsonParsed", "commitment": self.rpc.commitment}
            ])
            lamports = await self.rpc.call("getBalance", [owner_id, {"commitment": self.rpc.commitment}])

            holdings = self.parse_token_accounts(accounts)
            holdings.append(self.native_sol_holding(lamports))
        except Exception as e:
            self.logger.error(f"Error fetching token accounts for {owner_id}: {e}")
            raise BalanceFetchError("Failed to fetch token accounts from Solana") from e

        self.logger.info(f"Fetched {len(holdings)} balances for wallet {owner_id}")
        return holdings

    @staticmethod
    def parse_token_accounts(result: dict) -> List[TokenHolding]:
        """Map a jsonParsed getTokenAccountsByOwner result to holdings with balance > 0"""
        holdings = []
        for account in (result or {}).get("value", []):
            info = account["account"]["data"]["parsed"]["info"]
            token_amount = info["tokenAmount"]
            balance = token_amount.get("uiAmount") or 0.0
            if balance <= 0:
                continue

            holdings.append(TokenHolding(
                token_id=info["mint"],
                symbol=symbol_for(info["mint"]),
                balance=float(balance),
                decimals=int(token_amount["decimals"])
            ))
        return holdings

    @staticmethod
    def native_sol_holding(result) -> TokenHolding:
        # getBalance answers {"context": ..., "value": lamports}
        lamports = result.get("value", 0) if isinstance(result, dict) else (result or 0)
        return TokenHolding(
            token_id=WRAPPED_SOL_MINT,
            symbol=symbol_for(WRAPPED_SOL_MINT),
            balance=lamports / LAMPORTS_PER_SOL,
            decimals=SOL_DECIMALS
        )
