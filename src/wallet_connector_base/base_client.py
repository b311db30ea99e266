from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from .models import TokenHolding, SwapQuote

class PriceOracle(ABC):
    """Abstract USD price source keyed by token mint"""

    @abstractmethod
    async def get_prices(self, token_ids: List[str]) -> Dict[str, float]:
        """Get USD prices; a token without a price maps to 0.0 instead of failing the batch"""
        pass

class BalanceSource(ABC):
    """Abstract wallet balance source"""

    @abstractmethod
    async def get_holdings(self, owner_id: str) -> List[TokenHolding]:
        """Get token balances held by a wallet"""
        pass

class SwapQuoter(ABC):
    """Abstract swap aggregator"""

    @abstractmethod
    async def get_quote(
        self,
        input_token_id: str,
        output_token_id: str,
        amount: int
    ) -> Optional[SwapQuote]:
        """Quote a swap of amount smallest units; None when there is no route"""
        pass

    @abstractmethod
    async def build_instructions(self, quote_payload: str, owner_id: str) -> dict:
        """Turn a stored quote payload into an unsigned instruction set"""
        pass

class TransactionStatusChecker(ABC):
    """Abstract on-chain transaction status lookup"""

    @abstractmethod
    async def check(self, signature: str) -> str:
        """Get normalized status (see TxConfirmationStatus) of a signature"""
        pass
