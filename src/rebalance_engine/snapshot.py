"""Portfolio snapshot construction from balances and prices"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
import logging

from wallet_connector_base import (
    BalanceSource,
    PriceOracle,
    PortfolioStore,
    PortfolioSnapshot,
    PortfolioEntry,
    TokenHolding,
    BalanceFetchError,
)


class SnapshotBuilder:
    """Combine a balance source and a price oracle into a valued portfolio view"""

    def __init__(self, balance_source: BalanceSource, price_oracle: PriceOracle,
                 store: PortfolioStore, logger: Optional[logging.Logger] = None):
        self.balance_source = balance_source
        self.price_oracle = price_oracle
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    async def build_snapshot(self, owner_id: str) -> PortfolioSnapshot:
        """
        Fetch, value and persist the current portfolio of an owner.

        Raises:
            BalanceFetchError: If holdings cannot be fetched. Nothing is persisted.
            StoreError: If the write-through upsert fails.
        """
        try:
            holdings = await self.balance_source.get_holdings(owner_id)
        except BalanceFetchError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to fetch holdings for {owner_id}: {e}")
            raise BalanceFetchError(f"Failed to fetch token balances for {owner_id}") from e

        holdings = self.merge_holdings(h for h in holdings if h.balance > 0)
        token_ids = [h.token_id for h in holdings]

        prices = await self._get_prices(token_ids)
        snapshot = self.value_holdings(owner_id, holdings, prices)

        await self.store.upsert_portfolio(snapshot)
        self._log_snapshot(snapshot)
        return snapshot

    async def _get_prices(self, token_ids: List[str]) -> Dict[str, float]:
        if not token_ids:
            return {}
        try:
            return await self.price_oracle.get_prices(token_ids)
        except Exception as e:
            # Price misses never fail a snapshot; every token is valued at 0
            self.logger.warning(f"Price lookup failed for {len(token_ids)} tokens, valuing at $0: {e}")
            return {}

    @staticmethod
    def merge_holdings(holdings: Iterable[TokenHolding]) -> List[TokenHolding]:
        """One holding per mint; native SOL and wSOL, or split token accounts, are summed"""
        merged: Dict[str, TokenHolding] = {}
        for holding in holdings:
            existing = merged.get(holding.token_id)
            if existing is None:
                merged[holding.token_id] = holding.model_copy()
            else:
                existing.balance += holding.balance
        return list(merged.values())

    @staticmethod
    def value_holdings(owner_id: str, holdings: List[TokenHolding],
                       prices: Dict[str, float]) -> PortfolioSnapshot:
        """Compute value and weight of each holding; weights are 0 when the total is 0"""
        entries = []
        total_value = 0.0

        for holding in holdings:
            price_usd = prices.get(holding.token_id) or 0.0
            value_usd = holding.balance * price_usd
            total_value += value_usd
            entries.append(PortfolioEntry(
                token_id=holding.token_id,
                symbol=holding.symbol,
                balance=holding.balance,
                decimals=holding.decimals,
                price_usd=price_usd,
                value_usd=value_usd,
                percentage=0.0
            ))

        for entry in entries:
            entry.percentage = (entry.value_usd / total_value * 100) if total_value > 0 else 0.0

        return PortfolioSnapshot(
            owner_id=owner_id,
            as_of=datetime.now(timezone.utc),
            total_value_usd=total_value,
            entries=entries
        )

    def _log_snapshot(self, snapshot: PortfolioSnapshot):
        self.logger.info(
            f"Portfolio {snapshot.owner_id}: {len(snapshot.entries)} tokens, "
            f"total ${snapshot.total_value_usd:,.2f}"
        )
        for entry in snapshot.entries:
            self.logger.debug(
                f"  {entry.symbol}: {entry.balance:,.6f} @ ${entry.price_usd:.4f} "
                f"= ${entry.value_usd:,.2f} ({entry.percentage:.2f}%)"
            )
