import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

import aiohttp

from app_config import AppConfig, get_config
from wallet_connector_base import PriceOracle
from .models import CachedPrice
from .tokens import price_feed_for


class PythPriceOracle(PriceOracle):
    """USD prices from the Pyth Hermes API with a short-lived in-process cache"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self.api_url = self.config.price_oracle.api_url.rstrip('/')

        # Price cache: mint -> CachedPrice
        self._price_cache: Dict[str, CachedPrice] = {}
        self._cache_ttl_seconds = self.config.price_oracle.cache_ttl_seconds

    async def get_prices(self, token_ids: List[str]) -> Dict[str, float]:
        """Fetch all prices concurrently; a failed or unknown token maps to 0.0"""
        timeout = aiohttp.ClientTimeout(total=self.config.price_oracle.request_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            prices = await asyncio.gather(*[self.get_price(token_id, session) for token_id in token_ids])

        result = dict(zip(token_ids, prices))
        priced = [f"{token_id[:8]} -> ${price:.4f}" for token_id, price in result.items() if price > 0]
        if priced:
            self.logger.info(f"Retrieved prices: {', '.join(priced)}")
        return result

    async def get_price(self, token_id: str, session: aiohttp.ClientSession) -> float:
        now = datetime.now()
        cached_entry = self._price_cache.get(token_id)
        if cached_entry:
            age_seconds = (now - cached_entry.cached_at).total_seconds()
            if age_seconds < self._cache_ttl_seconds:
                self.logger.debug(f"Using cached price for {token_id} (age: {age_seconds:.1f}s)")
                return cached_entry.price_usd

        feed_id = price_feed_for(token_id)
        if not feed_id:
            self.logger.warning(f"No Pyth price feed for token: {token_id}")
            return 0.0

        try:
            data = await self._fetch_latest(session, feed_id)
            price_usd = self.parse_price(data)
        except Exception as e:
            self.logger.error(f"Error fetching price for {token_id}: {e}")
            return 0.0

        self._price_cache[token_id] = CachedPrice(token_id=token_id, price_usd=price_usd, cached_at=now)
        return price_usd

    async def _fetch_latest(self, session: aiohttp.ClientSession, feed_id: str) -> dict:
        url = f"{self.api_url}/updates/price/latest"
        async with session.get(url, params=[("ids[]", feed_id)]) as response:
            if response.status != 200:
                response_text = await response.text()
                raise ValueError(f"Pyth returned status {response.status}: {response_text}")
            return await response.json()

    @staticmethod
    def parse_price(data: dict) -> float:
        """Decode price * 10^expo from a Hermes latest-update response"""
        parsed = (data or {}).get('parsed') or []
        if not parsed:
            raise ValueError("Invalid price data from Pyth")

        price = parsed[0]['price']
        return float(price['price']) * 10 ** int(price['expo'])

    def clear_cache(self):
        self._price_cache.clear()
