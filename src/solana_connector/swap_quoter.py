import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import aiohttp

from app_config import AppConfig, get_config
from wallet_connector_base import (
    SwapQuoter,
    SwapQuote,
    QuoteExpiredError,
    UpstreamUnavailableError,
)


class JupiterSwapQuoter(SwapQuoter):
    """Jupiter v6 aggregator quotes and unsigned swap instructions"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self.api_url = self.config.swap_quoter.api_url.rstrip('/')

    async def get_quote(self, input_token_id: str, output_token_id: str, amount: int) -> Optional[SwapQuote]:
        params = {
            "inputMint": input_token_id,
            "outputMint": output_token_id,
            "amount": str(amount),
            "slippageBps": str(self.config.swap_quoter.slippage_bps),
        }
        timeout = aiohttp.ClientTimeout(total=self.config.swap_quoter.quote_timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(f"{self.api_url}/quote", params=params) as response:
                    if response.status != 200:
                        response_text = await response.text()
                        self.logger.warning(
                            f"Jupiter quote {input_token_id[:8]} -> {output_token_id[:8]} "
                            f"returned status {response.status}: {response_text}"
                        )
                        return None
                    data = await response.json()
        except aiohttp.ClientError as e:
            self.logger.error(f"Error getting Jupiter quote: {e}")
            return None

        return self.parse_quote(data, self.config.swap_quoter.quote_ttl_seconds)

    @staticmethod
    def parse_quote(data: dict, ttl_seconds: int) -> Optional[SwapQuote]:
        """Build a SwapQuote from a /quote response; the raw response is kept as payload"""
        if not data or "outAmount" not in data:
            return None

        price_impact = data.get("priceImpactPct")
        quoted_at = datetime.now(timezone.utc)
        return SwapQuote(
            input_token_id=data["inputMint"],
            output_token_id=data["outputMint"],
            in_amount=int(data["inAmount"]),
            out_amount=int(data["outAmount"]),
            price_impact_percent=float(price_impact) if price_impact is not None else None,
            payload=json.dumps(data),
            quoted_at=quoted_at,
            expires_at=quoted_at + timedelta(seconds=ttl_seconds)
        )

    async def build_instructions(self, quote_payload: str, owner_id: str) -> dict:
        """
        Request swap instructions for a stored quote.

        Raises:
            QuoteExpiredError: The payload is unusable or Jupiter rejects it
            UpstreamUnavailableError: Jupiter is unreachable or failing
        """
        try:
            quote_response = json.loads(quote_payload)
        except (TypeError, ValueError) as e:
            raise QuoteExpiredError("Stored quote is unreadable, create a new plan") from e

        body = {
            "quoteResponse": quote_response,
            "userPublicKey": owner_id,
            "wrapAndUnwrapSol": True,
            "computeUnitPriceMicroLamports": "auto",
        }
        timeout = aiohttp.ClientTimeout(total=self.config.swap_quoter.request_timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(f"{self.api_url}/swap-instructions", json=body) as response:
                    if 400 <= response.status < 500:
                        response_text = await response.text()
                        self.logger.warning(f"Jupiter rejected swap instructions: {response.status} - {response_text}")
                        raise QuoteExpiredError("Quote was rejected by the aggregator, create a new plan")
                    if response.status != 200:
                        response_text = await response.text()
                        raise UpstreamUnavailableError(
                            f"Jupiter swap-instructions returned status {response.status}: {response_text}"
                        )
                    return await response.json()
        except aiohttp.ClientError as e:
            self.logger.error(f"Error getting swap instructions: {e}")
            raise UpstreamUnavailableError("Failed to get swap instructions from Jupiter") from e
