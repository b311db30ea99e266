import itertools
import logging
from typing import Any, List, Optional

import aiohttp

from app_config import AppConfig, get_config
from wallet_connector_base import UpstreamUnavailableError


class SolanaRpcClient:
    """Minimal Solana JSON-RPC client over aiohttp"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self.rpc_url = self.config.solana.rpc_url
        self.commitment = self.config.solana.commitment
        self._request_ids = itertools.count(1)

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Invoke an RPC method and return its result member.

        Raises:
            UpstreamUnavailableError: On transport errors, non-200 responses
                or an RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params or []
        }
        timeout = aiohttp.ClientTimeout(total=self.config.solana.request_timeout_seconds)

        self.logger.debug(f"RPC {method} -> {self.rpc_url}")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.rpc_url, json=payload) as response:
                    if response.status != 200:
                        response_text = await response.text()
                        raise UpstreamUnavailableError(
                            f"Solana RPC {method} returned status {response.status}: {response_text}"
                        )
                    data = await response.json()
        except aiohttp.ClientError as e:
            self.logger.error(f"HTTP error calling Solana RPC {method}: {e}")
            raise UpstreamUnavailableError(f"Solana RPC {method} unreachable: {e}") from e

        if data.get("error"):
            error = data["error"]
            raise UpstreamUnavailableError(f"Solana RPC {method} failed: {error.get('message', error)}")
        return data.get("result")
