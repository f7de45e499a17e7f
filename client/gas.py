"""
Gas price oracle. Queries the chain RPC for the current gas price (gwei).
Results cached to avoid hammering the endpoint.
"""

from __future__ import annotations

import logging
import time

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT = 5.0


class GasOracle:
    """
    Cached gas price oracle over JSON-RPC eth_gasPrice.
    Falls back to a default price when the network is disabled or failing.
    """

    def __init__(
        self,
        rpc_url: str = "https://sepolia.base.org",
        cache_sec: float = 10.0,
        default_gas_gwei: float = 1.0,
        allow_network: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._rpc_url = rpc_url
        self._cache_sec = cache_sec
        self._default_gas_gwei = default_gas_gwei
        self._allow_network = allow_network
        self._http = http_client

        self._cached_gas_gwei: float | None = None
        self._gas_ts: float = 0.0

    async def get_gas_price_gwei(self) -> float:
        """Return current gas price in gwei. Uses cache if fresh."""
        now = time.time()
        if self._cached_gas_gwei is not None and (now - self._gas_ts) < self._cache_sec:
            return self._cached_gas_gwei
        if not self._allow_network:
            return self._default_gas_gwei

        try:
            payload = {"jsonrpc": "2.0", "method": "eth_gasPrice", "params": [], "id": 1}
            if self._http is not None:
                resp = await self._http.post(self._rpc_url, json=payload, timeout=_TIMEOUT)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(self._rpc_url, json=payload, timeout=_TIMEOUT)
            resp.raise_for_status()
            hex_price = resp.json()["result"]
            wei = int(hex_price, 16)
            gwei = wei / 1e9
            self._cached_gas_gwei = gwei
            self._gas_ts = now
            logger.debug("Gas price: %.3f gwei", gwei)
            return gwei
        except Exception as e:
            logger.warning("Gas price fetch failed, using default %.1f gwei: %s", self._default_gas_gwei, e)
            return self._default_gas_gwei

