"""
Venue feed protocol and implementations.

A feed supplies point-in-time venue snapshots and the current fee level.
Any failure surfaces as FeedUnavailable; the loop treats it as an empty cycle.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Protocol, runtime_checkable

from client.contracts import PAIR_ABI
from client.gas import GasOracle
from scanner.models import VenueSnapshot

logger = logging.getLogger(__name__)


class FeedUnavailable(Exception):
    """Transient feed failure. Skip this cycle, never fatal."""
    pass


@runtime_checkable
class VenueFeed(Protocol):
    """Minimal interface for a venue data source."""

    async def fetch_snapshots(self) -> list[VenueSnapshot]:
        """Return the current snapshot of every tracked venue."""
        ...

    async def current_fee_level(self) -> float:
        """Return the current network fee level in gwei."""
        ...


# Two FRAX/USDC pools used for offline runs
DEFAULT_SIMULATED_POOLS: tuple[VenueSnapshot, ...] = (
    VenueSnapshot(
        address="0x1111111111111111111111111111111111111111",
        name="FraxSwap FRAX/USDC Pool A",
        price=0.998,
        liquidity=2_000_000.0,
        timestamp=0.0,
        token0="FRAX",
        token1="USDC",
        reserve0=1_000_000.0,
        reserve1=998_000.0,
    ),
    VenueSnapshot(
        address="0x2222222222222222222222222222222222222222",
        name="FraxSwap FRAX/USDC Pool B",
        price=1.004,
        liquidity=1_000_000.0,
        timestamp=0.0,
        token0="FRAX",
        token1="USDC",
        reserve0=500_000.0,
        reserve1=502_000.0,
    ),
)


class SimulatedVenueFeed:
    """
    Static pool set with optional random price jitter (absolute, per fetch).
    """

    def __init__(
        self,
        pools: tuple[VenueSnapshot, ...] | list[VenueSnapshot] = DEFAULT_SIMULATED_POOLS,
        gas_oracle: GasOracle | None = None,
        price_jitter: float = 0.0,
        rng: random.Random | None = None,
    ):
        self._pools = tuple(pools)
        self._gas_oracle = gas_oracle or GasOracle()
        self._price_jitter = price_jitter
        self._rng = rng or random.Random()

    async def fetch_snapshots(self) -> list[VenueSnapshot]:
        now = time.time()
        snapshots = []
        for pool in self._pools:
            price = pool.price
            if self._price_jitter > 0:
                price = max(0.0, price + self._rng.uniform(-self._price_jitter, self._price_jitter))
            snapshots.append(VenueSnapshot(
                address=pool.address,
                name=pool.name,
                price=price,
                liquidity=pool.liquidity,
                timestamp=now,
                token0=pool.token0,
                token1=pool.token1,
                reserve0=pool.reserve0,
                reserve1=pool.reserve1,
            ))
        return snapshots

    async def current_fee_level(self) -> float:
        return await self._gas_oracle.get_gas_price_gwei()


class OnChainVenueFeed:
    """
    Reads V2-style pair reserves over JSON-RPC.
    price = reserve1 / reserve0 (decimal-adjusted), liquidity = reserve0 + reserve1.
    """

    def __init__(
        self,
        w3,
        pair_addresses: list[str],
        gas_oracle: GasOracle,
        names: list[str] | None = None,
        decimals0: int = 18,
        decimals1: int = 6,
    ):
        self._w3 = w3
        self._pair_addresses = list(pair_addresses)
        self._names = list(names) if names else []
        self._gas_oracle = gas_oracle
        self._scale0 = 10 ** decimals0
        self._scale1 = 10 ** decimals1

    def _name_for(self, index: int, address: str) -> str:
        if index < len(self._names):
            return self._names[index]
        return f"Pool {address[:10]}"

    async def _read_pair(self, index: int, address: str) -> VenueSnapshot:
        pair = self._w3.eth.contract(address=self._w3.to_checksum_address(address), abi=PAIR_ABI)
        reserves, token0, token1 = await asyncio.gather(
            pair.functions.getReserves().call(),
            pair.functions.token0().call(),
            pair.functions.token1().call(),
        )
        reserve0 = reserves[0] / self._scale0
        reserve1 = reserves[1] / self._scale1
        price = reserve1 / reserve0 if reserve0 > 0 else 0.0
        return VenueSnapshot(
            address=address,
            name=self._name_for(index, address),
            price=price,
            liquidity=reserve0 + reserve1,
            timestamp=time.time(),
            token0=token0,
            token1=token1,
            reserve0=reserve0,
            reserve1=reserve1,
        )

    async def fetch_snapshots(self) -> list[VenueSnapshot]:
        try:
            return list(await asyncio.gather(
                *(self._read_pair(i, addr) for i, addr in enumerate(self._pair_addresses))
            ))
        except Exception as e:
            raise FeedUnavailable(f"pair reserve fetch failed: {e}") from e

    async def current_fee_level(self) -> float:
        try:
            return await self._gas_oracle.get_gas_price_gwei()
        except Exception as e:
            raise FeedUnavailable(f"gas price fetch failed: {e}") from e


def build_feed(cfg, rng: random.Random | None = None) -> VenueFeed:
    """Factory: on-chain feed when pair addresses are configured, simulated otherwise."""
    addresses = cfg.pair_addresses
    if not addresses:
        oracle = GasOracle(
            rpc_url=cfg.rpc_url,
            cache_sec=cfg.gas_cache_sec,
            default_gas_gwei=cfg.default_gas_gwei,
            allow_network=False,
        )
        return SimulatedVenueFeed(gas_oracle=oracle, price_jitter=cfg.simulated_price_jitter, rng=rng)

    from web3 import AsyncWeb3

    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(cfg.rpc_url))
    oracle = GasOracle(
        rpc_url=cfg.rpc_url,
        cache_sec=cfg.gas_cache_sec,
        default_gas_gwei=cfg.default_gas_gwei,
        allow_network=True,
    )
    return OnChainVenueFeed(
        w3,
        addresses,
        oracle,
        names=cfg.pair_names,
        decimals0=cfg.token_decimals0,
        decimals1=cfg.token_decimals1,
    )
