"""
DexScreener Client - market data, order flow and discovery.

One pair lookup per token (the most liquid Solana pair) feeds three
collaborator roles:

    fetch_metrics      -> MetricsSnapshot  (MetricsProvider)
    analyze_momentum   -> MomentumReading  (MomentumAnalyzer)
    get_candidates     -> boosted tokens   (CandidateSource)

Holder count and top-10 concentration are not on DexScreener; pass a
`holders` source (RugCheckClient) to fill them in.

Usage:
    from autotrader.providers import DexScreenerClient

    client = DexScreenerClient(holders=rugcheck)
    snapshot = await client.fetch_metrics(address)
    await client.close()
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional

import aiohttp

from ..core.cache import TTLCache
from ..interfaces import CandidateSource, MetricsProvider, MomentumAnalyzer
from ..models import MetricsSnapshot, MomentumReading

logger = logging.getLogger(__name__)


DEXSCREENER_TOKENS = "https://api.dexscreener.com/latest/dex/tokens"
DEXSCREENER_BOOSTS = "https://api.dexscreener.com/token-boosts/latest/v1"


def _as_float(value, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def best_pair(pairs: List[dict]) -> Optional[dict]:
    """Most liquid Solana pair, or None."""
    solana = [p for p in pairs if p.get('chainId', 'solana') == 'solana']
    if not solana:
        return None
    return max(solana, key=lambda p: _as_float((p.get('liquidity') or {}).get('usd')))


def momentum_from_pair(pair: dict) -> MomentumReading:
    """
    Score short-window order flow from a DexScreener pair.

    Buy share of 5m transactions drives the score; the 5m price move and
    5m volume versus the hourly run-rate adjust it.
    """
    m5 = (pair.get('txns') or {}).get('m5') or {}
    buys = _as_int(m5.get('buys'))
    sells = _as_int(m5.get('sells'))
    total = buys + sells

    volume = pair.get('volume') or {}
    vol_5m = _as_float(volume.get('m5'))
    vol_1h = _as_float(volume.get('h1'))
    acceleration = 0.0
    if vol_1h > 0:
        # 5m volume scaled to an hour, relative to the last hour
        acceleration = (vol_5m * 12 - vol_1h) / vol_1h

    change_5m = _as_float((pair.get('priceChange') or {}).get('m5'))

    flags = []
    score = 50.0
    if total > 0:
        score += (buys / total - 0.5) * 80
    else:
        flags.append('NO_RECENT_TRADES')
    score += max(-20.0, min(20.0, change_5m)) * 0.5
    score += max(-1.0, min(1.0, acceleration)) * 10

    if total < 5:
        flags.append('LOW_ACTIVITY')
    if buys > 0 and sells / buys >= 1.5:
        flags.append('SELL_PRESSURE')
    if acceleration < -0.3:
        flags.append('VOLUME_SLOWING')

    return MomentumReading(
        score=max(0.0, min(100.0, score)),
        buys_5m=buys,
        sells_5m=sells,
        volume_acceleration=acceleration,
        flags=tuple(flags),
    )


class DexScreenerClient(MetricsProvider, MomentumAnalyzer, CandidateSource):
    """DexScreener REST client with a short pair cache."""

    def __init__(
        self,
        holders=None,
        timeout: float = 10.0,
        cache_ttl: float = 30.0,
        chain: str = "solana",
        max_candidates: int = 30,
    ):
        self.holders = holders
        self.timeout = timeout
        self.chain = chain
        self.max_candidates = max_candidates
        self._pairs: TTLCache = TTLCache(ttl=cache_ttl)
        self._session: Optional[aiohttp.ClientSession] = None
        self.requests = 0
        self.errors = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get_json(self, url: str):
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        self.requests += 1
        try:
            async with session.get(url, timeout=timeout) as resp:
                if resp.status != 200:
                    self.errors += 1
                    logger.debug(f"DexScreener {resp.status} for {url}")
                    return None
                return await resp.json()
        except asyncio.TimeoutError:
            self.errors += 1
            logger.debug(f"DexScreener timeout for {url}")
            return None
        except aiohttp.ClientError as e:
            self.errors += 1
            logger.warning(f"DexScreener request failed: {e}")
            return None

    async def fetch_pair(self, address: str) -> Optional[dict]:
        async def load():
            data = await self._get_json(f"{DEXSCREENER_TOKENS}/{address}")
            if not data:
                return None
            return best_pair(data.get('pairs') or [])

        return await self._pairs.get_or_load(address, load)

    async def fetch_metrics(self, address: str) -> Optional[MetricsSnapshot]:
        pair = await self.fetch_pair(address)
        if pair is None:
            return None

        # Unknown distribution reads as fully concentrated
        holder_count, top10 = 0, 100.0
        if self.holders is not None:
            stats = await self.holders.holder_stats(address)
            if stats is not None:
                holder_count, top10 = stats
            else:
                logger.debug(f"No holder stats for {address[:8]}")

        created_ms = _as_float(pair.get('pairCreatedAt'))
        age_minutes = (time.time() - created_ms / 1000) / 60 if created_ms > 0 else 0.0
        base = pair.get('baseToken') or {}

        return MetricsSnapshot(
            address=address,
            ticker=base.get('symbol', '???'),
            name=base.get('name', ''),
            price=_as_float(pair.get('priceUsd')),
            market_cap=_as_float(pair.get('marketCap') or pair.get('fdv')),
            volume_24h=_as_float((pair.get('volume') or {}).get('h24')),
            liquidity_pool=_as_float((pair.get('liquidity') or {}).get('usd')),
            holder_count=holder_count,
            top10_concentration=top10,
            age_minutes=max(0.0, age_minutes),
        )

    async def fetch_price(self, address: str) -> Optional[float]:
        # Position polls need a fresh price, not the cached pair
        self._pairs.delete(address)
        pair = await self.fetch_pair(address)
        if pair is None:
            return None
        price = _as_float(pair.get('priceUsd'))
        return price if price > 0 else None

    async def analyze_momentum(self, address: str) -> Optional[MomentumReading]:
        pair = await self.fetch_pair(address)
        if pair is None:
            return None
        return momentum_from_pair(pair)

    async def get_candidates(self) -> List[str]:
        data = await self._get_json(DEXSCREENER_BOOSTS)
        if not data:
            return []
        seen = set()
        addresses = []
        for entry in data:
            if entry.get('chainId') != self.chain:
                continue
            address = entry.get('tokenAddress')
            if address and address not in seen:
                seen.add(address)
                addresses.append(address)
        return addresses[:self.max_candidates]

    def get_stats(self) -> Dict[str, object]:
        return {
            'requests': self.requests,
            'errors': self.errors,
            'cache': self._pairs.stats(),
        }
