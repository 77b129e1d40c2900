import asyncio
import time

import pytest

from autotrader.models import RiskLevel
from autotrader.providers import (
    DexScreenerClient,
    RugCheckClient,
    bundle_from_report,
    momentum_from_pair,
    safety_from_report,
)
from autotrader.providers.dexscreener import DEXSCREENER_BOOSTS, DEXSCREENER_TOKENS, best_pair
from autotrader.providers.rugcheck import top10_percent


def _pair(liquidity=50_000, chain='solana', buys=30, sells=10, vol_5m=1_000, vol_1h=12_000,
          change_5m=4.0, **extra):
    pair = {
        'chainId': chain,
        'baseToken': {'symbol': 'TKN', 'name': 'Token'},
        'priceUsd': '0.0012',
        'marketCap': 900_000,
        'liquidity': {'usd': liquidity},
        'volume': {'m5': vol_5m, 'h1': vol_1h, 'h24': 400_000},
        'txns': {'m5': {'buys': buys, 'sells': sells}},
        'priceChange': {'m5': change_5m},
    }
    pair.update(extra)
    return pair


def _holders(*percents, insiders=0):
    return [{'pct': p, 'insider': i < insiders} for i, p in enumerate(percents)]


def test_best_pair_prefers_liquid_solana_pair():
    shallow, deep = _pair(liquidity=10_000), _pair(liquidity=90_000)
    other_chain = _pair(liquidity=500_000, chain='base')

    assert best_pair([shallow, other_chain, deep]) is deep
    assert best_pair([other_chain]) is None
    assert best_pair([]) is None


def test_momentum_from_buy_heavy_pair():
    reading = momentum_from_pair(_pair())

    assert reading.score == pytest.approx(72.0)
    assert reading.buys_5m == 30
    assert reading.volume_acceleration == pytest.approx(0.0)
    assert reading.flags == ()


def test_momentum_from_selling_pair():
    reading = momentum_from_pair(_pair(buys=4, sells=8, vol_5m=100, change_5m=0.0))

    assert reading.score == pytest.approx(50 - 80 / 6 - 9)
    assert reading.volume_acceleration == pytest.approx(-0.9)
    assert 'SELL_PRESSURE' in reading.flags
    assert 'VOLUME_SLOWING' in reading.flags


def test_momentum_without_trades():
    reading = momentum_from_pair({})

    assert reading.score == 50.0
    assert reading.flags == ('NO_RECENT_TRADES', 'LOW_ACTIVITY')


def test_clean_report_is_safe():
    report = {
        'risks': [],
        'markets': [{'lp': {'lpLockedPct': 100}}],
        'topHolders': _holders(*[3.0] * 10),
    }
    result = safety_from_report(report)

    assert result.score == 100.0
    assert not result.is_blocked
    assert result.warnings == ()


def test_active_mint_authority_blocks_and_caps_score():
    report = {
        'risks': [{'name': 'Mutable metadata', 'level': 'warn'}],
        'mintAuthority': 'MintAuthority1111',
        'markets': [{'lp': {'lpLockedPct': 0}}],
        'topHolders': _holders(*[7.0] * 10),
    }
    result = safety_from_report(report)

    assert result.blocking_flags == ('MINT_AUTHORITY_ACTIVE',)
    assert result.warnings == ('MUTABLE_METADATA', 'LP_NOT_LOCKED', 'TOP10_CONCENTRATED')
    assert result.score == 20.0


def test_danger_risks_block():
    report = {
        'risks': [{'name': 'Freeze Authority still enabled', 'level': 'danger'}],
        'topHolders': _holders(5.0),
        'rugged': True,
    }
    result = safety_from_report(report)

    assert result.blocking_flags == ('FREEZE_AUTHORITY_STILL_ENABLED', 'RUGGED')


def test_missing_holders_count_as_concentrated():
    assert top10_percent({}) == 100.0
    assert 'TOP10_CONCENTRATED' in safety_from_report({}).warnings


def test_bundle_risk_levels():
    medium = bundle_from_report({'topHolders': _holders(25.0, 20.0, 10.0, insiders=2),
                                 'graphInsidersDetected': 6})
    assert medium.risk_score == 45.0
    assert medium.risk_level == RiskLevel.MEDIUM
    assert medium.flags == ('HIGH_INSIDER_CONCENTRATION', 'INSIDER_NETWORK')

    critical = bundle_from_report({'topHolders': _holders(40.0, 25.0, insiders=2),
                                   'graphInsidersDetected': 12})
    assert critical.risk_score == 85.0
    assert critical.risk_level == RiskLevel.CRITICAL
    assert critical.safety_score == 15.0

    clean = bundle_from_report({'topHolders': _holders(5.0, 4.0)})
    assert clean.risk_score == 0.0
    assert clean.risk_level == RiskLevel.LOW


def test_rugcheck_client_shares_one_cached_report(monkeypatch):
    client = RugCheckClient()
    calls = []

    async def fake_request(address):
        calls.append(address)
        if address == "MISSING":
            return None
        return {'totalHolders': 750, 'topHolders': _holders(*[2.0] * 10), 'risks': []}

    monkeypatch.setattr(client, "_request", fake_request)

    async def run():
        safety = await client.check_safety("TOKEN1")
        bundle = await client.check_bundle_risk("TOKEN1")
        holders = await client.holder_stats("TOKEN1")
        assert await client.check_safety("MISSING") is None
        assert await client.check_safety("MISSING") is None
        await client.close()
        return safety, bundle, holders

    safety, bundle, holders = asyncio.run(run())
    assert safety.score == 100.0
    assert bundle.risk_level == RiskLevel.LOW
    assert holders == (750, 20.0)
    assert calls == ["TOKEN1", "MISSING", "MISSING"]


class _Holders:
    async def holder_stats(self, address):
        return 820, 22.5


def _dexscreener(monkeypatch, responses, **kwargs):
    client = DexScreenerClient(**kwargs)
    calls = []

    async def fake_get_json(url):
        calls.append(url)
        return responses.get(url)

    monkeypatch.setattr(client, "_get_json", fake_get_json)
    return client, calls


def test_dexscreener_metrics_snapshot(monkeypatch):
    created = (time.time() - 30 * 60) * 1000
    url = f"{DEXSCREENER_TOKENS}/TOKEN1"
    client, calls = _dexscreener(monkeypatch, {url: {'pairs': [_pair(pairCreatedAt=created)]}},
                                 holders=_Holders())

    async def run():
        metrics = await client.fetch_metrics("TOKEN1")
        momentum = await client.analyze_momentum("TOKEN1")
        return metrics, momentum

    metrics, momentum = asyncio.run(run())
    assert metrics.ticker == "TKN"
    assert metrics.price == pytest.approx(0.0012)
    assert metrics.market_cap == 900_000
    assert metrics.liquidity_pool == 50_000
    assert metrics.holder_count == 820
    assert metrics.top10_concentration == 22.5
    assert metrics.age_minutes == pytest.approx(30.0, abs=1.0)
    assert momentum.score == pytest.approx(72.0)
    assert calls == [url]


class _NoHolders:
    async def holder_stats(self, address):
        return None


def test_missing_holder_stats_read_as_concentrated(monkeypatch):
    url = f"{DEXSCREENER_TOKENS}/TOKEN1"
    client, _ = _dexscreener(monkeypatch, {url: {'pairs': [_pair()]}}, holders=_NoHolders())

    metrics = asyncio.run(client.fetch_metrics("TOKEN1"))

    assert metrics.holder_count == 0
    assert metrics.top10_concentration == 100.0


def test_dexscreener_price_bypasses_cache(monkeypatch):
    url = f"{DEXSCREENER_TOKENS}/TOKEN1"
    client, calls = _dexscreener(monkeypatch, {url: {'pairs': [_pair()]}})

    async def run():
        await client.fetch_metrics("TOKEN1")
        first = await client.fetch_price("TOKEN1")
        second = await client.fetch_price("TOKEN1")
        missing = await client.fetch_price("GONE")
        return first, second, missing

    first, second, missing = asyncio.run(run())
    assert first == second == pytest.approx(0.0012)
    assert missing is None
    assert calls.count(url) == 3


def test_dexscreener_candidates(monkeypatch):
    boosts = [
        {'chainId': 'solana', 'tokenAddress': 'AAA'},
        {'chainId': 'base', 'tokenAddress': 'BBB'},
        {'chainId': 'solana', 'tokenAddress': 'AAA'},
        {'chainId': 'solana', 'tokenAddress': 'CCC'},
        {'chainId': 'solana', 'tokenAddress': 'DDD'},
    ]
    client, _ = _dexscreener(monkeypatch, {DEXSCREENER_BOOSTS: boosts}, max_candidates=2)
    assert asyncio.run(client.get_candidates()) == ['AAA', 'CCC']

    empty, _ = _dexscreener(monkeypatch, {})
    assert asyncio.run(empty.get_candidates()) == []
