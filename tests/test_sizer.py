from types import SimpleNamespace

import pytest

from autotrader.config import AutoTraderConfig, SizingConfig
from autotrader.models import (
    ComponentScores,
    Confidence,
    MarketCapTier,
    OnChainScore,
    Recommendation,
    RiskLevel,
    WinPrediction,
)
from autotrader.portfolio import PortfolioState, PositionSizer, SignalStrength

TIERS = {t.tier: t for t in AutoTraderConfig().tiers}


def _score(momentum=70.0, safety=85.0, bundle_safety=90.0):
    return OnChainScore(
        total=75.0,
        components=ComponentScores(momentum, safety, bundle_safety, 60.0, 80.0),
        recommendation=Recommendation.BUY,
        risk_level=RiskLevel.LOW,
        confidence=Confidence.MEDIUM,
    )


def _signal(percent, ticker="TKN"):
    return SimpleNamespace(ticker=ticker, position_size_percent=percent)


def test_classify_strength():
    sizer = PositionSizer()
    assert sizer.classify(_score()) == SignalStrength.STRONG
    assert sizer.classify(_score(45.0, 45.0, 45.0)) == SignalStrength.MODERATE
    assert sizer.classify(_score(20.0, 20.0, 20.0)) == SignalStrength.WEAK


def test_low_safety_caps_strength_and_validator_lifts_weak():
    sizer = PositionSizer()
    assert sizer.classify(_score(100.0, 25.0, 100.0)) == SignalStrength.MODERATE
    assert sizer.classify(_score(32.0, 32.0, 32.0)) == SignalStrength.WEAK
    assert sizer.classify(_score(32.0, 32.0, 32.0), validated=True) == SignalStrength.MODERATE


def test_strong_signal_capped_by_tier_ceiling():
    percent, rationale = PositionSizer().position_percent(_score(), TIERS[MarketCapTier.RISING])

    assert percent == 8.0
    assert rationale[0] == "base 10.0%"
    assert rationale[-1] == "capped at 8.0%"


def test_weak_signal_multipliers_compound():
    tier = TIERS[MarketCapTier.RISING]
    sizer = PositionSizer()
    weak = _score(20.0, 20.0, 20.0)

    percent, _ = sizer.position_percent(weak, tier)
    assert percent == pytest.approx(10 * 0.6 * 0.6 * 0.5 * 0.5 * 0.75)

    halved, rationale = sizer.position_percent(weak, tier, WinPrediction(30.0, Confidence.LOW, 0.5))
    assert halved == pytest.approx(percent / 2)
    assert "predictor: 0.50x" in rationale


def test_streaks_scale_allocation():
    tier = TIERS[MarketCapTier.EMERGING]
    weak = _score(20.0, 20.0, 20.0)
    neutral, _ = PositionSizer().position_percent(weak, tier)

    losing = PortfolioState(total_sol=1.0, available_sol=1.0, loss_streak=3)
    down, _ = PositionSizer(portfolio=losing).position_percent(weak, tier)
    assert down == pytest.approx(neutral * 0.7)

    winning = PortfolioState(total_sol=1.0, available_sol=1.0, win_streak=3)
    up, _ = PositionSizer(portfolio=winning).position_percent(weak, tier)
    assert up == pytest.approx(neutral * 1.1)

    long_losing = PortfolioState(total_sol=1.0, available_sol=1.0, loss_streak=10)
    floor, _ = PositionSizer(portfolio=long_losing).position_percent(weak, tier)
    assert floor == pytest.approx(neutral * 0.5)


def test_can_open_limits():
    config = SizingConfig(max_open_positions=2, max_daily_trades=3)
    portfolio = PortfolioState.with_capital(1.0)
    sizer = PositionSizer(config, portfolio)
    assert sizer.can_open() == (True, "")

    portfolio.open_positions = 2
    assert sizer.can_open() == (False, "max-open-positions")

    portfolio.open_positions = 0
    portfolio.daily_trades = 3
    assert sizer.can_open() == (False, "daily-trade-limit")

    portfolio.daily_trades = 0
    portfolio.available_sol = 0.06
    assert sizer.can_open() == (False, "insufficient-capital")


def test_size_for_converts_percent_to_sol():
    sizer = PositionSizer(portfolio=PortfolioState.with_capital(1.0))
    decision = sizer.size_for(_signal(8.0))

    assert decision.approved
    assert decision.sol_amount == 0.08
    assert decision.position_percent == pytest.approx(8.0)


def test_size_for_respects_reserve_and_minimum():
    portfolio = PortfolioState(total_sol=10.0, available_sol=1.0)
    assert PositionSizer(portfolio=portfolio).size_for(_signal(50.0)).sol_amount == 0.98

    small = PositionSizer(portfolio=PortfolioState.with_capital(1.0))
    assert small.size_for(_signal(1.0)).sol_amount == 0.05


def test_size_for_refused():
    portfolio = PortfolioState.with_capital(1.0)
    portfolio.open_positions = 5
    decision = PositionSizer(portfolio=portfolio).size_for(_signal(8.0))

    assert not decision.approved
    assert decision.sol_amount == 0.0
    assert decision.reason == "max-open-positions"


def test_portfolio_bookkeeping():
    portfolio = PortfolioState.with_capital(1.0)
    portfolio.record_open(0.2)
    portfolio.record_partial(0.1)
    portfolio.record_close(0.2, 0.1)

    assert portfolio.open_positions == 0
    assert portfolio.daily_trades == 1
    assert portfolio.total_sol == pytest.approx(0.9)
    assert portfolio.loss_streak == 1
    assert portfolio.to_dict()['daily_pnl_sol'] == pytest.approx(-0.1)
