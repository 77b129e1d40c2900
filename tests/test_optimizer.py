import pytest

from autotrader.config import OptimizerConfig
from autotrader.models import Confidence
from autotrader.performance import DEFAULT_THRESHOLDS, ThresholdOptimizer, ThresholdStore

from fakes import outcomes


def test_insufficient_data_is_a_no_op():
    store = ThresholdStore()
    before = store.current
    result = ThresholdOptimizer(store).optimize(outcomes(15, 5))

    assert result.recommendations == []
    assert result.message == "Insufficient data: 15/20 completed signals"
    assert store.current is before
    assert store.history == ()


def test_low_win_rate_tightens_within_cap():
    store = ThresholdStore()
    result = ThresholdOptimizer(store).optimize(outcomes(25, 5), auto_apply=False)

    assert result.win_rate == pytest.approx(20.0)
    assert result.recommendations
    for rec in result.recommendations:
        assert abs(rec.change_percent) <= 15.0 + 1e-9
        if rec.threshold.startswith('min_'):
            assert rec.direction == "INCREASE"
        else:
            assert rec.direction == "DECREASE"
    assert store.current == DEFAULT_THRESHOLDS


def test_tightening_never_overshoots_winning_average():
    store = ThresholdStore(initial=DEFAULT_THRESHOLDS.with_values(min_momentum_score=70.0))
    result = ThresholdOptimizer(store).optimize(outcomes(25, 5), auto_apply=False)

    momentum = [r for r in result.recommendations if r.threshold == 'min_momentum_score'][0]
    assert momentum.recommended_value == pytest.approx(77.0)


def test_high_confidence_recommendations_are_applied():
    store = ThresholdStore()
    result = ThresholdOptimizer(store).optimize(outcomes(25, 8))

    momentum = [r for r in result.recommendations if r.threshold == 'min_momentum_score'][0]
    assert momentum.confidence == Confidence.HIGH
    assert result.auto_applied
    assert store.current == result.recommended_thresholds
    assert store.current.min_momentum_score == pytest.approx(25.0 * 1.15)
    assert {c.threshold for c in store.history} == {'min_momentum_score'}


def test_high_win_rate_on_low_volume_only_loosens():
    store = ThresholdStore(initial=DEFAULT_THRESHOLDS.with_values(min_onchain_score=90.0, max_bundle_risk_score=5.0))
    result = ThresholdOptimizer(store).optimize(outcomes(25, 18), signal_volume=5, auto_apply=False)

    by_name = {r.threshold: r for r in result.recommendations}
    assert by_name['min_onchain_score'].direction == "DECREASE"
    assert by_name['min_onchain_score'].recommended_value == pytest.approx(80.0)
    assert by_name['max_bundle_risk_score'].direction == "INCREASE"
    for rec in result.recommendations:
        if rec.threshold.startswith('min_'):
            assert rec.direction == "DECREASE"
        else:
            assert rec.direction == "INCREASE"

    busy = ThresholdOptimizer(ThresholdStore(initial=store.current))
    nudged = {r.threshold: r for r in busy.optimize(outcomes(25, 18), signal_volume=50, auto_apply=False).recommendations}
    assert nudged['min_momentum_score'].direction == "INCREASE"
    assert 'min_onchain_score' not in nudged


def test_optimizer_failure_leaves_thresholds_unchanged(monkeypatch):
    store = ThresholdStore()
    optimizer = ThresholdOptimizer(store)

    def boom(outcomes):
        raise ValueError("bad factor data")

    monkeypatch.setattr(optimizer, "analyze_factors", boom)
    result = optimizer.optimize(outcomes(25, 5))

    assert not result.success
    assert result.error == "bad factor data"
    assert store.current == DEFAULT_THRESHOLDS
    assert store.history == ()


def test_factor_analysis_needs_wins_and_losses():
    optimizer = ThresholdOptimizer(ThresholdStore())
    assert optimizer.analyze_factors(outcomes(25, 25)) == []
    assert optimizer.optimize(outcomes(25, 25), auto_apply=False).recommendations == []


def test_factor_analysis_statistics():
    analyses = ThresholdOptimizer(ThresholdStore()).analyze_factors(outcomes(20, 10))
    momentum = analyses[0]

    assert momentum.factor == 'momentum_score'
    assert momentum.winning_avg == pytest.approx(79.5)
    assert momentum.losing_avg == pytest.approx(29.5)
    assert momentum.separation > 10
    assert momentum.optimal_threshold == pytest.approx(79.5 - momentum.winning_std)
    assert momentum.confidence_score == 1.0


def test_manual_override_and_history(tmp_path):
    path = str(tmp_path / "thresholds.jsonl")
    store = ThresholdStore(history_path=path)
    optimizer = ThresholdOptimizer(store, OptimizerConfig())

    changes = optimizer.set_thresholds("manual", min_liquidity=12_000.0)
    assert [c.threshold for c in changes] == ['min_liquidity']
    assert changes[0].old_value == 8000.0

    assert optimizer.set_thresholds("again", min_liquidity=12_000.0) == []
    with pytest.raises(KeyError):
        optimizer.set_thresholds("typo", min_liquidty=1.0)

    restored = ThresholdStore(history_path=path)
    assert restored.current.min_liquidity == 12_000.0
    assert len(restored.history) == 1

    assert store.value_at(changes[0].timestamp - 1).min_liquidity == 8000.0
    store.reset()
    assert store.current == DEFAULT_THRESHOLDS
