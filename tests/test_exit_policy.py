import dataclasses

from autotrader.models import ExitAction, MomentumReading, SignalCategory
from autotrader.positions import ExitPolicy

from fakes import position

HOUR = 3600.0


def _at(pos, price, peak=None):
    if peak is not None:
        pos.update_price(peak)
    pos.update_price(price)
    return pos


def test_stop_loss_full_exit():
    pos = _at(position(entry=1.0, stop=-40.0), 0.59)
    decision = ExitPolicy().evaluate(pos, now=0.0)

    assert decision.action == ExitAction.STOP_LOSS
    assert decision.sell_percent == 100.0
    assert decision.is_full_exit


def test_stop_loss_boundary_is_inclusive():
    pos = _at(position(entry=1.0, stop=-40.0), 0.60)
    assert ExitPolicy().evaluate(pos, now=0.0).action == ExitAction.STOP_LOSS


def test_explicit_breakeven_stop_is_kept():
    pos = dataclasses.replace(position(entry=1.0, stop=-40.0), effective_stop_loss=0.0)
    assert pos.effective_stop_loss == 0.0

    decision = ExitPolicy().evaluate(_at(pos, 0.99), now=0.0)
    assert decision.is_full_exit
    assert position(stop=-40.0).effective_stop_loss == -40.0


def test_trailing_stop_after_retrace_from_armed_peak():
    pos = _at(position(entry=1.0), 1.30, peak=1.45)
    decision = ExitPolicy().evaluate(pos, now=0.0)

    assert decision.action == ExitAction.TRAILING_STOP
    assert decision.sell_percent == 100.0


def test_trailing_stop_needs_peak_above_activation():
    pos = _at(position(entry=1.0), 1.10, peak=1.40)
    assert ExitPolicy().evaluate(pos, now=0.0).action == ExitAction.NONE


def test_stop_loss_dominates_everything():
    pos = _at(position(entry=1.0, stop=-40.0), 0.50, peak=2.0)
    fading = MomentumReading(score=10.0, buys_5m=1, sells_5m=10)
    decision = ExitPolicy().evaluate(pos, fading, now=0.0)

    assert decision.action == ExitAction.STOP_LOSS


def test_take_profit_two_only_after_take_profit_one():
    pos = _at(position(entry=1.0, tp1=75.0, tp2=200.0), 3.5)
    policy = ExitPolicy()

    first = policy.evaluate(pos, now=0.0)
    assert first.action == ExitAction.TAKE_PROFIT_1
    assert first.sell_percent == 40.0
    assert not first.is_full_exit

    pos.tp1_hit = True
    second = policy.evaluate(pos, now=0.0)
    assert second.action == ExitAction.TAKE_PROFIT_2
    assert second.sell_percent == 100.0


def test_momentum_fade_partial_exit_once():
    pos = _at(position(entry=1.0), 1.20)
    selling = MomentumReading(score=35.0, buys_5m=10, sells_5m=20)
    policy = ExitPolicy()

    decision = policy.evaluate(pos, selling, now=0.0)
    assert decision.action == ExitAction.MOMENTUM_FADE
    assert decision.sell_percent == 50.0

    pos.momentum_fade_hit = True
    assert policy.evaluate(pos, selling, now=0.0).action == ExitAction.NONE


def test_momentum_fade_on_slowing_volume():
    pos = _at(position(entry=1.0), 1.20)
    slowing = MomentumReading(score=50.0, buys_5m=10, sells_5m=10, volume_acceleration=-0.5)
    assert ExitPolicy().evaluate(pos, slowing, now=0.0).action == ExitAction.MOMENTUM_FADE


def test_momentum_fade_skipped_after_take_profit_one():
    pos = _at(position(entry=1.0), 1.20)
    pos.tp1_hit = True
    selling = MomentumReading(score=35.0, buys_5m=10, sells_5m=20)
    assert ExitPolicy().evaluate(pos, selling, now=0.0).action == ExitAction.NONE


def test_time_decay_tightens_stop_for_stale_losers():
    pos = _at(position(entry=1.0, stop=-40.0, category=SignalCategory.STANDARD), 0.78)
    policy = ExitPolicy()

    assert policy.evaluate(pos, now=0.5 * HOUR).action == ExitAction.NONE

    decision = policy.evaluate(pos, now=2 * HOUR)
    assert decision.action == ExitAction.TIME_DECAY_STOP
    assert decision.sell_percent == 100.0


def test_time_decay_never_loosens_stop():
    pos = position(entry=1.0, stop=-10.0, category=SignalCategory.STANDARD)
    _at(pos, 0.75)
    assert ExitPolicy().effective_stop(pos, now=2 * HOUR) == -10.0


def test_time_decay_depends_on_category():
    pos = _at(position(entry=1.0, stop=-40.0, category=SignalCategory.ULTRA_CONVICTION), 0.78)
    assert ExitPolicy().evaluate(pos, now=2 * HOUR).action == ExitAction.NONE


def test_hold_inside_all_bands():
    pos = _at(position(entry=1.0), 1.05)
    assert not ExitPolicy().evaluate(pos, now=0.0).should_sell
