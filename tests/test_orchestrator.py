import asyncio
import logging
import time

from autotrader import AutoTrader
from autotrader.models import ExitAction, ExitEvent, Signal
from autotrader.notifier import LoggingNotifier, format_exit, format_signal

from fakes import FakeCandidates, FakeRoute, make_context, outcomes, position, seed_candidate


class BrokenCandidates(FakeCandidates):
    async def get_candidates(self):
        raise ConnectionError("discovery feed down")


def _scan(trader):
    return asyncio.run(trader.scan_cycle())


def test_prefilter_dedupes_skips_held_and_caps():
    ctx = make_context()
    ctx.config.loops.max_candidates_per_cycle = 2
    ctx.book.add(position(address="HELD1"))
    trader = AutoTrader(ctx)

    assert trader.prefilter(["A", "", "HELD1", "A", "B", "C"]) == ["A", "B"]


def test_scan_cycle_opens_position_for_accepted_signal():
    ctx = make_context()
    seed_candidate(ctx, "GOOD1")
    seed_candidate(ctx, "YOUNG1", age_minutes=1.0)
    trader = AutoTrader(ctx, FakeCandidates(["GOOD1", "YOUNG1", "GOOD1"]))

    decisions = _scan(trader)

    assert [d.accepted for d in decisions] == [True, False]
    assert trader.stats.signals == 1
    assert trader.stats.buys_filled == 1
    assert ctx.book.has_open("GOOD1")
    assert ctx.portfolio.open_positions == 1
    assert ctx.outcomes.signal_volume(now=ctx.clock()) == 1
    assert [type(e) for e in ctx.notifier.events] == [Signal]
    assert trader.last_funnel.candidates == 2
    assert trader.router.funnel.candidates == 0

    order = ctx.executor.primary.orders[0]
    assert order.expected_price == 1.0
    assert order.context['track'] == decisions[0].signal.track.value


def test_refused_sizing_still_notifies_but_does_not_buy():
    ctx = make_context()
    ctx.portfolio.open_positions = ctx.config.sizing.max_open_positions
    seed_candidate(ctx, "GOOD1")
    trader = AutoTrader(ctx, FakeCandidates(["GOOD1"]))

    _scan(trader)

    assert trader.stats.signals == 1
    assert trader.stats.sizing_refused == 1
    assert trader.stats.buys_attempted == 0
    assert len(ctx.notifier.events) == 1
    assert not ctx.book.has_open("GOOD1")


def test_failed_buy_creates_no_position():
    ctx = make_context(primary=FakeRoute("primary", fail=True), fallback=FakeRoute("fallback", fail=True))
    seed_candidate(ctx, "GOOD1")
    trader = AutoTrader(ctx, FakeCandidates(["GOOD1"]))

    _scan(trader)

    assert trader.stats.buys_failed == 1
    assert len(ctx.book) == 0
    assert ctx.portfolio.available_sol == ctx.config.capital_sol


def test_candidate_and_evaluation_failures_do_not_stop_the_cycle(monkeypatch):
    ctx = make_context()
    assert _scan(AutoTrader(ctx, BrokenCandidates([]))) == []

    seed_candidate(ctx, "GOOD1")
    trader = AutoTrader(ctx, FakeCandidates(["BAD1", "GOOD1"]))
    evaluate = trader.router.evaluate

    async def flaky_evaluate(address):
        if address == "BAD1":
            raise RuntimeError("unexpected payload")
        return await evaluate(address)

    monkeypatch.setattr(trader.router, "evaluate", flaky_evaluate)
    decisions = _scan(trader)

    assert [d.signal.address for d in decisions] == ["GOOD1"]
    assert ctx.book.has_open("GOOD1")


def test_position_cycle_counts_exits():
    ctx = make_context()
    seed_candidate(ctx, "GOOD1")
    trader = AutoTrader(ctx, FakeCandidates(["GOOD1"]))
    _scan(trader)

    ctx.metrics.prices["GOOD1"] = 0.5
    asyncio.run(trader.position_cycle())

    assert trader.stats.exits == 1
    assert not ctx.book.has_open("GOOD1")
    exits = [e for e in ctx.notifier.events if isinstance(e, ExitEvent)]
    assert exits[0].action == ExitAction.STOP_LOSS


def test_optimize_cycle_retrains_and_optimizes():
    ctx = make_context()
    for record in outcomes(25, 8, closed_at=time.time()):
        ctx.outcomes.record(record)
    trader = AutoTrader(ctx)

    result = asyncio.run(trader.optimize_cycle())

    assert ctx.predictor.trained_on == 25
    assert result.data_points == 25
    assert result.auto_applied
    assert ctx.thresholds.current.min_momentum_score > 25.0
    assert trader.stats.optimizer_runs == 1


def test_optimize_cycle_survives_retrain_failure():
    ctx = make_context()
    ctx.predictor.train_error = ValueError("bad training data")
    for record in outcomes(25, 8, closed_at=time.time()):
        ctx.outcomes.record(record)
    trader = AutoTrader(ctx)

    result = asyncio.run(trader.optimize_cycle())

    assert trader.stats.retrain_failures == 1
    assert ctx.predictor.trained_on is None
    assert trader.optimizer.last_result is result
    assert result.data_points == 25
    assert result.error is None


def test_start_runs_each_loop_and_stop_waits():
    ctx = make_context()
    trader = AutoTrader(ctx, FakeCandidates([]))

    async def run():
        await trader.start()
        await asyncio.sleep(0.05)
        await trader.stop()

    asyncio.run(run())

    stats = trader.get_stats()
    assert not trader.running
    assert stats['session']['scan_cycles'] == 1
    assert all(t['iterations'] == 1 for t in stats['tickers'].values())
    assert stats['last_funnel']['candidates'] == 0


def test_logging_notifier_keeps_recent_events(caplog):
    ctx = make_context()
    seed_candidate(ctx, "GOOD1")
    signal = asyncio.run(AutoTrader(ctx).router.evaluate("GOOD1")).signal
    event = ExitEvent(
        position_id="p1", address="GOOD1", ticker="GOOD", action=ExitAction.TAKE_PROFIT_1,
        sell_percent=40.0, fill_price=1.8, pnl_percent=80.0, sol_received=0.72, closed=False,
    )
    notifier = LoggingNotifier(keep=2)

    async def run():
        await notifier.notify(signal)
        await notifier.notify(event)
        await notifier.notify(event)
        await notifier.notify("not an event")

    with caplog.at_level(logging.INFO, logger="autotrader.notifier"):
        asyncio.run(run())

    assert notifier.events == [event, event]
    assert "Unknown notification type: str" in caplog.text
    assert signal.ticker in format_signal(signal)
    assert "Targets:  +75% (40%) / +200% (100%)" in format_signal(signal)
    assert format_exit(event).startswith("PARTIAL GOOD: TAKE_PROFIT_1 sold 40%")
