#!/usr/bin/env python3
"""
AutoTrader - Unified Entry Point
================================

Dual-track memecoin signal engine with exit management and threshold
learning. Paper trading by default.

Usage:
    # Paper trade with 1 SOL for an hour
    python main.py --capital 1 --duration 3600

    # Relaxed gates to collect outcomes for the optimizer
    python main.py --data-collection

    # Show configuration only
    python main.py --show-config

    # Run the threshold optimizer over a recorded outcome log
    python main.py --optimize-from outcomes.jsonl
"""
import asyncio
import argparse
import copy
import json
import logging
import sys
import time
from typing import Optional

from autotrader.config import (
    AutoTraderConfig,
    ConfigError,
    CONSERVATIVE_CONFIG,
    DATA_COLLECTION_CONFIG,
    DEFAULT_CONFIG,
)
from autotrader.core import TradingContext
from autotrader.executors import PaperRoute, SlippageModel, TradeExecutor
from autotrader.notifier import LoggingNotifier
from autotrader.orchestrator import AutoTrader
from autotrader.performance import HistoricalWinPredictor, OutcomeLog, ThresholdOptimizer, ThresholdStore
from autotrader.providers import DexScreenerClient, RugCheckClient


PRESETS = {
    'default': DEFAULT_CONFIG,
    'data-collection': DATA_COLLECTION_CONFIG,
    'conservative': CONSERVATIVE_CONFIG,
}


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def load_config(args) -> AutoTraderConfig:
    if args.config:
        config = AutoTraderConfig.from_file(args.config)
    else:
        preset = 'data-collection' if args.data_collection else args.preset
        config = copy.deepcopy(PRESETS[preset])

    config.capital_sol = args.capital
    if args.data_collection:
        config.router.data_collection_mode = True
    if args.outcomes:
        config.optimizer.history_path = args.outcomes + ".thresholds"
    config.scoring.validate()
    return config


def show_config(config: AutoTraderConfig):
    """Display the effective configuration."""
    print(f"\n{'='*60}")
    print(f"  CONFIGURATION ({config.capital_sol:.2f} SOL, {'PAPER' if config.paper_mode else 'REAL'})")
    print(f"{'='*60}")

    router = config.router
    print(f"\nROUTING:")
    print(f"  Proven runner:    age >= {router.proven_runner_min_age:.0f} min")
    print(f"  Early quality:    {router.min_age:.0f}-{router.early_quality_max_age:.0f} min")
    print(f"  Signal TTL:       {router.signal_ttl_minutes:.0f} min")
    print(f"  Cooldown:         {router.signal_cooldown_minutes:.0f} min")
    print(f"  Data collection:  {router.data_collection_mode}")

    print(f"\nTIERS:")
    for tier in config.tiers:
        if not tier.enabled:
            print(f"  {tier.tier.value:12} disabled")
            continue
        print(
            f"  {tier.tier.value:12} <= ${tier.max_market_cap:>13,.0f} | "
            f"SL {tier.stop_loss_percent:.0f}% | TP1 +{tier.take_profit_1_percent:.0f}% | "
            f"TP2 +{tier.take_profit_2_percent:.0f}% | max {tier.max_position_percent:.0f}%"
        )

    exits = config.exits
    print(f"\nEXITS:")
    print(f"  Poll interval:    {exits.poll_interval:.0f}s")
    print(f"  Trailing stop:    after +{exits.trailing_activation_percent:.0f}%, "
          f"{exits.trailing_retrace_percent:.0f}% retrace")
    print(f"  Momentum fade:    +{exits.momentum_fade_min_pnl:.0f}%, sells {exits.momentum_fade_sell_percent:.0f}%")

    sizing = config.sizing
    print(f"\nSIZING:")
    print(f"  Base position:    {sizing.base_position_percent:.1f}% (max {sizing.max_position_percent:.1f}%)")
    print(f"  Trade size:       {sizing.min_trade_sol:.2f}-{sizing.max_trade_sol:.2f} SOL")
    print(f"  Max positions:    {sizing.max_open_positions}")
    print(f"{'='*60}\n")


def optimize_from(path: str, config: AutoTraderConfig, apply: bool) -> int:
    """Run one optimization over a JSONL outcome log and print the result."""
    outcomes = OutcomeLog(path=path, window_hours=float('inf'))
    store = ThresholdStore(history_path=config.optimizer.history_path)
    optimizer = ThresholdOptimizer(store, config.optimizer)
    result = optimizer.optimize(outcomes.get_outcomes(), auto_apply=apply)
    print(ThresholdOptimizer.format_summary(result))
    print(json.dumps(store.current.to_dict(), indent=2))
    return 1 if result.error else 0


def build_context(config: AutoTraderConfig, outcomes_path: str = ""):
    rugcheck = RugCheckClient(cache_ttl=config.loops.safety_cache_ttl)
    dexscreener = DexScreenerClient(holders=rugcheck, cache_ttl=config.loops.metrics_cache_ttl)
    executor = TradeExecutor(
        primary=PaperRoute("paper-primary", SlippageModel()),
        fallback=PaperRoute("paper-fallback", SlippageModel(base_slippage=0.02)),
    )
    ctx = TradingContext(
        config=config,
        metrics=dexscreener,
        safety=rugcheck,
        bundles=rugcheck,
        momentum=dexscreener,
        predictor=HistoricalWinPredictor(),
        executor=executor,
        notifier=LoggingNotifier(),
        outcomes=OutcomeLog(path=outcomes_path),
    )
    ctx.predictor.train(ctx.outcomes.get_outcomes())
    return ctx, dexscreener, rugcheck


def predictor_notice(ctx) -> Optional[str]:
    """Startup warning when the win-probability gate cannot pass yet."""
    if ctx.config.router.data_collection_mode or ctx.predictor.is_trained:
        return None
    return (
        "Win predictor is untrained, so no signal will pass the prediction gates.\n"
        "  Collect outcomes first: python main.py --data-collection --outcomes FILE"
    )


async def run_trading(config: AutoTraderConfig, duration: int, outcomes_path: str):
    """Run the trading loops."""
    ctx, dexscreener, rugcheck = build_context(config, outcomes_path)
    trader = AutoTrader(ctx, candidates=dexscreener)

    print(f"\n{'='*60}")
    print(f"  STARTING {'PAPER' if config.paper_mode else 'REAL'} TRADING")
    print(f"{'='*60}")
    print(f"  Capital:    {config.capital_sol:.4f} SOL")
    print(f"  Duration:   {duration}s")
    print(f"  Thresholds: {ctx.thresholds.current.to_dict()}")
    notice = predictor_notice(ctx)
    if notice:
        print(f"  WARNING: {notice}")
    print(f"{'='*60}\n")

    try:
        trader.install_signal_handlers()
        await trader.start()

        start = time.time()
        while trader.running and time.time() - start < duration:
            await asyncio.sleep(10)

            stats = trader.get_stats()
            session = stats['session']
            portfolio = stats['portfolio']
            elapsed = int(time.time() - start)
            print(
                f"[{elapsed:5}s] "
                f"Scans: {session['scan_cycles']:3} | "
                f"Signals: {session['signals']:3} | "
                f"Open: {stats['positions']['open']} | "
                f"Closed: {stats['positions']['closed']} | "
                f"Capital: {portfolio['total_sol']:.4f} SOL"
            )

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
    finally:
        await trader.stop()
        await dexscreener.close()
        await rugcheck.close()
        print(json.dumps(trader.get_stats()['outcomes'], indent=2))


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="AutoTrader - dual-track signal engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --capital 1 --duration 3600
  python main.py --show-config --preset conservative
  python main.py --data-collection --outcomes data/outcomes.jsonl
  python main.py --optimize-from data/outcomes.jsonl --apply

The default preset gates on the win predictor, which needs recorded
outcomes. Run with --data-collection --outcomes FILE first, then pass the
same --outcomes FILE to normal runs.
        """,
    )

    parser.add_argument(
        "--capital",
        type=float,
        default=1.0,
        help="Starting capital in SOL (default: 1)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=3600,
        help="Run duration in seconds (default: 3600)",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Configuration preset (default: default)",
    )
    parser.add_argument(
        "--config",
        help="JSON configuration file (overrides --preset)",
    )
    parser.add_argument(
        "--data-collection",
        action="store_true",
        help="Relax early-track gates and bypass predictor gating",
    )
    parser.add_argument(
        "--outcomes",
        default="",
        help="JSONL file for completed-trade outcomes",
    )
    parser.add_argument(
        "--optimize-from",
        metavar="FILE",
        help="Run the threshold optimizer over a JSONL outcome log and exit",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="With --optimize-from, apply recommendations that pass the auto-apply rule",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show configuration and exit",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        config = load_config(args)
    except (ConfigError, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.show_config:
        show_config(config)
        return 0

    if args.optimize_from:
        return optimize_from(args.optimize_from, config, args.apply)

    asyncio.run(run_trading(config, args.duration, args.outcomes))
    return 0


if __name__ == "__main__":
    sys.exit(main())
