"""
AutoTrader Orchestrator
=======================

Drives three Tickers over one TradingContext:

    scan        every loops.scan_interval      candidates -> router -> size -> buy -> open
    positions   every exits.poll_interval      PositionManager.poll_all()
    optimizer   every loops.optimizer_interval retrain predictor, optimize thresholds

Loops never overlap with themselves, and stop() waits for in-flight
iterations so a trade is never abandoned halfway.

Usage:
    trader = AutoTrader(ctx, candidates=dexscreener)
    await trader.start()
    ...
    await trader.stop()
"""
import asyncio
import logging
import signal
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from .core.scheduler import Ticker
from .interfaces import CandidateSource
from .models import Position, RoutingDecision
from .performance.optimizer import OptimizationResult, ThresholdOptimizer
from .positions.manager import PositionManager
from .signals.router import RouterFunnel, SignalRouter

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    start_time: float = 0.0
    scan_cycles: int = 0
    candidates_seen: int = 0
    signals: int = 0
    buys_attempted: int = 0
    buys_filled: int = 0
    buys_failed: int = 0
    sizing_refused: int = 0
    exits: int = 0
    optimizer_runs: int = 0
    retrain_failures: int = 0

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time if self.start_time else 0.0

    def to_dict(self) -> dict:
        return {
            'uptime_seconds': self.uptime_seconds,
            'scan_cycles': self.scan_cycles,
            'candidates_seen': self.candidates_seen,
            'signals': self.signals,
            'buys_attempted': self.buys_attempted,
            'buys_filled': self.buys_filled,
            'buys_failed': self.buys_failed,
            'sizing_refused': self.sizing_refused,
            'exits': self.exits,
            'optimizer_runs': self.optimizer_runs,
            'retrain_failures': self.retrain_failures,
        }


class AutoTrader:
    """Wires the router, position manager and optimizer onto timers."""

    def __init__(self, context, candidates: Optional[CandidateSource] = None):
        self.ctx = context
        self.candidates = candidates
        self.router = SignalRouter(context)
        self.manager = PositionManager(context)
        self.optimizer = ThresholdOptimizer(context.thresholds, context.config.optimizer)
        self.stats = SessionStats()
        self.last_funnel: Optional[RouterFunnel] = None
        self.running = False

        loops = context.config.loops
        self.tickers = [
            Ticker("scan", loops.scan_interval, self.scan_cycle),
            Ticker("positions", context.config.exits.poll_interval, self.position_cycle),
            Ticker("optimizer", loops.optimizer_interval, self.optimize_cycle),
        ]

    async def start(self):
        if self.running:
            return
        self.running = True
        self.stats.start_time = time.time()
        mode = 'PAPER' if self.ctx.config.paper_mode else 'REAL'
        logger.info(
            f"AutoTrader starting ({mode}, {self.ctx.portfolio.total_sol:.4f} SOL, "
            f"data collection {'on' if self.ctx.config.router.data_collection_mode else 'off'})"
        )
        for ticker in self.tickers:
            ticker.start()

    async def stop(self):
        if not self.running:
            return
        logger.info("Shutting down...")
        self.running = False
        await asyncio.gather(*(ticker.stop() for ticker in self.tickers))
        logger.info(f"AutoTrader stopped: {self.stats.to_dict()}")

    def install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.create_task(self.stop()))
            except NotImplementedError:
                pass  # Windows

    def prefilter(self, addresses: List[str]) -> List[str]:
        """Dedupe, drop held assets and cap to the per-cycle budget."""
        seen = set()
        kept = []
        for address in addresses:
            if not address or address in seen or self.ctx.book.has_open(address):
                continue
            seen.add(address)
            kept.append(address)
        return kept[:self.ctx.config.loops.max_candidates_per_cycle]

    async def scan_cycle(self) -> List[RoutingDecision]:
        self.stats.scan_cycles += 1
        if self.candidates is None:
            return []
        try:
            addresses = await self.candidates.get_candidates()
        except Exception as e:
            logger.error(f"Candidate fetch failed: {e}")
            return []

        batch = self.prefilter(addresses)
        self.stats.candidates_seen += len(batch)
        decisions = []
        for address in batch:
            try:
                decision = await self.router.evaluate(address)
            except Exception as e:
                logger.error(f"Evaluation failed for {address[:8]}: {e}")
                continue
            decisions.append(decision)
            if decision.accepted:
                await self.handle_signal(decision)

        funnel = self.router.reset_funnel()
        self.last_funnel = funnel
        logger.info(
            f"Scan #{self.stats.scan_cycles}: {funnel.candidates} candidates, "
            f"{funnel.total_signals} signals, rejections {funnel.to_dict()['rejections']}"
        )
        return decisions

    async def handle_signal(self, decision: RoutingDecision) -> Optional[Position]:
        """Notify, then size and buy; a position exists only after a filled buy."""
        signal_ = decision.signal
        self.stats.signals += 1
        self.ctx.outcomes.record_signal(signal_.generated_at)
        await self.ctx.notify(signal_)

        sizing = self.ctx.sizer.size_for(signal_)
        if not sizing.approved:
            self.stats.sizing_refused += 1
            logger.info(f"{signal_.ticker}: not opened ({sizing.reason})")
            return None

        self.stats.buys_attempted += 1
        fill = await self.ctx.executor.buy(
            signal_.address,
            sizing.sol_amount,
            expected_price=signal_.entry_price,
            context={'signal_id': signal_.signal_id, 'track': signal_.track.value},
        )
        if not fill.success:
            self.stats.buys_failed += 1
            logger.error(f"Buy failed for {signal_.ticker}: {fill.error}")
            return None

        self.stats.buys_filled += 1
        return self.manager.open_from_signal(signal_, fill)

    async def position_cycle(self):
        events = await self.manager.poll_all()
        self.stats.exits += len(events)

    async def optimize_cycle(self) -> OptimizationResult:
        self.stats.optimizer_runs += 1
        outcomes = self.ctx.outcomes.get_outcomes()

        predictor = self.ctx.predictor
        try:
            if predictor.needs_retrain():
                predictor.train(outcomes)
        except Exception as e:
            self.stats.retrain_failures += 1
            logger.error(f"Win predictor retrain failed: {e}")

        result = self.optimizer.optimize(outcomes, signal_volume=self.ctx.outcomes.signal_volume())
        logger.info("\n" + ThresholdOptimizer.format_summary(result))
        return result

    def get_stats(self) -> Dict[str, object]:
        return {
            'session': self.stats.to_dict(),
            'portfolio': self.ctx.portfolio.to_dict(),
            'positions': self.manager.summary(),
            'executor': self.ctx.executor.get_stats(),
            'thresholds': self.ctx.thresholds.current.to_dict(),
            'outcomes': self.ctx.outcomes.stats(),
            'last_funnel': self.last_funnel.to_dict() if self.last_funnel else None,
            'tickers': {
                t.name: {'iterations': t.iterations, 'errors': t.errors, 'last_run': t.last_run}
                for t in self.tickers
            },
        }
