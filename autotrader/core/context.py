"""
Trading Context - explicit wiring of every shared component.

Replaces module-level singletons: the router, position manager,
optimizer and orchestrator all receive the same constructed context.
The ThresholdSet lives in `thresholds` and is swapped atomically.

Usage:
    ctx = TradingContext(
        config=AutoTraderConfig(),
        metrics=DexScreenerClient(),
        safety=rugcheck,
        bundles=rugcheck,
        predictor=HistoricalWinPredictor(),
        executor=TradeExecutor(PaperRoute("primary"), PaperRoute("fallback")),
    )
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import AutoTraderConfig
from ..executors.executor import TradeExecutor
from ..interfaces import (
    BundleAnalyzer,
    MetricsProvider,
    MomentumAnalyzer,
    Notifier,
    SafetyChecker,
    ValidatorSource,
    WinPredictor,
)
from ..performance.outcomes import OutcomeLog
from ..performance.thresholds import ThresholdStore
from ..portfolio.sizer import PortfolioState, PositionSizer
from ..positions.book import PositionBook
from ..scoring.onchain import OnChainScorer
from .cache import TTLCache

logger = logging.getLogger(__name__)


@dataclass
class TradingContext:
    config: AutoTraderConfig
    metrics: MetricsProvider
    safety: SafetyChecker
    bundles: BundleAnalyzer
    predictor: WinPredictor
    executor: TradeExecutor
    momentum: Optional[MomentumAnalyzer] = None
    validators: Optional[ValidatorSource] = None
    notifier: Optional[Notifier] = None
    thresholds: Optional[ThresholdStore] = None
    scorer: Optional[OnChainScorer] = None
    book: PositionBook = field(default_factory=PositionBook)
    portfolio: Optional[PortfolioState] = None
    sizer: Optional[PositionSizer] = None
    outcomes: Optional[OutcomeLog] = None
    safety_cache: Optional[TTLCache] = None
    clock: Callable[[], float] = time.time

    def __post_init__(self):
        cfg = self.config
        if self.thresholds is None:
            self.thresholds = ThresholdStore(history_path=cfg.optimizer.history_path)
        if self.scorer is None:
            self.scorer = OnChainScorer(cfg.scoring)
        if self.portfolio is None:
            self.portfolio = PortfolioState.with_capital(cfg.capital_sol)
        if self.sizer is None:
            self.sizer = PositionSizer(cfg.sizing, self.portfolio)
        if self.outcomes is None:
            self.outcomes = OutcomeLog()
        if self.safety_cache is None:
            self.safety_cache = TTLCache(ttl=cfg.loops.safety_cache_ttl, clock=self.clock)

    async def notify(self, event):
        """Hand an event to the notifier; delivery failures are only logged."""
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(event)
        except Exception as e:
            logger.warning(f"Notification failed: {e}")
