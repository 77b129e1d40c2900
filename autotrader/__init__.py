"""
AutoTrader - Dual-Track Memecoin Signal Engine
==============================================

Candidates are scored on-chain, routed through one of two trust tracks
(PROVEN_RUNNER for survivors, EARLY_QUALITY for young assets that are
either on-chain-first or vouched for by a trusted validator), sized,
bought, and managed by an exit state machine. Closed trades feed a
threshold optimizer that retunes the gates over time.

Usage:
    from autotrader import AutoTrader, AutoTraderConfig, TradingContext

    ctx = TradingContext(config=AutoTraderConfig(), metrics=..., safety=...,
                         bundles=..., predictor=..., executor=...)
    trader = AutoTrader(ctx, candidates=...)
    await trader.start()
"""

# Configuration
from .config import (
    AutoTraderConfig,
    ConfigError,
    DEFAULT_CONFIG,
    DATA_COLLECTION_CONFIG,
    CONSERVATIVE_CONFIG,
)
from .errors import AutoTraderError, PositionError

# Data models
from .models import (
    Recommendation,
    RiskLevel,
    Confidence,
    SignalTrack,
    SignalType,
    SignalCategory,
    MarketCapTier,
    ExitAction,
    MetricsSnapshot,
    SafetyResult,
    BundleRisk,
    MomentumReading,
    OnChainScore,
    Signal,
    RoutingDecision,
    Position,
    ExitDecision,
    ExitEvent,
    SignalOutcome,
)

# Core
from .core import TTLCache, Ticker, TradingContext

# Components
from .scoring import OnChainScorer
from .signals import SignalRouter
from .portfolio import PositionSizer, PortfolioState
from .executors import TradeExecutor, PaperRoute
from .positions import PositionManager, ExitPolicy
from .performance import ThresholdStore, ThresholdOptimizer, HistoricalWinPredictor, OutcomeLog

# Orchestrator
from .orchestrator import AutoTrader


__all__ = [
    'AutoTraderConfig',
    'ConfigError',
    'DEFAULT_CONFIG',
    'DATA_COLLECTION_CONFIG',
    'CONSERVATIVE_CONFIG',
    'AutoTraderError',
    'PositionError',
    'Recommendation',
    'RiskLevel',
    'Confidence',
    'SignalTrack',
    'SignalType',
    'SignalCategory',
    'MarketCapTier',
    'ExitAction',
    'MetricsSnapshot',
    'SafetyResult',
    'BundleRisk',
    'MomentumReading',
    'OnChainScore',
    'Signal',
    'RoutingDecision',
    'Position',
    'ExitDecision',
    'ExitEvent',
    'SignalOutcome',
    'TTLCache',
    'Ticker',
    'TradingContext',
    'OnChainScorer',
    'SignalRouter',
    'PositionSizer',
    'PortfolioState',
    'TradeExecutor',
    'PaperRoute',
    'PositionManager',
    'ExitPolicy',
    'ThresholdStore',
    'ThresholdOptimizer',
    'HistoricalWinPredictor',
    'OutcomeLog',
    'AutoTrader',
]
