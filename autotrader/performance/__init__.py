"""Threshold learning and outcome-driven prediction."""

from .thresholds import (
    ThresholdSet,
    ThresholdStore,
    ThresholdChange,
    DEFAULT_THRESHOLDS,
    THRESHOLD_FACTORS,
)
from .optimizer import (
    ThresholdOptimizer,
    OptimizationResult,
    ThresholdRecommendation,
    FactorAnalysis,
)
from .outcomes import OutcomeLog
from .win_predictor import HistoricalWinPredictor, DEFAULT_PREDICTION

__all__ = [
    'ThresholdSet',
    'ThresholdStore',
    'ThresholdChange',
    'DEFAULT_THRESHOLDS',
    'THRESHOLD_FACTORS',
    'ThresholdOptimizer',
    'OptimizationResult',
    'ThresholdRecommendation',
    'FactorAnalysis',
    'OutcomeLog',
    'HistoricalWinPredictor',
    'DEFAULT_PREDICTION',
]
