"""
Threshold Optimizer
===================

Learns the router's gating thresholds from completed (won/lost) signals.

Per factor it compares the winning and losing populations:

    separation = |mean_win - mean_loss| / mean(std_win, std_loss)

and then, for each gate:

- win rate below target - 5: tighten, at most 15% per cycle and never
  past the winning average
- win rate above target + 10 with low signal volume: loosen, same cap,
  never past the losing average
- otherwise, separation > 0.5: move 30% of the way to the optimal cut,
  still capped at 15%

Below the minimum sample size nothing is recommended and the live set
is left alone. Any failure is reported in the result; the store is
only ever touched by a successful swap.

Usage:
    from autotrader.performance import ThresholdOptimizer, ThresholdStore

    optimizer = ThresholdOptimizer(ThresholdStore())
    result = optimizer.optimize(outcomes)
    print(optimizer.format_summary(result))
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..config import OptimizerConfig
from ..models import Confidence, SignalOutcome
from .thresholds import (
    ThresholdSet,
    ThresholdStore,
    ThresholdChange,
    ThresholdFactor,
    THRESHOLD_FACTORS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorAnalysis:
    """Win/loss statistics of one factor."""
    factor: str
    threshold: str
    higher_is_better: bool
    winning_avg: float
    losing_avg: float
    winning_std: float
    losing_std: float
    separation: float
    optimal_threshold: float
    confidence_score: float


@dataclass(frozen=True)
class ThresholdRecommendation:
    threshold: str
    factor: str
    current_value: float
    recommended_value: float
    direction: str              # INCREASE / DECREASE
    change_percent: float
    reason: str
    confidence: Confidence


@dataclass
class OptimizationResult:
    """Outcome of one optimizer run"""
    data_points: int
    win_rate: float
    target_win_rate: float
    current_thresholds: ThresholdSet
    recommended_thresholds: ThresholdSet
    recommendations: List[ThresholdRecommendation] = field(default_factory=list)
    analyses: List[FactorAnalysis] = field(default_factory=list)
    auto_applied: bool = False
    applied_changes: List[ThresholdChange] = field(default_factory=list)
    message: str = ""
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'data_points': self.data_points,
            'win_rate': self.win_rate,
            'target_win_rate': self.target_win_rate,
            'recommendations': [
                {
                    'threshold': r.threshold,
                    'current': r.current_value,
                    'recommended': r.recommended_value,
                    'direction': r.direction,
                    'change_percent': r.change_percent,
                    'reason': r.reason,
                    'confidence': r.confidence.value,
                }
                for r in self.recommendations
            ],
            'current_thresholds': self.current_thresholds.to_dict(),
            'recommended_thresholds': self.recommended_thresholds.to_dict(),
            'auto_applied': self.auto_applied,
            'applied_changes': [c.to_dict() for c in self.applied_changes],
            'message': self.message,
            'error': self.error,
        }


def confidence_band(confidence_score: float) -> Confidence:
    if confidence_score > 0.7:
        return Confidence.HIGH
    if confidence_score > 0.4:
        return Confidence.MEDIUM
    return Confidence.LOW


class ThresholdOptimizer:
    """Recommends and applies ThresholdSet changes from outcomes."""

    def __init__(
        self,
        store: ThresholdStore,
        config: Optional[OptimizerConfig] = None,
    ):
        self.store = store
        self.config = config or OptimizerConfig()
        self.last_result: Optional[OptimizationResult] = None

    def optimize(
        self,
        outcomes: Sequence[SignalOutcome],
        signal_volume: Optional[int] = None,
        auto_apply: Optional[bool] = None,
    ) -> OptimizationResult:
        """
        Run one optimization cycle.

        Args:
            outcomes: Completed signals with their entry factor values
            signal_volume: Signals emitted over the recent window; drives
                the low-volume loosening rule (defaults to len(outcomes))
            auto_apply: Override config.auto_apply

        Returns:
            OptimizationResult; the store is untouched unless auto_applied
        """
        cfg = self.config
        current = self.store.current
        auto_apply = cfg.auto_apply if auto_apply is None else auto_apply
        data_points = len(outcomes)
        wins = sum(1 for o in outcomes if o.won)
        win_rate = wins / data_points * 100 if data_points else 0.0

        result = OptimizationResult(
            data_points=data_points,
            win_rate=win_rate,
            target_win_rate=cfg.target_win_rate,
            current_thresholds=current,
            recommended_thresholds=current,
        )

        if data_points < cfg.min_samples:
            result.message = f"Insufficient data: {data_points}/{cfg.min_samples} completed signals"
            logger.info(result.message)
            self.last_result = result
            return result

        try:
            analyses = self.analyze_factors(outcomes)
            volume = data_points if signal_volume is None else signal_volume
            recommendations = self.recommend(current, analyses, win_rate, volume)
            recommended = current.with_values(
                **{r.threshold: r.recommended_value for r in recommendations}
            )
        except Exception as e:
            logger.error(f"Threshold optimization failed: {e}")
            result.error = str(e)
            self.last_result = result
            return result

        result.analyses = analyses
        result.recommendations = recommendations
        result.recommended_thresholds = recommended

        if not recommendations:
            result.message = f"No changes (win rate {win_rate:.1f}%)"
        elif auto_apply and self._should_auto_apply(recommendations, win_rate):
            result.applied_changes = self.store.swap(
                recommended,
                reason=f"optimizer: win rate {win_rate:.1f}% over {data_points} signals",
            )
            result.auto_applied = True
            result.message = f"Applied {len(result.applied_changes)} threshold changes"
        else:
            result.message = f"{len(recommendations)} recommendations pending review"

        logger.info(f"Threshold optimization: {result.message}")
        self.last_result = result
        return result

    def analyze_factors(self, outcomes: Sequence[SignalOutcome]) -> List[FactorAnalysis]:
        """Factor statistics, most separating first. Empty without both wins and losses."""
        analyses = []
        for factor in THRESHOLD_FACTORS:
            win_values = np.array(
                [o.features[factor.factor] for o in outcomes if o.won and factor.factor in o.features],
                dtype=float,
            )
            loss_values = np.array(
                [o.features[factor.factor] for o in outcomes if not o.won and factor.factor in o.features],
                dtype=float,
            )
            if win_values.size == 0 or loss_values.size == 0:
                continue
            analyses.append(self._analyze_factor(factor, win_values, loss_values))

        analyses.sort(key=lambda a: a.separation, reverse=True)
        return analyses

    def _analyze_factor(
        self,
        factor: ThresholdFactor,
        win_values: np.ndarray,
        loss_values: np.ndarray,
    ) -> FactorAnalysis:
        win_avg = float(np.mean(win_values))
        loss_avg = float(np.mean(loss_values))
        win_std = float(np.std(win_values))      # Population std
        loss_std = float(np.std(loss_values))

        avg_std = (win_std + loss_std) / 2
        separation = abs(win_avg - loss_avg) / avg_std if avg_std > 0 else 0.0

        if factor.higher_is_better:
            optimal = max(win_avg - win_std, loss_avg)
        else:
            optimal = min(win_avg + win_std, loss_avg)

        samples = win_values.size + loss_values.size
        confidence_score = min(separation * (samples / self.config.min_samples), 1.0)

        return FactorAnalysis(
            factor=factor.factor,
            threshold=factor.threshold,
            higher_is_better=factor.higher_is_better,
            winning_avg=win_avg,
            losing_avg=loss_avg,
            winning_std=win_std,
            losing_std=loss_std,
            separation=separation,
            optimal_threshold=optimal,
            confidence_score=confidence_score,
        )

    def recommend(
        self,
        current: ThresholdSet,
        analyses: Sequence[FactorAnalysis],
        win_rate: float,
        signal_volume: int,
    ) -> List[ThresholdRecommendation]:
        cfg = self.config
        recommendations = []

        for analysis in analyses:
            value = getattr(current, analysis.threshold)
            max_delta = abs(value) * cfg.max_change_percent / 100
            is_max = not analysis.higher_is_better
            recommended = value
            reason = ""

            if win_rate < cfg.target_win_rate - 5:
                if is_max:
                    recommended = max(value - max_delta, analysis.winning_avg)
                    recommended = min(recommended, value)
                else:
                    recommended = min(value + max_delta, analysis.winning_avg)
                    recommended = max(recommended, value)
                reason = f"Low win rate ({win_rate:.1f}%): tightening"

            elif win_rate > cfg.target_win_rate + 10 and signal_volume < cfg.low_volume_signals:
                if is_max:
                    recommended = min(value + max_delta, analysis.losing_avg)
                    recommended = max(recommended, value)
                else:
                    recommended = max(value - max_delta, analysis.losing_avg)
                    recommended = min(recommended, value)
                reason = f"High win rate ({win_rate:.1f}%) on {signal_volume} signals: loosening"

            elif analysis.separation > cfg.separation_threshold:
                diff = analysis.optimal_threshold - value
                if abs(diff) > cfg.min_nudge:
                    step = diff * cfg.nudge_fraction
                    step = max(-max_delta, min(max_delta, step))
                    recommended = value + step
                    reason = (f"Separation {analysis.separation:.2f}: moving toward "
                              f"{analysis.optimal_threshold:.1f}")

            if recommended == value:
                continue

            recommendations.append(ThresholdRecommendation(
                threshold=analysis.threshold,
                factor=analysis.factor,
                current_value=value,
                recommended_value=recommended,
                direction="INCREASE" if recommended > value else "DECREASE",
                change_percent=(recommended - value) / value * 100 if value else 0.0,
                reason=reason,
                confidence=confidence_band(analysis.confidence_score),
            ))

        return recommendations

    def _should_auto_apply(
        self,
        recommendations: Sequence[ThresholdRecommendation],
        win_rate: float,
    ) -> bool:
        if any(r.confidence == Confidence.HIGH for r in recommendations):
            return True
        return win_rate < self.config.target_win_rate - 10

    def set_thresholds(self, reason: str = "manual", **values) -> List[ThresholdChange]:
        """Manual override of individual gates."""
        return self.store.swap(self.store.current.with_values(**values), reason=reason)

    @staticmethod
    def format_summary(result: OptimizationResult) -> str:
        lines = [
            "THRESHOLD OPTIMIZATION",
            f"  Data points:  {result.data_points}",
            f"  Win rate:     {result.win_rate:.1f}% (target {result.target_win_rate:.0f}%)",
            f"  Status:       {result.error or result.message}",
        ]
        for rec in result.recommendations:
            lines.append(
                f"  {rec.threshold:26} {rec.current_value:>10.2f} -> {rec.recommended_value:>10.2f} "
                f"[{rec.confidence.value}] {rec.reason}"
            )
        if result.auto_applied:
            lines.append(f"  Applied {len(result.applied_changes)} changes")
        return "\n".join(lines)
