"""
Historical Win Predictor
========================

Reference WinPredictor learned from completed signals.

Each feature gets a weight from how well it separates winners from
losers (same separation statistic as the threshold optimizer). A
prediction is the importance-weighted vote of the normalised features,
mapped to a 5-95% win probability.

Until MIN_SAMPLES outcomes are available every prediction is the
default: 30% probability, LOW confidence, 0.5x size.
"""
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..interfaces import WinPredictor
from ..models import Confidence, SignalFeatures, SignalOutcome, WinPrediction, FEATURE_NAMES

logger = logging.getLogger(__name__)


MIN_SAMPLES = 15
MIN_FEATURE_SAMPLES = 5
RETRAIN_INTERVAL = 24 * 3600.0

DEFAULT_PREDICTION = WinPrediction(
    probability=30.0,
    confidence=Confidence.LOW,
    size_multiplier=0.5,
    risk_factors=('Insufficient training data',),
)

FEATURE_RANGES: Dict[str, tuple] = {
    'momentum_score': (0, 100),
    'onchain_score': (0, 100),
    'safety_score': (0, 100),
    'bundle_risk_score': (0, 100),
    'liquidity': (1_000, 500_000),
    'token_age_minutes': (5, 10_000),
    'holder_count': (10, 5_000),
    'top10_concentration': (10, 90),
    'buy_sell_ratio': (0.1, 10),
    'unique_buyers': (1, 500),
    'market_cap': (10_000, 25_000_000),
    'volume_market_cap_ratio': (0.01, 2),
}


@dataclass(frozen=True)
class FeatureWeight:
    feature: str
    weight: float           # -1..1, positive when higher values win
    importance: float       # 0..1
    winning_avg: float
    losing_avg: float

    @property
    def threshold(self) -> float:
        return (self.winning_avg + self.losing_avg) / 2


def normalize_feature(name: str, value: float) -> float:
    """Scale into [-1, 1] using the feature's expected range."""
    low, high = FEATURE_RANGES.get(name, (0, 100))
    clipped = min(max(value, low), high)
    return 2 * (clipped - low) / (high - low) - 1


def size_multiplier(probability: float, confidence: Confidence) -> float:
    multiplier = 1.0
    if probability >= 55:
        multiplier += 0.2
    elif probability >= 45:
        multiplier += 0.1
    elif probability < 35:
        multiplier -= 0.3

    if confidence == Confidence.HIGH:
        multiplier += 0.15
    elif confidence == Confidence.LOW:
        multiplier -= 0.2

    return max(0.5, min(1.5, multiplier))


class HistoricalWinPredictor(WinPredictor):
    """Separation-weighted predictor trained on SignalOutcome records."""

    def __init__(self, min_samples: int = MIN_SAMPLES):
        self.min_samples = min_samples
        self.weights: Dict[str, FeatureWeight] = {}
        self.sample_count = 0
        self.last_trained: Optional[float] = None

    @property
    def is_trained(self) -> bool:
        return bool(self.weights)

    def needs_retrain(self, now: Optional[float] = None) -> bool:
        if self.last_trained is None:
            return True
        now = time.time() if now is None else now
        return now - self.last_trained >= RETRAIN_INTERVAL

    def train(self, outcomes: Sequence[SignalOutcome]) -> bool:
        """
        Learn feature weights.

        Returns:
            False (weights cleared) when there are too few outcomes
        """
        self.last_trained = time.time()
        self.sample_count = len(outcomes)
        if len(outcomes) < self.min_samples:
            logger.info(f"Win predictor: {len(outcomes)}/{self.min_samples} outcomes, using defaults")
            self.weights = {}
            return False

        weights = {}
        for name in FEATURE_NAMES:
            win_values = np.array([o.features[name] for o in outcomes if o.won and name in o.features], dtype=float)
            loss_values = np.array([o.features[name] for o in outcomes if not o.won and name in o.features], dtype=float)
            if win_values.size < MIN_FEATURE_SAMPLES or loss_values.size < MIN_FEATURE_SAMPLES:
                continue

            win_avg = float(np.mean(win_values))
            loss_avg = float(np.mean(loss_values))
            avg_std = (float(np.std(win_values)) + float(np.std(loss_values))) / 2
            separation = abs(win_avg - loss_avg) / avg_std if avg_std > 0 else 0.0

            sign = 1.0 if win_avg >= loss_avg else -1.0
            weights[name] = FeatureWeight(
                feature=name,
                weight=max(-1.0, min(1.0, sign * separation / 3)),
                importance=min(1.0, separation / 2),
                winning_avg=win_avg,
                losing_avg=loss_avg,
            )

        self.weights = weights
        top = sorted(weights.values(), key=lambda w: w.importance, reverse=True)[:5]
        logger.info(
            f"Win predictor trained on {len(outcomes)} outcomes; top features: "
            + ", ".join(f"{w.feature}={w.importance:.2f}" for w in top)
        )
        return bool(weights)

    async def predict_win(self, features: SignalFeatures) -> WinPrediction:
        if not self.weights:
            return DEFAULT_PREDICTION

        values = features.to_dict()
        weighted = 0.0
        total_weight = 0.0
        risk_factors: List[str] = []

        for name, fw in self.weights.items():
            value = values[name]
            weighted += normalize_feature(name, value) * fw.weight * fw.importance
            total_weight += abs(fw.weight) * fw.importance
            if fw.importance > 0.15:
                favourable = (value >= fw.threshold) == (fw.weight > 0)
                if not favourable:
                    risk_factors.append(f"{name}={value:.2f} on the losing side of {fw.threshold:.2f}")

        base = (weighted / total_weight + 1) / 2 if total_weight > 0 else 0.3
        probability = min(95.0, max(5.0, base * 100))
        confidence = self._confidence()

        return WinPrediction(
            probability=round(probability, 1),
            confidence=confidence,
            size_multiplier=size_multiplier(probability, confidence),
            risk_factors=tuple(risk_factors),
        )

    def _confidence(self) -> Confidence:
        total_importance = sum(w.importance for w in self.weights.values())
        if self.sample_count >= 50 and total_importance >= 1.0:
            return Confidence.HIGH
        if self.sample_count >= self.min_samples and total_importance >= 0.3:
            return Confidence.MEDIUM
        return Confidence.LOW
