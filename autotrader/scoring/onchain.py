"""
On-Chain Scoring Composer
=========================

Fuses the independently computed component scores into one weighted
total, a recommendation band and a risk level.

Risk level is read from safety and bundle safety only. A high-momentum
asset with a weak contract is never reported as low risk, and a CRITICAL
risk level forces STRONG_AVOID whatever the total.

Usage:
    from autotrader.scoring import OnChainScorer

    scorer = OnChainScorer()
    score = scorer.compose(metrics, momentum, safety, bundle, market_structure=72)
    print(score.total, score.recommendation.value, score.risk_level.value)
"""
import logging
from typing import List, Optional, Tuple

from ..config import ScoringConfig
from ..interfaces import MarketStructureScorer
from ..models import (
    MetricsSnapshot,
    MomentumReading,
    SafetyResult,
    BundleRisk,
    ComponentScores,
    OnChainScore,
    Recommendation,
    RiskLevel,
    Confidence,
)

logger = logging.getLogger(__name__)


# Recommendation bands (lower bound inclusive)
STRONG_BUY_MIN = 80
BUY_MIN = 60
NEUTRAL_MIN = 40
AVOID_MIN = 25

# Market structure ideals
IDEAL_LIQUIDITY_RATIO = 0.10        # 10% of market cap
MIN_LIQUIDITY_USD = 15_000
IDEAL_TOP10_CONCENTRATION = 25.0
MAX_TOP10_CONCENTRATION = 50.0
MIN_HOLDER_COUNT = 100
IDEAL_HOLDER_COUNT = 500

# Timing window (minutes)
TOO_EARLY_MIN = 15
OPTIMAL_AGE_MIN = 30
PEAK_AGE_MAX = 120
OPTIMAL_AGE_MAX = 240
TOO_LATE_MINUTES = 24 * 60


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def recommendation_for(total: float) -> Recommendation:
    if total >= STRONG_BUY_MIN:
        return Recommendation.STRONG_BUY
    if total >= BUY_MIN:
        return Recommendation.BUY
    if total >= NEUTRAL_MIN:
        return Recommendation.NEUTRAL
    if total >= AVOID_MIN:
        return Recommendation.AVOID
    return Recommendation.STRONG_AVOID


def timing_score(age_minutes: float) -> float:
    """Entry timing by age: best between 30 minutes and 2 hours."""
    if age_minutes < TOO_EARLY_MIN:
        return 20 + (age_minutes / TOO_EARLY_MIN) * 30
    if age_minutes < OPTIMAL_AGE_MIN:
        return 50 + (age_minutes - TOO_EARLY_MIN) / (OPTIMAL_AGE_MIN - TOO_EARLY_MIN) * 30
    if age_minutes <= PEAK_AGE_MAX:
        return 100.0
    if age_minutes <= OPTIMAL_AGE_MAX:
        return 90 - (age_minutes - PEAK_AGE_MAX) / (OPTIMAL_AGE_MAX - PEAK_AGE_MAX) * 20
    if age_minutes <= TOO_LATE_MINUTES:
        hours_over = (age_minutes - OPTIMAL_AGE_MAX) / 60
        return 70 - hours_over * 3
    return 20.0


class SnapshotMarketStructureScorer(MarketStructureScorer):
    """
    Market structure from the metrics snapshot alone.

    Points:
    - Liquidity vs market cap: 0-35 (+5 / -10 for absolute depth)
    - Top-10 concentration: -10 to 30
    - Holder count: 0-25
    - Volume / market cap: 0-10
    """

    def score(self, metrics: MetricsSnapshot) -> float:
        score = 0.0

        ratio = metrics.liquidity_ratio
        if ratio >= IDEAL_LIQUIDITY_RATIO:
            score += 35
        elif ratio >= 0.05:
            score += 25
        elif ratio >= 0.03:
            score += 15
        else:
            score += ratio / 0.03 * 15

        if metrics.liquidity_pool >= 50_000:
            score += 5
        elif metrics.liquidity_pool < MIN_LIQUIDITY_USD:
            score -= 10

        if metrics.top10_concentration <= IDEAL_TOP10_CONCENTRATION:
            score += 30
        elif metrics.top10_concentration <= 35:
            score += 22
        elif metrics.top10_concentration <= MAX_TOP10_CONCENTRATION:
            score += 12
        else:
            score -= 10

        if metrics.holder_count >= IDEAL_HOLDER_COUNT:
            score += 25
        elif metrics.holder_count >= 300:
            score += 20
        elif metrics.holder_count >= MIN_HOLDER_COUNT:
            score += 12
        elif metrics.holder_count >= 50:
            score += 5

        vm_ratio = metrics.volume_market_cap_ratio
        if vm_ratio >= 0.5:
            score += 10
        elif vm_ratio >= 0.2:
            score += 7
        elif vm_ratio >= 0.1:
            score += 4

        return clamp_score(score)


class OnChainScorer:
    """Weighted composition of component scores."""

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        structure_scorer: Optional[MarketStructureScorer] = None,
    ):
        self.config = config or ScoringConfig()
        self.config.validate()
        self.structure_scorer = structure_scorer or SnapshotMarketStructureScorer()

    def compose(
        self,
        metrics: MetricsSnapshot,
        momentum: MomentumReading,
        safety: SafetyResult,
        bundle: BundleRisk,
        market_structure: Optional[float] = None,
    ) -> OnChainScore:
        """
        Compose one OnChainScore.

        Args:
            metrics: Snapshot the other scores were computed against
            momentum: Order-flow reading (score 0-100)
            safety: Safety detector result (score 0-100)
            bundle: Bundle detector result (risk 0-100)
            market_structure: Precomputed structure score; derived from
                the snapshot when omitted

        Returns:
            OnChainScore with total clamped to [0, 100]
        """
        if market_structure is None:
            market_structure = self.structure_scorer.score(metrics)

        components = ComponentScores(
            momentum=clamp_score(momentum.score),
            safety=clamp_score(safety.score),
            bundle_safety=bundle.safety_score,
            market_structure=clamp_score(market_structure),
            timing=clamp_score(timing_score(metrics.age_minutes)),
        )

        cfg = self.config
        total = clamp_score(
            components.momentum * cfg.momentum_weight
            + components.safety * cfg.safety_weight
            + components.bundle_safety * cfg.bundle_safety_weight
            + components.market_structure * cfg.market_structure_weight
            + components.timing * cfg.timing_weight
        )

        risk_level = self.risk_level(components, safety, bundle)
        recommendation = recommendation_for(total)
        if risk_level == RiskLevel.CRITICAL:
            recommendation = Recommendation.STRONG_AVOID

        bullish, bearish, warnings = self._collect_signals(metrics, momentum, safety, bundle, components)

        score = OnChainScore(
            total=total,
            components=components,
            recommendation=recommendation,
            risk_level=risk_level,
            confidence=self._confidence(momentum, safety, bundle),
            bullish_signals=tuple(bullish),
            bearish_signals=tuple(bearish),
            warnings=tuple(warnings),
        )
        logger.debug(
            f"{metrics.ticker}: on-chain {total:.1f} "
            f"({recommendation.value}, risk {risk_level.value})"
        )
        return score

    @staticmethod
    def risk_level(
        components: ComponentScores,
        safety: SafetyResult,
        bundle: BundleRisk,
    ) -> RiskLevel:
        """Risk from safety and bundle safety; the total plays no part."""
        if bundle.risk_level == RiskLevel.CRITICAL or safety.is_blocked:
            return RiskLevel.CRITICAL
        if components.safety < 40 or components.bundle_safety < 20:
            return RiskLevel.CRITICAL
        if components.safety < 55 or components.bundle_safety < 40:
            return RiskLevel.HIGH
        if components.safety < 70 or components.bundle_safety < 60:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def _confidence(
        momentum: MomentumReading,
        safety: SafetyResult,
        bundle: BundleRisk,
    ) -> Confidence:
        points = 0
        if 'NO_MOMENTUM_DATA' in momentum.flags:
            points += 1
        else:
            points += 3
        if safety.score > 0:
            points += 2
        if bundle.risk_score >= 0:
            points += 2
        if not momentum.flags:
            points += 1

        if points >= 7:
            return Confidence.HIGH
        if points >= 5:
            return Confidence.MEDIUM
        return Confidence.LOW

    @staticmethod
    def _collect_signals(
        metrics: MetricsSnapshot,
        momentum: MomentumReading,
        safety: SafetyResult,
        bundle: BundleRisk,
        components: ComponentScores,
    ) -> Tuple[List[str], List[str], List[str]]:
        bullish: List[str] = []
        bearish: List[str] = []
        warnings: List[str] = list(momentum.flags) + list(safety.warnings)

        if components.momentum >= 70:
            bullish.append('STRONG_MOMENTUM')
        elif components.momentum < 30:
            bearish.append('WEAK_MOMENTUM')
        if momentum.sell_buy_ratio >= 1.5:
            bearish.append('SELL_PRESSURE')

        if components.safety >= 80:
            bullish.append('SAFE_CONTRACT')

        if components.bundle_safety >= 80:
            bullish.append('CLEAN_LAUNCH')
        if bundle.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            bearish.extend(bundle.flags)
        else:
            warnings.extend(bundle.flags)

        if metrics.top10_concentration <= IDEAL_TOP10_CONCENTRATION:
            bullish.append('WELL_DISTRIBUTED')
        elif metrics.top10_concentration > MAX_TOP10_CONCENTRATION:
            warnings.append('HIGH_CONCENTRATION')
        if metrics.holder_count >= IDEAL_HOLDER_COUNT:
            bullish.append('STRONG_HOLDER_BASE')
        elif metrics.holder_count < MIN_HOLDER_COUNT:
            warnings.append('LOW_HOLDER_COUNT')
        if metrics.liquidity_pool < MIN_LIQUIDITY_USD:
            warnings.append('LOW_LIQUIDITY')
        if metrics.volume_market_cap_ratio >= 0.5:
            bullish.append('HIGH_VELOCITY')

        if OPTIMAL_AGE_MIN <= metrics.age_minutes <= PEAK_AGE_MAX:
            bullish.append('OPTIMAL_TIMING')
        elif metrics.age_minutes < TOO_EARLY_MIN:
            warnings.append('VERY_NEW_TOKEN')

        return bullish, bearish, warnings
