"""
Signal Router - dual-track gating
=================================

Central decision engine. Each candidate address either becomes an
immutable Signal or is rejected with the name of the gate that stopped
it. Gates, in order:

    already-positioned / already-signaled
    safety-unavailable / safety-blocked     (no clean result = block)
    no-metrics / metrics-error
    bundle-unavailable
    critical-risk                           (regardless of total)
    too-early / unvalidated-early-asset     (track assignment)
    tier-disabled / tier-liquidity / tier-safety
    threshold-*                             (live ThresholdSet)
    recommendation
    early-safety / early-bundle-risk        (EARLY_QUALITY only)
    prediction-unavailable / win-probability / prediction-confidence
    too-many-warnings

Tracks by asset age:
    age >= proven_runner_min_age        -> PROVEN_RUNNER
    age <  early_quality_max_age        -> EARLY_QUALITY (needs on-chain-first
                                           quality or an S/A validator)
    in between (transition zone)        -> PROVEN_RUNNER

Usage:
    router = SignalRouter(context)
    decision = await router.evaluate(address)
    if decision.accepted:
        print(decision.signal.track.value)
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..core.cache import TTLCache
from ..models import (
    BundleRisk,
    MetricsSnapshot,
    MomentumReading,
    NEUTRAL_MOMENTUM,
    OnChainScore,
    Recommendation,
    RiskLevel,
    RoutingDecision,
    SafetyResult,
    SignalTrack,
    ValidatorEndorsement,
    WinPrediction,
)
from .builder import SignalBuilder, build_features

logger = logging.getLogger(__name__)


# Warnings every on-chain-only candidate carries; not counted against the ceiling
GENERIC_WARNINGS = frozenset({'NO_VALIDATOR', 'ON_CHAIN_SIGNAL'})

DISCOVERY_MEMORY_SECONDS = 24 * 3600


@dataclass
class RouterFunnel:
    """Per-cycle funnel counters"""
    candidates: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)
    signals: Dict[str, int] = field(default_factory=dict)

    def reject(self, reason: str):
        self.rejections[reason] = self.rejections.get(reason, 0) + 1

    def emit(self, track: SignalTrack):
        self.signals[track.value] = self.signals.get(track.value, 0) + 1

    @property
    def total_signals(self) -> int:
        return sum(self.signals.values())

    def to_dict(self) -> dict:
        return {
            'candidates': self.candidates,
            'rejections': dict(sorted(self.rejections.items(), key=lambda x: -x[1])),
            'signals': dict(self.signals),
        }


class SignalRouter:
    """Evaluates candidates against the two trust tracks."""

    def __init__(self, context):
        self.ctx = context
        self.config = context.config
        self.builder = SignalBuilder(context.config, context.sizer)
        self.funnel = RouterFunnel()

        cooldown = self.config.router.signal_cooldown_minutes * 60
        # address -> whether the last signal already had a validator
        self._signaled: TTLCache = TTLCache(ttl=cooldown, clock=context.clock)
        self._discovered: TTLCache = TTLCache(ttl=DISCOVERY_MEMORY_SECONDS, clock=context.clock)

    def reset_funnel(self) -> RouterFunnel:
        """Return the finished cycle's counters and start a new cycle."""
        funnel, self.funnel = self.funnel, RouterFunnel()
        return funnel

    def assign_track(self, age_minutes: float) -> Optional[SignalTrack]:
        """Track by age; None while the asset is too young to evaluate."""
        cfg = self.config.router
        if age_minutes < cfg.min_age:
            return None
        if age_minutes >= cfg.proven_runner_min_age:
            return SignalTrack.PROVEN_RUNNER
        if age_minutes < cfg.early_quality_max_age:
            return SignalTrack.EARLY_QUALITY
        # Transition zone: partial survival, routed with survivor requirements
        return SignalTrack.PROVEN_RUNNER

    def is_onchain_first(self, score: OnChainScore, metrics: MetricsSnapshot) -> bool:
        cfg = self.config.router
        c = score.components
        return (
            c.momentum >= cfg.early_min_momentum
            and c.safety >= cfg.early_min_safety
            and c.bundle_safety >= cfg.early_min_bundle_safety
            and metrics.holder_count >= cfg.early_min_holders
            and c.market_structure >= cfg.early_min_market_structure
        )

    def is_trusted(self, validator: Optional[ValidatorEndorsement]) -> bool:
        return validator is not None and validator.tier in self.config.router.trusted_validator_tiers

    async def evaluate(self, address: str) -> RoutingDecision:
        decision = await self._evaluate(address)
        if decision.accepted:
            self.funnel.emit(decision.signal.track)
            logger.info(
                f"SIGNAL {decision.signal.ticker} [{decision.signal.track.value}/"
                f"{decision.signal.signal_type.value}] score={decision.signal.score.total:.1f}"
            )
        else:
            self.funnel.reject(decision.reason)
            logger.debug(f"{address[:8]}: rejected ({decision.reason})")
        return decision

    async def _evaluate(self, address: str) -> RoutingDecision:
        ctx = self.ctx
        cfg = self.config.router
        self.funnel.candidates += 1

        if ctx.book.has_open(address):
            return RoutingDecision.reject("already-positioned")

        validator = await self._fetch_validator(address)
        had_validator = self._signaled.get(address)
        if had_validator is not None and (validator is None or had_validator):
            return RoutingDecision.reject("already-signaled")

        # === Safety first: absence of a clean result blocks ===
        safety = await self._fetch_safety(address)
        if safety is None:
            return RoutingDecision.reject("safety-unavailable")
        if safety.is_blocked:
            return RoutingDecision.reject("safety-blocked")

        # === Market data ===
        try:
            metrics = await ctx.metrics.fetch_metrics(address)
        except Exception as e:
            logger.warning(f"Metrics fetch failed for {address[:8]}: {e}")
            return RoutingDecision.reject("metrics-error")
        if metrics is None:
            return RoutingDecision.reject("no-metrics")

        bundle = await self._fetch_bundle(address)
        if bundle is None:
            return RoutingDecision.reject("bundle-unavailable")
        momentum = await self._fetch_momentum(address)

        # === Compose ===
        score = ctx.scorer.compose(metrics, momentum, safety, bundle)
        if score.risk_level == RiskLevel.CRITICAL:
            return RoutingDecision.reject("critical-risk", score=score)

        # === Track assignment ===
        track = self.assign_track(metrics.age_minutes)
        if track is None:
            return RoutingDecision.reject("too-early", score=score)
        if track == SignalTrack.EARLY_QUALITY:
            if not (self.is_onchain_first(score, metrics) or self.is_trusted(validator)):
                return RoutingDecision.reject("unvalidated-early-asset", track, score)

        # === Valuation tier ===
        tier = self.config.tier_for(metrics.market_cap)
        if not tier.enabled:
            return RoutingDecision.reject("tier-disabled", track, score)
        if metrics.liquidity_pool < tier.min_liquidity:
            return RoutingDecision.reject("tier-liquidity", track, score)
        if score.components.safety < tier.min_safety:
            return RoutingDecision.reject("tier-safety", track, score)

        # === Global thresholds (read once; swaps are atomic) ===
        reason = self._threshold_gate(score, bundle, metrics)
        if reason:
            return RoutingDecision.reject(reason, track, score)

        blocked = (Recommendation.STRONG_AVOID,) if cfg.data_collection_mode else (
            Recommendation.AVOID, Recommendation.STRONG_AVOID)
        if score.recommendation in blocked:
            return RoutingDecision.reject("recommendation", track, score)

        # === Early track: tighter safety and bundle bounds ===
        if track == SignalTrack.EARLY_QUALITY:
            if cfg.data_collection_mode:
                min_safety = cfg.early_gate_min_safety_collecting
                max_bundle = cfg.early_gate_max_bundle_risk_collecting
            else:
                min_safety = cfg.early_gate_min_safety
                max_bundle = cfg.early_gate_max_bundle_risk
            if score.components.safety < min_safety:
                return RoutingDecision.reject("early-safety", track, score)
            if bundle.risk_score > max_bundle:
                return RoutingDecision.reject("early-bundle-risk", track, score)

        # === Win prediction ===
        features = build_features(
            metrics, score, bundle.risk_score, momentum.buy_sell_ratio, momentum.unique_buyers,
        )
        prediction: Optional[WinPrediction] = None
        try:
            prediction = await ctx.predictor.predict_win(features)
        except Exception as e:
            logger.warning(f"Win prediction failed for {metrics.ticker}: {e}")
            if not cfg.data_collection_mode:
                return RoutingDecision.reject("prediction-unavailable", track, score)

        if not cfg.data_collection_mode:
            min_probability = (cfg.proven_min_win_probability if track == SignalTrack.PROVEN_RUNNER
                               else cfg.early_min_win_probability)
            if prediction.probability < min_probability:
                return RoutingDecision.reject("win-probability", track, score)
            if prediction.confidence.rank < cfg.min_prediction_confidence.rank:
                return RoutingDecision.reject("prediction-confidence", track, score)

        # === Warning ceiling ===
        warnings = score.warnings if validator else score.warnings + ('NO_VALIDATOR',)
        specific = [w for w in warnings if w not in GENERIC_WARNINGS]
        if len(specific) > cfg.max_warnings:
            return RoutingDecision.reject("too-many-warnings", track, score)

        previously_discovered = address in self._discovered
        signal = self.builder.build(
            metrics=metrics,
            score=score,
            features=features,
            track=track,
            tier=tier,
            prediction=prediction,
            validator=validator,
            previously_discovered=previously_discovered,
            warnings=warnings,
            now=ctx.clock(),
        )

        self._signaled.set(address, validator is not None)
        if validator is None:
            self._discovered.set(address, True)
        return RoutingDecision.accept(signal)

    def _threshold_gate(
        self,
        score: OnChainScore,
        bundle: BundleRisk,
        metrics: MetricsSnapshot,
    ) -> Optional[str]:
        gates = self.ctx.thresholds.current
        c = score.components
        if score.total < gates.min_onchain_score:
            return "threshold-onchain"
        if c.momentum < gates.min_momentum_score:
            return "threshold-momentum"
        if c.safety < gates.min_safety_score:
            return "threshold-safety"
        if bundle.risk_score > gates.max_bundle_risk_score:
            return "threshold-bundle-risk"
        if metrics.liquidity_pool < gates.min_liquidity:
            return "threshold-liquidity"
        if metrics.top10_concentration > gates.max_top10_concentration:
            return "threshold-concentration"
        return None

    # =========================================================================
    # Collaborator calls
    # =========================================================================

    async def _fetch_safety(self, address: str) -> Optional[SafetyResult]:
        try:
            return await self.ctx.safety_cache.get_or_load(
                address, lambda: self.ctx.safety.check_safety(address),
            )
        except Exception as e:
            logger.warning(f"Safety check failed for {address[:8]}: {e}")
            return None

    async def _fetch_bundle(self, address: str) -> Optional[BundleRisk]:
        try:
            return await self.ctx.bundles.check_bundle_risk(address)
        except Exception as e:
            logger.warning(f"Bundle analysis failed for {address[:8]}: {e}")
            return None

    async def _fetch_momentum(self, address: str) -> MomentumReading:
        if self.ctx.momentum is None:
            return NEUTRAL_MOMENTUM
        try:
            reading = await self.ctx.momentum.analyze_momentum(address)
        except Exception as e:
            logger.warning(f"Momentum analysis failed for {address[:8]}: {e}")
            return NEUTRAL_MOMENTUM
        return reading or NEUTRAL_MOMENTUM

    async def _fetch_validator(self, address: str) -> Optional[ValidatorEndorsement]:
        if self.ctx.validators is None:
            return None
        try:
            return await self.ctx.validators.get_endorsement(address)
        except Exception as e:
            logger.warning(f"Validator lookup failed for {address[:8]}: {e}")
            return None
