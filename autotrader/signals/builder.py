"""
Signal Builder - turns an accepted evaluation into an immutable Signal.

Stop-loss and take-profit levels come from the valuation tier table,
not from fixed percentages; the category (conviction bucket) picks the
position's time-decay rule later on.
"""
import time
from typing import Optional

from ..config import AutoTraderConfig, TierConfig
from ..models import (
    MetricsSnapshot,
    OnChainScore,
    Signal,
    SignalCategory,
    SignalFeatures,
    SignalTrack,
    SignalType,
    TakeProfitLevel,
    ValidatorEndorsement,
    ValidatorTier,
    WinPrediction,
)
from ..portfolio.sizer import PositionSizer


def category_for(score: OnChainScore, validator: Optional[ValidatorEndorsement]) -> SignalCategory:
    if validator is not None and validator.tier == ValidatorTier.S and score.total >= 80:
        return SignalCategory.ULTRA_CONVICTION
    if score.total >= 90:
        return SignalCategory.SCORE_90_PLUS
    if score.total >= 80:
        return SignalCategory.HIGH_CONVICTION
    if validator is not None:
        return SignalCategory.KOL_VALIDATION
    return SignalCategory.STANDARD


def signal_type_for(validator: Optional[ValidatorEndorsement], previously_discovered: bool) -> SignalType:
    if validator is None:
        return SignalType.DISCOVERY
    if previously_discovered:
        return SignalType.KOL_VALIDATION
    return SignalType.BUY


def build_features(
    metrics: MetricsSnapshot,
    score: OnChainScore,
    bundle_risk_score: float,
    buy_sell_ratio: float,
    unique_buyers: int,
) -> SignalFeatures:
    return SignalFeatures(
        momentum_score=score.components.momentum,
        onchain_score=score.total,
        safety_score=score.components.safety,
        bundle_risk_score=bundle_risk_score,
        liquidity=metrics.liquidity_pool,
        token_age_minutes=metrics.age_minutes,
        holder_count=metrics.holder_count,
        top10_concentration=metrics.top10_concentration,
        buy_sell_ratio=buy_sell_ratio,
        unique_buyers=unique_buyers,
        market_cap=metrics.market_cap,
        volume_market_cap_ratio=metrics.volume_market_cap_ratio,
    )


class SignalBuilder:

    def __init__(self, config: AutoTraderConfig, sizer: PositionSizer):
        self.config = config
        self.sizer = sizer

    def build(
        self,
        metrics: MetricsSnapshot,
        score: OnChainScore,
        features: SignalFeatures,
        track: SignalTrack,
        tier: TierConfig,
        prediction: Optional[WinPrediction],
        validator: Optional[ValidatorEndorsement],
        previously_discovered: bool,
        warnings: tuple,
        now: Optional[float] = None,
    ) -> Signal:
        now = time.time() if now is None else now
        router = self.config.router
        price = metrics.price
        band = router.entry_band_percent / 100

        size_percent, _ = self.sizer.position_percent(
            score, tier, prediction, validated=validator is not None,
        )

        take_profits = (
            TakeProfitLevel(
                price=price * (1 + tier.take_profit_1_percent / 100),
                percent=tier.take_profit_1_percent,
                sell_percent=tier.take_profit_1_sell,
            ),
            TakeProfitLevel(
                price=price * (1 + tier.take_profit_2_percent / 100),
                percent=tier.take_profit_2_percent,
                sell_percent=100.0,
            ),
        )

        return Signal(
            address=metrics.address,
            ticker=metrics.ticker,
            track=track,
            signal_type=signal_type_for(validator, previously_discovered),
            category=category_for(score, validator),
            tier=tier.tier,
            entry_price=price,
            entry_low=price * (1 - band),
            entry_high=price * (1 + band),
            stop_loss_price=price * (1 + tier.stop_loss_percent / 100),
            stop_loss_percent=tier.stop_loss_percent,
            take_profits=take_profits,
            position_size_percent=size_percent,
            max_hold_hours=router.max_hold_hours,
            score=score,
            features=features,
            prediction=prediction,
            validator=validator,
            warnings=warnings,
            generated_at=now,
            expires_at=now + router.signal_ttl_minutes * 60,
        )
