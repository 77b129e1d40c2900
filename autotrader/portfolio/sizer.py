"""
Position Sizer - signal quality + win prediction -> bounded allocation.

    percent = base x strength x momentum x safety x bundle x streak
                   x predictor multiplier x tier multiplier

bounded by the tier ceiling and the global maximum, then converted to
SOL against the live PortfolioState.

Usage:
    from autotrader.portfolio import PositionSizer, PortfolioState

    sizer = PositionSizer(SizingConfig(), PortfolioState.with_capital(1.0))
    decision = sizer.size_for(signal)
    if decision.approved:
        await executor.buy(signal.address, decision.sol_amount)
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from ..config import SizingConfig, TierConfig
from ..models import OnChainScore, Signal, WinPrediction

logger = logging.getLogger(__name__)


class SignalStrength(Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"


@dataclass
class PortfolioState:
    """Capital and streak bookkeeping"""
    total_sol: float
    available_sol: float
    open_positions: int = 0
    daily_trades: int = 0
    daily_pnl_sol: float = 0.0
    win_streak: int = 0
    loss_streak: int = 0
    day: str = field(default_factory=lambda: time.strftime('%Y-%m-%d'))

    @classmethod
    def with_capital(cls, capital_sol: float) -> 'PortfolioState':
        return cls(total_sol=capital_sol, available_sol=capital_sol)

    def record_open(self, sol_amount: float):
        self.roll_day()
        self.open_positions += 1
        self.daily_trades += 1
        self.available_sol -= sol_amount

    def record_partial(self, sol_received: float):
        self.available_sol += sol_received

    def record_close(self, sol_invested: float, sol_returned: float):
        """Final exit: sol_returned counts every sell of the position."""
        pnl = sol_returned - sol_invested
        self.open_positions = max(0, self.open_positions - 1)
        self.total_sol += pnl
        self.daily_pnl_sol += pnl
        if pnl > 0:
            self.win_streak += 1
            self.loss_streak = 0
        else:
            self.loss_streak += 1
            self.win_streak = 0

    def roll_day(self):
        today = time.strftime('%Y-%m-%d')
        if today != self.day:
            self.day = today
            self.daily_trades = 0
            self.daily_pnl_sol = 0.0

    def to_dict(self) -> dict:
        return {
            'total_sol': self.total_sol,
            'available_sol': self.available_sol,
            'open_positions': self.open_positions,
            'daily_trades': self.daily_trades,
            'daily_pnl_sol': self.daily_pnl_sol,
            'win_streak': self.win_streak,
            'loss_streak': self.loss_streak,
        }


@dataclass(frozen=True)
class SizingDecision:
    approved: bool
    sol_amount: float = 0.0
    position_percent: float = 0.0
    reason: str = ""
    rationale: Tuple[str, ...] = ()


class PositionSizer:
    """Converts signal quality into a capital allocation."""

    def __init__(self, config: Optional[SizingConfig] = None, portfolio: Optional[PortfolioState] = None):
        self.config = config or SizingConfig()
        self.portfolio = portfolio or PortfolioState.with_capital(1.0)

    def classify(self, score: OnChainScore, validated: bool = False) -> SignalStrength:
        c = score.components
        weighted = c.momentum * 0.30 + c.safety * 0.35 + c.bundle_safety * 0.35
        if weighted >= 55:
            strength = SignalStrength.STRONG
        elif weighted >= 40:
            strength = SignalStrength.MODERATE
        else:
            strength = SignalStrength.WEAK

        if c.safety < 30 and strength == SignalStrength.STRONG:
            strength = SignalStrength.MODERATE
        if validated and strength == SignalStrength.WEAK and weighted >= 30:
            strength = SignalStrength.MODERATE
        return strength

    def position_percent(
        self,
        score: OnChainScore,
        tier: TierConfig,
        prediction: Optional[WinPrediction] = None,
        validated: bool = False,
    ) -> Tuple[float, List[str]]:
        """
        Percent of capital for a signal (pure; no portfolio checks).

        Returns:
            (percent, rationale lines)
        """
        cfg = self.config
        c = score.components
        strength = self.classify(score, validated)

        factors = [
            (f"strength {strength.value}", self._strength_multiplier(strength)),
            (f"momentum {c.momentum:.0f}", _momentum_multiplier(c.momentum)),
            (f"safety {c.safety:.0f}", _safety_multiplier(c.safety)),
            (f"bundle safety {c.bundle_safety:.0f}", _bundle_multiplier(c.bundle_safety)),
            ("streak", self._streak_multiplier()),
            ("predictor", prediction.size_multiplier if prediction else 1.0),
            (f"tier {tier.tier.value}", tier.size_multiplier),
        ]

        percent = cfg.base_position_percent
        rationale = [f"base {percent:.1f}%"]
        for label, multiplier in factors:
            percent *= multiplier
            if multiplier != 1.0:
                rationale.append(f"{label}: {multiplier:.2f}x")

        ceiling = min(cfg.max_position_percent, tier.max_position_percent)
        if percent > ceiling:
            rationale.append(f"capped at {ceiling:.1f}%")
            percent = ceiling
        return percent, rationale

    def can_open(self) -> Tuple[bool, str]:
        p = self.portfolio
        p.roll_day()
        if p.open_positions >= self.config.max_open_positions:
            return False, "max-open-positions"
        if p.daily_trades >= self.config.max_daily_trades:
            return False, "daily-trade-limit"
        if p.available_sol - self.config.reserve_sol < self.config.min_trade_sol:
            return False, "insufficient-capital"
        return True, ""

    def size_for(self, signal: Signal) -> SizingDecision:
        """SOL amount for a signal against the current portfolio."""
        ok, reason = self.can_open()
        if not ok:
            logger.debug(f"Sizing refused for {signal.ticker}: {reason}")
            return SizingDecision(approved=False, reason=reason)

        cfg = self.config
        p = self.portfolio
        sol = signal.position_size_percent / 100 * p.total_sol
        sol = min(sol, cfg.max_trade_sol, p.available_sol - cfg.reserve_sol)
        if sol < cfg.min_trade_sol:
            sol = cfg.min_trade_sol
        sol = round(sol, 4)

        return SizingDecision(
            approved=True,
            sol_amount=sol,
            position_percent=sol / p.total_sol * 100 if p.total_sol > 0 else 0.0,
            reason="ok",
            rationale=(f"{signal.position_size_percent:.1f}% of {p.total_sol:.4f} SOL",),
        )

    def _strength_multiplier(self, strength: SignalStrength) -> float:
        return {
            SignalStrength.STRONG: self.config.strong_multiplier,
            SignalStrength.MODERATE: self.config.moderate_multiplier,
            SignalStrength.WEAK: self.config.weak_multiplier,
        }[strength]

    def _streak_multiplier(self) -> float:
        cfg = self.config
        p = self.portfolio
        if p.loss_streak >= cfg.scale_down_after_losses:
            steps = p.loss_streak - cfg.scale_down_after_losses + 1
            return max(cfg.min_scale, 1 - steps * cfg.loss_step)
        if p.win_streak >= cfg.scale_up_after_wins:
            steps = p.win_streak - cfg.scale_up_after_wins + 1
            return min(cfg.max_scale, 1 + steps * cfg.win_step)
        return 1.0


def _momentum_multiplier(score: float) -> float:
    if score >= 80:
        return 1.3
    if score >= 65:
        return 1.15
    if score >= 50:
        return 1.0
    if score >= 35:
        return 0.8
    return 0.6


def _safety_multiplier(score: float) -> float:
    if score >= 80:
        return 1.2
    if score >= 65:
        return 1.1
    if score >= 50:
        return 1.0
    if score >= 35:
        return 0.75
    return 0.5


def _bundle_multiplier(bundle_safety: float) -> float:
    if bundle_safety >= 80:
        return 1.15
    if bundle_safety >= 60:
        return 1.0
    if bundle_safety >= 40:
        return 0.8
    return 0.5
