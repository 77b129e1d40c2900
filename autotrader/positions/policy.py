"""
Exit Policy - pure exit decision for one position poll.

Strict priority, first match wins:

    1. STOP_LOSS / TIME_DECAY_STOP   pnl <= effective stop          -> 100%
    2. TRAILING_STOP                 peak pnl > activation and
                                     retrace > limit                -> 100%
    3. MOMENTUM_FADE                 pnl >= min, TP1 not hit, sell
                                     pressure or volume slowing     -> partial
    4. TAKE_PROFIT_2                 TP1 hit, price >= TP2          -> 100%
    5. TAKE_PROFIT_1                 price >= TP1                   -> partial
    6. NONE

Stop-loss dominates every profit-taking rule, and an armed trailing
stop dominates momentum fade and take-profits.
"""
import time
from typing import Optional

from ..config import ExitConfig
from ..models import ExitAction, ExitDecision, HOLD, MomentumReading, Position


class ExitPolicy:

    def __init__(self, config: Optional[ExitConfig] = None):
        self.config = config or ExitConfig()

    def effective_stop(self, position: Position, now: Optional[float] = None) -> float:
        """Current stop including time decay; never looser than the recorded one."""
        now = time.time() if now is None else now
        stop = position.effective_stop_loss
        rule = self.config.time_decay.get(position.category)
        if rule is not None:
            if position.hold_hours_at(now) >= rule.hours and position.pnl_percent <= rule.threshold:
                stop = max(stop, rule.tighten_to)
        return stop

    def evaluate(
        self,
        position: Position,
        momentum: Optional[MomentumReading] = None,
        now: Optional[float] = None,
    ) -> ExitDecision:
        cfg = self.config
        pnl = position.pnl_percent

        # 1. Stop-loss
        stop = self.effective_stop(position, now)
        if pnl <= stop:
            if stop > position.stop_loss_percent:
                hours = position.hold_hours_at(time.time() if now is None else now)
                return ExitDecision(
                    action=ExitAction.TIME_DECAY_STOP,
                    sell_percent=100.0,
                    reason=f"TIME_DECAY_STOP: {pnl:.1f}% after {hours:.1f}h (stop {stop:.0f}%)",
                )
            return ExitDecision(
                action=ExitAction.STOP_LOSS,
                sell_percent=100.0,
                reason=f"STOP_LOSS: {pnl:.1f}% <= {stop:.0f}%",
            )

        # 2. Trailing stop
        peak = position.peak_pnl_percent
        if peak > cfg.trailing_activation_percent:
            retrace = (peak - pnl) / peak * 100
            if retrace > cfg.trailing_retrace_percent:
                return ExitDecision(
                    action=ExitAction.TRAILING_STOP,
                    sell_percent=100.0,
                    reason=f"TRAILING_STOP: peak {peak:.1f}% -> {pnl:.1f}% ({retrace:.0f}% retrace)",
                )

        # 3. Momentum fade
        if (momentum is not None
                and pnl >= cfg.momentum_fade_min_pnl
                and not position.tp1_hit
                and not position.momentum_fade_hit):
            selling = momentum.sell_buy_ratio >= cfg.momentum_fade_sell_buy_ratio
            slowing = momentum.volume_acceleration < cfg.momentum_fade_volume_acceleration
            if selling or slowing:
                detail = (f"sell/buy {momentum.sell_buy_ratio:.2f}" if selling
                          else f"volume accel {momentum.volume_acceleration:.2f}")
                return ExitDecision(
                    action=ExitAction.MOMENTUM_FADE,
                    sell_percent=cfg.momentum_fade_sell_percent,
                    reason=f"MOMENTUM_FADE: +{pnl:.1f}%, {detail}",
                )

        # 4. Take-profit 2 (only after TP1)
        tp2 = position.take_profit_2
        if position.tp1_hit and not position.tp2_hit and position.current_price >= tp2.price:
            return ExitDecision(
                action=ExitAction.TAKE_PROFIT_2,
                sell_percent=100.0,
                reason=f"TAKE_PROFIT_2: +{pnl:.1f}% >= +{tp2.percent:.0f}%",
            )

        # 5. Take-profit 1
        tp1 = position.take_profit_1
        if not position.tp1_hit and position.current_price >= tp1.price:
            return ExitDecision(
                action=ExitAction.TAKE_PROFIT_1,
                sell_percent=tp1.sell_percent,
                reason=f"TAKE_PROFIT_1: +{pnl:.1f}% >= +{tp1.percent:.0f}%",
            )

        return HOLD
