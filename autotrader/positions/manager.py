"""
Position Manager - exit state machine
=====================================

    OPEN -> OPEN(TP1_HIT) -> OPEN(TP1_HIT, TP2_HIT) -> CLOSED

Every poll (default 15s) walks the open positions one at a time:
fetch price, fold it into the position's peak, tighten the stop if
time decay applies, ask the ExitPolicy, and submit a sell if needed.

A failed price fetch skips the position for this poll only; a failed
sell leaves the position untouched for the next poll. Only a successful
fill changes hit flags or quantity, and a 100% sell closes the position
and records its outcome for threshold learning.

Usage:
    manager = PositionManager(context)
    position = manager.open_from_signal(signal, fill)
    await manager.poll_all()
"""
import logging
import time
from typing import Dict, List, Optional

from ..errors import PositionError
from ..models import (
    ExecutionResult,
    ExitAction,
    ExitDecision,
    ExitEvent,
    MomentumReading,
    Position,
    PositionStatus,
    Signal,
    SignalOutcome,
    TakeProfitLevel,
)
from .policy import ExitPolicy

logger = logging.getLogger(__name__)


DUST_QUANTITY = 1e-9


class PositionManager:
    """Owns open positions and drives their exits."""

    def __init__(self, context, policy: Optional[ExitPolicy] = None):
        self.ctx = context
        self.book = context.book
        self.policy = policy or ExitPolicy(context.config.exits)
        self.polls = 0
        self.skipped_polls = 0
        self.failed_sells = 0

    def open_from_signal(self, signal: Signal, fill: ExecutionResult) -> Position:
        """Create a position from a successful buy fill."""
        if not fill.success:
            raise PositionError(f"Cannot open {signal.ticker} from a failed fill")

        entry = fill.fill_price
        tp1, tp2 = signal.take_profits[0], signal.take_profits[-1]
        position = Position(
            address=signal.address,
            ticker=signal.ticker,
            entry_price=entry,
            quantity=fill.quantity,
            sol_invested=fill.sol_amount,
            category=signal.category,
            stop_loss_percent=signal.stop_loss_percent,
            take_profit_1=TakeProfitLevel(entry * (1 + tp1.percent / 100), tp1.percent, tp1.sell_percent),
            take_profit_2=TakeProfitLevel(entry * (1 + tp2.percent / 100), tp2.percent, 100.0),
            entry_timestamp=self.ctx.clock(),
            signal_id=signal.signal_id,
            features=signal.features,
        )
        self.book.add(position)
        self.ctx.portfolio.record_open(fill.sol_amount)
        logger.info(
            f"OPEN {position.ticker} {fill.sol_amount:.4f} SOL @ {entry:.10f} "
            f"[{position.category.value}] SL {position.stop_loss_percent:.0f}% "
            f"TP1 +{tp1.percent:.0f}% TP2 +{tp2.percent:.0f}%"
        )
        return position

    async def poll_all(self) -> List[ExitEvent]:
        """One pass over every open position, sequentially."""
        events = []
        for position in self.book.open_positions():
            try:
                event = await self.poll(position)
            except Exception as e:
                logger.error(f"Position poll failed for {position.ticker}: {e}")
                continue
            if event is not None:
                events.append(event)
        return events

    async def poll(self, position: Position, now: Optional[float] = None) -> Optional[ExitEvent]:
        if not position.is_open:
            return None
        now = self.ctx.clock() if now is None else now
        self.polls += 1

        try:
            price = await self.ctx.metrics.fetch_price(position.address)
        except Exception as e:
            logger.warning(f"Price fetch failed for {position.ticker}: {e}")
            price = None
        if price is None or price <= 0:
            # A missed poll is never an exit signal
            self.skipped_polls += 1
            return None

        position.update_price(price)

        stop = self.policy.effective_stop(position, now)
        if position.tighten_stop(stop) and stop > position.stop_loss_percent:
            position.time_decay_applied = True
            logger.info(f"{position.ticker}: time decay, stop tightened to {stop:.0f}%")

        momentum = await self._fetch_momentum(position)
        decision = self.policy.evaluate(position, momentum, now)
        if not decision.should_sell:
            return None
        return await self.execute_exit(position, decision)

    async def execute_exit(self, position: Position, decision: ExitDecision) -> Optional[ExitEvent]:
        logger.info(f"{position.ticker}: {decision.reason} -> selling {decision.sell_percent:.0f}%")
        result = await self.ctx.executor.sell(
            position.address,
            decision.sell_percent,
            position.quantity,
            expected_price=position.current_price,
        )
        if not result.success:
            self.failed_sells += 1
            logger.error(f"Sell failed for {position.ticker} ({decision.action.value}): {result.error}")
            return None
        return await self._apply_fill(position, decision, result)

    async def close_position(self, address: str, reason: str = "manual close") -> Optional[ExitEvent]:
        position = self.book.get(address)
        if position is None:
            raise PositionError(f"No open position for {address}")
        decision = ExitDecision(action=ExitAction.MANUAL, sell_percent=100.0, reason=reason)
        return await self.execute_exit(position, decision)

    async def _apply_fill(
        self,
        position: Position,
        decision: ExitDecision,
        result: ExecutionResult,
    ) -> ExitEvent:
        if decision.action == ExitAction.TAKE_PROFIT_1:
            position.tp1_hit = True
        elif decision.action == ExitAction.TAKE_PROFIT_2:
            position.tp2_hit = True
        elif decision.action == ExitAction.MOMENTUM_FADE:
            position.momentum_fade_hit = True

        position.realized_sol += result.sol_amount
        if decision.is_full_exit:
            position.quantity = 0.0
        else:
            position.quantity = max(0.0, position.quantity - result.quantity)

        self.ctx.portfolio.record_partial(result.sol_amount)
        closed = position.quantity <= DUST_QUANTITY
        if closed:
            self._close(position, decision.action)

        event = ExitEvent(
            position_id=position.position_id,
            address=position.address,
            ticker=position.ticker,
            action=decision.action,
            sell_percent=decision.sell_percent,
            fill_price=result.fill_price,
            pnl_percent=position.pnl_percent,
            sol_received=result.sol_amount,
            closed=closed,
            reason=decision.reason,
        )
        await self.ctx.notify(event)
        return event

    def _close(self, position: Position, action: ExitAction):
        position.status = PositionStatus.CLOSED
        position.exit_reason = action
        position.closed_at = self.ctx.clock()
        self.book.remove(position.address)

        self.ctx.portfolio.record_close(position.sol_invested, position.realized_sol)

        pnl_percent = 0.0
        if position.sol_invested > 0:
            pnl_percent = (position.realized_sol - position.sol_invested) / position.sol_invested * 100
        logger.info(
            f"CLOSED {position.ticker} via {action.value}: {pnl_percent:+.1f}% "
            f"({position.realized_sol - position.sol_invested:+.4f} SOL)"
        )

        if position.features is not None:
            self.ctx.outcomes.record(SignalOutcome(
                signal_id=position.signal_id,
                address=position.address,
                won=pnl_percent > 0,
                pnl_percent=pnl_percent,
                features=position.features.to_dict(),
                closed_at=position.closed_at,
            ))

    async def _fetch_momentum(self, position: Position) -> Optional[MomentumReading]:
        if self.ctx.momentum is None:
            return None
        try:
            return await self.ctx.momentum.analyze_momentum(position.address)
        except Exception as e:
            logger.warning(f"Momentum fetch failed for {position.ticker}: {e}")
            return None

    def summary(self) -> Dict[str, object]:
        positions = self.book.open_positions()
        return {
            'open': len(positions),
            'invested_sol': sum(p.sol_invested for p in positions),
            'value_sol': sum(p.current_value_sol for p in positions),
            'positions': [p.to_dict() for p in positions],
            'closed': len(self.book.closed),
            'polls': self.polls,
            'skipped_polls': self.skipped_polls,
            'failed_sells': self.failed_sells,
        }
