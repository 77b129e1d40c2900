"""
Logging Notifier - presentation sink that writes signals and exits to the log.

Usage:
    from autotrader.notifier import LoggingNotifier

    ctx = TradingContext(..., notifier=LoggingNotifier())
"""
import logging
from typing import List, Union

from .interfaces import Notifier
from .models import ExitEvent, Signal

logger = logging.getLogger(__name__)


def format_signal(signal: Signal) -> str:
    tps = " / ".join(f"+{tp.percent:.0f}% ({tp.sell_percent:.0f}%)" for tp in signal.take_profits)
    lines = [
        f"[{signal.track.value}] {signal.signal_type.value} {signal.ticker} ({signal.address[:8]})",
        f"  Category: {signal.category.value} | Tier: {signal.tier.value}",
        f"  Score:    {signal.score.total:.1f} ({signal.score.recommendation.value}, "
        f"risk {signal.score.risk_level.value})",
        f"  Entry:    {signal.entry_price:.10f} ({signal.entry_low:.10f} - {signal.entry_high:.10f})",
        f"  Stop:     {signal.stop_loss_price:.10f} ({signal.stop_loss_percent:.0f}%)",
        f"  Targets:  {tps}",
        f"  Size:     {signal.position_size_percent:.1f}% | Max hold {signal.max_hold_hours:.0f}h",
    ]
    if signal.prediction is not None:
        lines.append(
            f"  Win prob: {signal.prediction.probability:.0f}% ({signal.prediction.confidence.value})"
        )
    if signal.validator is not None:
        lines.append(f"  Validator: {signal.validator.source} (tier {signal.validator.tier.value})")
    if signal.warnings:
        lines.append(f"  Warnings: {', '.join(signal.warnings)}")
    return "\n".join(lines)


def format_exit(event: ExitEvent) -> str:
    state = "CLOSED" if event.closed else "PARTIAL"
    return (
        f"{state} {event.ticker}: {event.action.value} sold {event.sell_percent:.0f}% "
        f"@ {event.fill_price:.10f} ({event.pnl_percent:+.1f}%, {event.sol_received:.4f} SOL)"
    )


class LoggingNotifier(Notifier):
    """Writes every event to the log and keeps the most recent ones."""

    def __init__(self, keep: int = 100):
        self.keep = keep
        self.events: List[Union[Signal, ExitEvent]] = []

    async def notify(self, event: Union[Signal, ExitEvent]):
        if isinstance(event, Signal):
            logger.info("\n" + format_signal(event))
        elif isinstance(event, ExitEvent):
            logger.info(format_exit(event))
        else:
            logger.warning(f"Unknown notification type: {type(event).__name__}")
            return
        self.events.append(event)
        if len(self.events) > self.keep:
            self.events = self.events[-self.keep:]
