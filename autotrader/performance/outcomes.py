"""
Outcome Log - completed signals for threshold learning.

Closed positions are recorded here with the factor values they were
entered on; the optimizer and the win predictor read them back.
Optionally mirrored to a JSON-lines file so learning survives restarts.
"""
import json
import logging
import os
import time
from typing import Dict, List, Optional

from ..interfaces import OutcomeSource
from ..models import SignalOutcome

logger = logging.getLogger(__name__)


class OutcomeLog(OutcomeSource):
    """In-memory outcome store with optional JSONL persistence"""

    SIGNAL_RETENTION_HOURS = 7 * 24

    def __init__(self, path: str = "", window_hours: float = 14 * 24):
        self.path = path
        self.window_hours = window_hours
        self._outcomes: List[SignalOutcome] = []
        self._signal_times: List[float] = []
        if path:
            self._load(path)

    def record(self, outcome: SignalOutcome):
        self._outcomes.append(outcome)
        logger.info(
            f"Outcome {outcome.address[:8]}: {'WIN' if outcome.won else 'LOSS'} "
            f"{outcome.pnl_percent:+.1f}%"
        )
        if self.path:
            try:
                with open(self.path, 'a') as f:
                    f.write(json.dumps(outcome.to_dict()) + '\n')
            except OSError as e:
                logger.error(f"Failed to persist outcome: {e}")

    def record_signal(self, timestamp: Optional[float] = None):
        """Count an emitted signal (drives the low-volume loosening rule)."""
        timestamp = time.time() if timestamp is None else timestamp
        self._signal_times.append(timestamp)
        cutoff = timestamp - self.SIGNAL_RETENTION_HOURS * 3600
        self._signal_times = [t for t in self._signal_times if t >= cutoff]

    def signal_volume(self, hours: float = SIGNAL_RETENTION_HOURS, now: Optional[float] = None) -> int:
        """Signals emitted in the last `hours`, at most SIGNAL_RETENTION_HOURS back."""
        now = time.time() if now is None else now
        cutoff = now - hours * 3600
        return sum(1 for t in self._signal_times if t >= cutoff)

    def get_outcomes(self, now: Optional[float] = None) -> List[SignalOutcome]:
        now = time.time() if now is None else now
        cutoff = now - self.window_hours * 3600
        return [o for o in self._outcomes if o.closed_at >= cutoff]

    def stats(self) -> Dict[str, float]:
        outcomes = self.get_outcomes()
        wins = sum(1 for o in outcomes if o.won)
        return {
            'completed': len(outcomes),
            'wins': wins,
            'losses': len(outcomes) - wins,
            'win_rate': wins / len(outcomes) * 100 if outcomes else 0.0,
            'avg_pnl_percent': (
                sum(o.pnl_percent for o in outcomes) / len(outcomes) if outcomes else 0.0
            ),
        }

    def _load(self, path: str):
        if not os.path.exists(path):
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            return
        try:
            with open(path) as f:
                for line in f:
                    line = line.strip()
                    if line:
                        self._outcomes.append(SignalOutcome.from_dict(json.loads(line)))
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to load outcomes from {path}: {e}")
            return
        logger.info(f"Loaded {len(self._outcomes)} outcomes from {path}")
