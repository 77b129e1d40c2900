"""
Threshold Store - the live gating ThresholdSet and its history.

The router reads `store.current` once per candidate; the optimizer
replaces it with `store.swap(...)`. A ThresholdSet is frozen, so the
swap is a single reference assignment and a reader can never observe a
half-updated set. Every swap appends timestamped change records.

Usage:
    from autotrader.performance import ThresholdStore

    store = ThresholdStore(history_path="data/thresholds.jsonl")
    gates = store.current
    store.swap(gates.with_values(min_momentum_score=30), reason="manual")
"""
import json
import logging
import os
import time
from dataclasses import dataclass, asdict, fields, replace
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdSet:
    """Named numeric gates applied by the router."""
    min_momentum_score: float = 25.0
    min_onchain_score: float = 30.0
    min_safety_score: float = 40.0
    max_bundle_risk_score: float = 60.0
    min_liquidity: float = 8000.0
    max_top10_concentration: float = 60.0

    def with_values(self, **values) -> 'ThresholdSet':
        unknown = set(values) - set(THRESHOLD_NAMES)
        if unknown:
            raise KeyError(f"Unknown thresholds: {sorted(unknown)}")
        return replace(self, **values)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> 'ThresholdSet':
        return cls(**{k: float(v) for k, v in data.items() if k in THRESHOLD_NAMES})


THRESHOLD_NAMES = tuple(f.name for f in fields(ThresholdSet))

DEFAULT_THRESHOLDS = ThresholdSet()


@dataclass(frozen=True)
class ThresholdFactor:
    """Links a gate to the outcome factor it is learned from."""
    threshold: str
    factor: str
    higher_is_better: bool

    @property
    def is_max(self) -> bool:
        return not self.higher_is_better


THRESHOLD_FACTORS: Tuple[ThresholdFactor, ...] = (
    ThresholdFactor('min_momentum_score', 'momentum_score', True),
    ThresholdFactor('min_onchain_score', 'onchain_score', True),
    ThresholdFactor('min_safety_score', 'safety_score', True),
    ThresholdFactor('max_bundle_risk_score', 'bundle_risk_score', False),
    ThresholdFactor('min_liquidity', 'liquidity', True),
    ThresholdFactor('max_top10_concentration', 'top10_concentration', False),
)


@dataclass(frozen=True)
class ThresholdChange:
    """One applied change. History entries are never rewritten."""
    timestamp: float
    threshold: str
    old_value: float
    new_value: float
    reason: str

    def to_dict(self) -> dict:
        return asdict(self)


class ThresholdStore:
    """Owner of the live ThresholdSet."""

    def __init__(
        self,
        initial: Optional[ThresholdSet] = None,
        history_path: str = "",
    ):
        self.history_path = history_path
        self._history: List[ThresholdChange] = []
        self._current = initial or DEFAULT_THRESHOLDS
        self.last_updated: Optional[float] = None

        if history_path and initial is None:
            self._load(history_path)

    @property
    def current(self) -> ThresholdSet:
        return self._current

    @property
    def history(self) -> Tuple[ThresholdChange, ...]:
        return tuple(self._history)

    def swap(self, new: ThresholdSet, reason: str) -> List[ThresholdChange]:
        """
        Replace the live set.

        Returns:
            Change records for every field that moved (empty if none)
        """
        old = self._current
        now = time.time()
        changes = [
            ThresholdChange(
                timestamp=now,
                threshold=name,
                old_value=getattr(old, name),
                new_value=getattr(new, name),
                reason=reason,
            )
            for name in THRESHOLD_NAMES
            if getattr(old, name) != getattr(new, name)
        ]
        if not changes:
            return []

        self._current = new
        self._history.extend(changes)
        self.last_updated = now

        for change in changes:
            logger.info(
                f"Threshold {change.threshold}: {change.old_value:.2f} -> "
                f"{change.new_value:.2f} ({reason})"
            )
        if self.history_path:
            self._append(changes, new)
        return changes

    def reset(self) -> List[ThresholdChange]:
        return self.swap(DEFAULT_THRESHOLDS, reason="reset to defaults")

    def value_at(self, timestamp: float) -> ThresholdSet:
        """Reconstruct the set that was live at `timestamp`."""
        values = self._current.to_dict()
        for change in reversed(self._history):
            if change.timestamp > timestamp:
                values[change.threshold] = change.old_value
        return ThresholdSet.from_dict(values)

    def _append(self, changes: List[ThresholdChange], snapshot: ThresholdSet):
        directory = os.path.dirname(self.history_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.history_path, 'a') as f:
                for change in changes:
                    f.write(json.dumps({'type': 'change', **change.to_dict()}) + '\n')
                f.write(json.dumps({
                    'type': 'snapshot',
                    'timestamp': changes[-1].timestamp,
                    'thresholds': snapshot.to_dict(),
                }) + '\n')
        except OSError as e:
            logger.error(f"Failed to persist threshold history: {e}")

    def _load(self, path: str):
        if not os.path.exists(path):
            return
        latest: Optional[ThresholdSet] = None
        try:
            with open(path) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    record = json.loads(line)
                    if record.get('type') == 'change':
                        record.pop('type')
                        self._history.append(ThresholdChange(**record))
                    elif record.get('type') == 'snapshot':
                        latest = ThresholdSet.from_dict(record['thresholds'])
                        self.last_updated = record.get('timestamp')
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load threshold history from {path}: {e}")
            return
        if latest is not None:
            self._current = latest
            logger.info(f"Loaded thresholds from {path}: {latest.to_dict()}")
