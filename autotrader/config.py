"""
Trading Configuration
=====================

Every tunable constant of the router, exit policy, sizer, optimizer and
loop scheduler lives here. The live gating ThresholdSet is NOT part of
this config: it is owned by the ThresholdStore and swapped atomically.

Usage:
    from autotrader.config import AutoTraderConfig, DEFAULT_CONFIG

    config = AutoTraderConfig()
    print(config.router.proven_runner_min_age)

    # Collect outcomes without the predictor gate
    config = DATA_COLLECTION_CONFIG
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Tuple
import json

from .errors import AutoTraderError
from .models import MarketCapTier, SignalCategory, ValidatorTier, Confidence


class ConfigError(AutoTraderError, ValueError):
    """Raised when a configuration file or override is invalid"""


@dataclass
class ScoringConfig:
    """On-chain composer weights (must sum to 1.0)."""

    momentum_weight: float = 0.30
    safety_weight: float = 0.25
    bundle_safety_weight: float = 0.20
    market_structure_weight: float = 0.15
    timing_weight: float = 0.10

    def validate(self):
        total = (self.momentum_weight + self.safety_weight + self.bundle_safety_weight
                 + self.market_structure_weight + self.timing_weight)
        if abs(total - 1.0) > 1e-6:
            raise ConfigError(f"Scoring weights must sum to 1.0, got {total:.3f}")
        if self.momentum_weight + self.safety_weight < 0.55:
            raise ConfigError("Momentum and safety must carry at least 55% of the weight")


@dataclass
class RouterConfig:
    """Dual-track routing gates."""

    # === Track boundaries (minutes since first on-chain activity) ===
    proven_runner_min_age: float = 90.0     # Survived the launch window
    early_quality_max_age: float = 45.0     # Young enough for the early track
    min_age: float = 2.0                    # Too early to evaluate at all

    # === EARLY_QUALITY on-chain-first minimums ===
    early_min_momentum: float = 60.0
    early_min_safety: float = 70.0
    early_min_bundle_safety: float = 70.0
    early_min_holders: int = 50
    early_min_market_structure: float = 50.0
    trusted_validator_tiers: Tuple[ValidatorTier, ...] = (ValidatorTier.S, ValidatorTier.A)

    # === EARLY_QUALITY extra gates ===
    early_gate_min_safety: float = 50.0
    early_gate_max_bundle_risk: float = 55.0
    early_gate_min_safety_collecting: float = 35.0   # Data-collection mode
    early_gate_max_bundle_risk_collecting: float = 70.0

    # === Win predictor gate ===
    proven_min_win_probability: float = 45.0
    early_min_win_probability: float = 35.0
    min_prediction_confidence: Confidence = Confidence.MEDIUM

    # === Misc ===
    max_warnings: int = 4                   # Non-generic warnings allowed
    signal_ttl_minutes: float = 30.0        # Signal expiry
    signal_cooldown_minutes: float = 60.0   # No re-signal without new validator
    entry_band_percent: float = 5.0         # +/- around the current price
    max_hold_hours: float = 48.0
    data_collection_mode: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data['trusted_validator_tiers'] = [t.value for t in self.trusted_validator_tiers]
        data['min_prediction_confidence'] = self.min_prediction_confidence.value
        return data


@dataclass
class TierConfig:
    """Valuation tier: wider stops and smaller ceilings for smaller caps."""
    tier: MarketCapTier
    max_market_cap: float
    min_liquidity: float
    min_safety: float
    stop_loss_percent: float                # Negative
    take_profit_1_percent: float
    take_profit_1_sell: float               # Percent of position sold at TP1
    take_profit_2_percent: float
    max_position_percent: float             # Ceiling, percent of capital
    size_multiplier: float = 1.0
    enabled: bool = True


def _default_tiers() -> List[TierConfig]:
    return [
        TierConfig(MarketCapTier.MICRO, 500_000, 10_000, 60, -50, 100, 50, 300, 5.0, 0.5),
        TierConfig(MarketCapTier.RISING, 8_000_000, 15_000, 55, -40, 75, 40, 200, 8.0, 0.75),
        TierConfig(MarketCapTier.EMERGING, 20_000_000, 25_000, 50, -35, 50, 40, 150, 10.0, 1.0),
        TierConfig(MarketCapTier.GRADUATED, 50_000_000, 50_000, 45, -30, 40, 35, 100, 12.0, 1.0),
        TierConfig(MarketCapTier.ESTABLISHED, 150_000_000, 100_000, 40, -25, 30, 35, 75, 15.0, 1.0),
        TierConfig(MarketCapTier.UNKNOWN, float('inf'), 0, 100, -25, 30, 35, 75, 0.0, 0.0, enabled=False),
    ]


@dataclass
class TimeDecayRule:
    """Held at least `hours` and pnl <= `threshold`: stop rises to `tighten_to`."""
    threshold: float
    hours: float
    tighten_to: float


def _default_time_decay() -> Dict[SignalCategory, TimeDecayRule]:
    return {
        SignalCategory.ULTRA_CONVICTION: TimeDecayRule(-40, 6, -35),
        SignalCategory.HIGH_CONVICTION: TimeDecayRule(-35, 4, -30),
        SignalCategory.SCORE_90_PLUS: TimeDecayRule(-30, 3, -25),
        SignalCategory.KOL_VALIDATION: TimeDecayRule(-25, 2, -20),
        SignalCategory.STANDARD: TimeDecayRule(-20, 1, -15),
    }


@dataclass
class ExitConfig:
    """Position exit state machine."""

    poll_interval: float = 15.0             # Seconds between position polls

    # === Trailing stop ===
    trailing_activation_percent: float = 40.0   # Peak pnl needed to arm
    trailing_retrace_percent: float = 25.0      # Share of peak gain given back

    # === Momentum fade ===
    momentum_fade_min_pnl: float = 15.0
    momentum_fade_sell_buy_ratio: float = 1.5
    momentum_fade_volume_acceleration: float = -0.3
    momentum_fade_sell_percent: float = 50.0

    time_decay: Dict[SignalCategory, TimeDecayRule] = field(default_factory=_default_time_decay)


@dataclass
class SizingConfig:
    """Capital allocation."""

    base_position_percent: float = 10.0     # Of available capital
    max_position_percent: float = 20.0      # Hard ceiling
    min_trade_sol: float = 0.05
    max_trade_sol: float = 5.0
    max_open_positions: int = 5
    max_daily_trades: int = 20
    reserve_sol: float = 0.02               # Left for fees

    # === Signal strength multipliers ===
    strong_multiplier: float = 1.3
    moderate_multiplier: float = 1.0
    weak_multiplier: float = 0.6

    # === Streak scaling ===
    scale_down_after_losses: int = 2
    scale_up_after_wins: int = 3
    loss_step: float = 0.15                 # Per loss beyond the trigger
    win_step: float = 0.10                  # Per win beyond the trigger
    min_scale: float = 0.5
    max_scale: float = 1.5


@dataclass
class OptimizerConfig:
    """Threshold learning."""

    target_win_rate: float = 30.0
    min_samples: int = 20
    max_change_percent: float = 15.0
    separation_threshold: float = 0.5
    nudge_fraction: float = 0.30
    min_nudge: float = 2.0                  # Skip nudges smaller than this
    low_volume_signals: int = 20            # Loosen only below this volume
    auto_apply: bool = True
    history_path: str = ""                  # JSON lines; empty = memory only


@dataclass
class LoopConfig:
    scan_interval: float = 60.0
    optimizer_interval: float = 6 * 3600.0
    max_candidates_per_cycle: int = 25
    safety_cache_ttl: float = 3600.0
    metrics_cache_ttl: float = 30.0


@dataclass
class AutoTraderConfig:
    """Top-level configuration handed to the TradingContext."""

    capital_sol: float = 1.0
    paper_mode: bool = True
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    tiers: List[TierConfig] = field(default_factory=_default_tiers)
    exits: ExitConfig = field(default_factory=ExitConfig)
    sizing: SizingConfig = field(default_factory=SizingConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    loops: LoopConfig = field(default_factory=LoopConfig)

    def tier_for(self, market_cap: float) -> TierConfig:
        """Tier lookup by market cap (tiers sorted ascending)."""
        for tier in self.tiers:
            if market_cap < tier.max_market_cap:
                return tier
        return self.tiers[-1]

    def to_dict(self) -> dict:
        return {
            'capital_sol': self.capital_sol,
            'paper_mode': self.paper_mode,
            'scoring': asdict(self.scoring),
            'router': self.router.to_dict(),
            'tiers': [
                {**asdict(t), 'tier': t.tier.value} for t in self.tiers
            ],
            'exits': {
                'poll_interval': self.exits.poll_interval,
                'trailing_activation_percent': self.exits.trailing_activation_percent,
                'trailing_retrace_percent': self.exits.trailing_retrace_percent,
                'momentum_fade_min_pnl': self.exits.momentum_fade_min_pnl,
                'momentum_fade_sell_percent': self.exits.momentum_fade_sell_percent,
            },
            'sizing': asdict(self.sizing),
            'optimizer': asdict(self.optimizer),
            'loops': asdict(self.loops),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AutoTraderConfig':
        """Build a config from plain sections; unknown keys are rejected."""
        config = cls()
        sections = {
            'scoring': config.scoring,
            'router': config.router,
            'exits': config.exits,
            'sizing': config.sizing,
            'optimizer': config.optimizer,
            'loops': config.loops,
        }
        for key, value in data.items():
            if key in ('capital_sol', 'paper_mode'):
                setattr(config, key, value)
            elif key in sections:
                target = sections[key]
                for name, item in value.items():
                    if not hasattr(target, name) or name in ('time_decay', 'trusted_validator_tiers'):
                        raise ConfigError(f"Unknown setting {key}.{name}")
                    if name == 'min_prediction_confidence':
                        item = Confidence(item)
                    setattr(target, name, item)
            else:
                raise ConfigError(f"Unknown config section: {key}")
        config.scoring.validate()
        return config

    @classmethod
    def from_file(cls, path: str) -> 'AutoTraderConfig':
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot load config {path}: {e}") from e
        return cls.from_dict(data)


# Default configuration
DEFAULT_CONFIG = AutoTraderConfig()


# Learning mode: predictor gate bypassed, looser early gates
DATA_COLLECTION_CONFIG = AutoTraderConfig(
    router=RouterConfig(data_collection_mode=True),
)


# Conservative config
CONSERVATIVE_CONFIG = AutoTraderConfig(
    router=RouterConfig(
        early_min_momentum=70.0,
        early_min_safety=80.0,
        proven_min_win_probability=55.0,
        max_warnings=2,
    ),
    sizing=SizingConfig(
        base_position_percent=5.0,
        max_position_percent=10.0,
        max_open_positions=3,
    ),
)
