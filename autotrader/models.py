"""
Trading Models - Shared Data Structures
=======================================

All data structures passed between the scorer, router, sizer,
executor and position manager.

Snapshots, scores and signals are frozen: every evaluation builds new
ones. Only Position is mutable, and only the position manager mutates it.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple
from enum import Enum
import time
import uuid


class Recommendation(Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    NEUTRAL = "NEUTRAL"
    AVOID = "AVOID"
    STRONG_AVOID = "STRONG_AVOID"


class RiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Confidence(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return {"LOW": 0, "MEDIUM": 1, "HIGH": 2}[self.value]


class SignalTrack(Enum):
    PROVEN_RUNNER = "PROVEN_RUNNER"
    EARLY_QUALITY = "EARLY_QUALITY"


class SignalType(Enum):
    BUY = "BUY"
    DISCOVERY = "DISCOVERY"
    KOL_VALIDATION = "KOL_VALIDATION"


class ValidatorTier(Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"


class SignalCategory(Enum):
    """Conviction bucket; selects the time-decay rule for a position."""
    ULTRA_CONVICTION = "ULTRA_CONVICTION"
    HIGH_CONVICTION = "HIGH_CONVICTION"
    SCORE_90_PLUS = "SCORE_90_PLUS"
    KOL_VALIDATION = "KOL_VALIDATION"
    STANDARD = "STANDARD"


class MarketCapTier(Enum):
    MICRO = "MICRO"
    RISING = "RISING"
    EMERGING = "EMERGING"
    GRADUATED = "GRADUATED"
    ESTABLISHED = "ESTABLISHED"
    UNKNOWN = "UNKNOWN"


class PositionStatus(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ExitAction(Enum):
    NONE = "NONE"
    STOP_LOSS = "STOP_LOSS"
    TIME_DECAY_STOP = "TIME_DECAY_STOP"
    TRAILING_STOP = "TRAILING_STOP"
    MOMENTUM_FADE = "MOMENTUM_FADE"
    TAKE_PROFIT_1 = "TAKE_PROFIT_1"
    TAKE_PROFIT_2 = "TAKE_PROFIT_2"
    MANUAL = "MANUAL"


class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


# =============================================================================
# Collaborator data
# =============================================================================

@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time market data for one asset. Replaced wholesale each fetch."""
    address: str
    ticker: str
    price: float
    market_cap: float
    volume_24h: float
    liquidity_pool: float
    holder_count: int
    top10_concentration: float     # Percent of supply held by top 10 wallets
    age_minutes: float
    name: str = ""
    timestamp: float = field(default_factory=time.time)

    @property
    def volume_market_cap_ratio(self) -> float:
        if self.market_cap <= 0:
            return 0.0
        return self.volume_24h / self.market_cap

    @property
    def liquidity_ratio(self) -> float:
        if self.market_cap <= 0:
            return 0.0
        return self.liquidity_pool / self.market_cap

    def to_dict(self) -> dict:
        return {
            'address': self.address,
            'ticker': self.ticker,
            'price': self.price,
            'market_cap': self.market_cap,
            'volume_24h': self.volume_24h,
            'liquidity_pool': self.liquidity_pool,
            'holder_count': self.holder_count,
            'top10_concentration': self.top10_concentration,
            'age_minutes': self.age_minutes,
        }


@dataclass(frozen=True)
class SafetyResult:
    """Safety detector output. Any blocking flag vetoes the asset."""
    score: float
    blocking_flags: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def is_blocked(self) -> bool:
        return len(self.blocking_flags) > 0


@dataclass(frozen=True)
class BundleRisk:
    """Bundle/insider detector output. Higher risk_score is worse."""
    risk_score: float
    risk_level: RiskLevel
    flags: Tuple[str, ...] = ()

    @property
    def safety_score(self) -> float:
        return max(0.0, min(100.0, 100.0 - self.risk_score))


@dataclass(frozen=True)
class MomentumReading:
    """Short-window order flow used for scoring and momentum-fade exits."""
    score: float
    buys_5m: int = 0
    sells_5m: int = 0
    volume_acceleration: float = 0.0    # Negative = volume slowing
    flags: Tuple[str, ...] = ()

    @property
    def sell_buy_ratio(self) -> float:
        if self.buys_5m <= 0:
            return float('inf') if self.sells_5m > 0 else 0.0
        return self.sells_5m / self.buys_5m

    @property
    def buy_sell_ratio(self) -> float:
        if self.sells_5m <= 0:
            return float(self.buys_5m) if self.buys_5m > 0 else 1.0
        return self.buys_5m / self.sells_5m

    @property
    def unique_buyers(self) -> int:
        return self.buys_5m


NEUTRAL_MOMENTUM = MomentumReading(score=50.0, flags=('NO_MOMENTUM_DATA',))


@dataclass(frozen=True)
class ValidatorEndorsement:
    """Third-party curator endorsement of an asset."""
    source: str
    tier: ValidatorTier
    endorsed_at: float = field(default_factory=time.time)


# =============================================================================
# Scores and predictions
# =============================================================================

@dataclass(frozen=True)
class ComponentScores:
    momentum: float
    safety: float
    bundle_safety: float
    market_structure: float
    timing: float

    def to_dict(self) -> dict:
        return {
            'momentum': self.momentum,
            'safety': self.safety,
            'bundle_safety': self.bundle_safety,
            'market_structure': self.market_structure,
            'timing': self.timing,
        }


@dataclass(frozen=True)
class OnChainScore:
    """Composed on-chain quality score. Recomputed every evaluation."""
    total: float
    components: ComponentScores
    recommendation: Recommendation
    risk_level: RiskLevel
    confidence: Confidence
    bullish_signals: Tuple[str, ...] = ()
    bearish_signals: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            'total': self.total,
            'components': self.components.to_dict(),
            'recommendation': self.recommendation.value,
            'risk_level': self.risk_level.value,
            'confidence': self.confidence.value,
            'bullish_signals': list(self.bullish_signals),
            'bearish_signals': list(self.bearish_signals),
            'warnings': list(self.warnings),
        }


# Factor names shared by the optimizer, the predictor and outcome records
FEATURE_NAMES = (
    'momentum_score',
    'onchain_score',
    'safety_score',
    'bundle_risk_score',
    'liquidity',
    'token_age_minutes',
    'holder_count',
    'top10_concentration',
    'buy_sell_ratio',
    'unique_buyers',
    'market_cap',
    'volume_market_cap_ratio',
)


@dataclass(frozen=True)
class SignalFeatures:
    """Feature vector handed to the win predictor and stored with outcomes."""
    momentum_score: float
    onchain_score: float
    safety_score: float
    bundle_risk_score: float
    liquidity: float
    token_age_minutes: float
    holder_count: int
    top10_concentration: float
    buy_sell_ratio: float
    unique_buyers: int
    market_cap: float
    volume_market_cap_ratio: float

    def to_dict(self) -> Dict[str, float]:
        return {name: float(getattr(self, name)) for name in FEATURE_NAMES}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignalFeatures':
        return cls(**{name: data.get(name, 0) for name in FEATURE_NAMES})


@dataclass(frozen=True)
class WinPrediction:
    probability: float                  # 0-100
    confidence: Confidence
    size_multiplier: float
    risk_factors: Tuple[str, ...] = ()


# =============================================================================
# Signals
# =============================================================================

@dataclass(frozen=True)
class TakeProfitLevel:
    price: float
    percent: float          # Gain from entry that triggers this level
    sell_percent: float     # Share of the remaining position sold when hit


@dataclass(frozen=True)
class Signal:
    """Accepted trade signal. Immutable once created."""
    address: str
    ticker: str
    track: SignalTrack
    signal_type: SignalType
    category: SignalCategory
    tier: MarketCapTier
    entry_price: float
    entry_low: float
    entry_high: float
    stop_loss_price: float
    stop_loss_percent: float            # Negative, e.g. -40
    take_profits: Tuple[TakeProfitLevel, ...]
    position_size_percent: float
    max_hold_hours: float
    score: OnChainScore
    features: SignalFeatures
    prediction: Optional[WinPrediction] = None
    validator: Optional[ValidatorEndorsement] = None
    warnings: Tuple[str, ...] = ()
    generated_at: float = field(default_factory=time.time)
    expires_at: float = 0.0
    signal_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            'signal_id': self.signal_id,
            'address': self.address,
            'ticker': self.ticker,
            'track': self.track.value,
            'signal_type': self.signal_type.value,
            'category': self.category.value,
            'tier': self.tier.value,
            'entry_price': self.entry_price,
            'stop_loss_percent': self.stop_loss_percent,
            'take_profits': [
                {'price': tp.price, 'percent': tp.percent, 'sell_percent': tp.sell_percent}
                for tp in self.take_profits
            ],
            'position_size_percent': self.position_size_percent,
            'max_hold_hours': self.max_hold_hours,
            'score': self.score.total,
            'win_probability': self.prediction.probability if self.prediction else None,
            'validator': self.validator.tier.value if self.validator else None,
            'generated_at': self.generated_at,
            'expires_at': self.expires_at,
        }


@dataclass(frozen=True)
class RoutingDecision:
    """Router verdict: a signal, or the gate that rejected the candidate."""
    accepted: bool
    reason: str
    signal: Optional[Signal] = None
    track: Optional[SignalTrack] = None
    score: Optional[OnChainScore] = None

    @classmethod
    def reject(cls, reason: str, track: Optional[SignalTrack] = None,
               score: Optional[OnChainScore] = None) -> 'RoutingDecision':
        return cls(accepted=False, reason=reason, track=track, score=score)

    @classmethod
    def accept(cls, signal: Signal) -> 'RoutingDecision':
        return cls(accepted=True, reason="accepted", signal=signal,
                   track=signal.track, score=signal.score)


# =============================================================================
# Execution
# =============================================================================

@dataclass
class Order:
    """Order handed to a swap route"""
    address: str
    side: OrderSide
    amount_sol: float = 0.0
    sell_percent: float = 0.0
    quantity: float = 0.0
    expected_price: float = 0.0
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    order_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])

    def to_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'address': self.address,
            'side': self.side.value,
            'amount_sol': self.amount_sol,
            'sell_percent': self.sell_percent,
            'quantity': self.quantity,
            'expected_price': self.expected_price,
            'timestamp': self.timestamp,
        }


@dataclass
class ExecutionResult:
    """Result of a buy or sell (paper or live)"""
    success: bool
    fill_price: float = 0.0
    quantity: float = 0.0
    sol_amount: float = 0.0
    signature: str = ""
    route: str = ""
    slippage: float = 0.0
    latency_ms: float = 0.0
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'fill_price': self.fill_price,
            'quantity': self.quantity,
            'sol_amount': self.sol_amount,
            'signature': self.signature,
            'route': self.route,
            'slippage': self.slippage,
            'latency_ms': self.latency_ms,
            'error': self.error,
            'timestamp': self.timestamp,
        }


# =============================================================================
# Positions
# =============================================================================

@dataclass
class Position:
    """
    Open position. Owned by the position book.

    peak_price is a high-water mark kept on the record itself and
    effective_stop_loss only ever moves up (tighter).
    """
    address: str
    ticker: str
    entry_price: float
    quantity: float
    sol_invested: float
    category: SignalCategory
    stop_loss_percent: float            # Base stop, negative percent
    take_profit_1: TakeProfitLevel
    take_profit_2: TakeProfitLevel
    entry_timestamp: float = field(default_factory=time.time)
    signal_id: str = ""
    features: Optional[SignalFeatures] = None
    current_price: float = 0.0
    peak_price: float = 0.0
    effective_stop_loss: Optional[float] = None
    initial_quantity: float = 0.0
    tp1_hit: bool = False
    tp2_hit: bool = False
    momentum_fade_hit: bool = False
    time_decay_applied: bool = False
    realized_sol: float = 0.0
    status: PositionStatus = PositionStatus.OPEN
    exit_reason: Optional[ExitAction] = None
    closed_at: Optional[float] = None
    position_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])

    def __post_init__(self):
        if self.current_price <= 0:
            self.current_price = self.entry_price
        if self.peak_price < self.current_price:
            self.peak_price = self.current_price
        if self.effective_stop_loss is None:
            self.effective_stop_loss = self.stop_loss_percent
        if self.initial_quantity <= 0:
            self.initial_quantity = self.quantity

    def update_price(self, price: float):
        """Record a new price; the peak never decreases."""
        self.current_price = price
        if price > self.peak_price:
            self.peak_price = price

    def tighten_stop(self, stop_percent: float) -> bool:
        """Raise the effective stop. Looser values are ignored."""
        if stop_percent > self.effective_stop_loss:
            self.effective_stop_loss = stop_percent
            return True
        return False

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    @property
    def pnl_percent(self) -> float:
        if self.entry_price <= 0:
            return 0.0
        return (self.current_price - self.entry_price) / self.entry_price * 100

    @property
    def peak_pnl_percent(self) -> float:
        if self.entry_price <= 0:
            return 0.0
        return (self.peak_price - self.entry_price) / self.entry_price * 100

    @property
    def hold_time_hours(self) -> float:
        return self.hold_hours_at(time.time())

    def hold_hours_at(self, now: float) -> float:
        return max(0.0, now - self.entry_timestamp) / 3600

    @property
    def current_value_sol(self) -> float:
        if self.initial_quantity <= 0:
            return 0.0
        remaining = self.quantity / self.initial_quantity
        return self.sol_invested * remaining * (1 + self.pnl_percent / 100)

    def to_dict(self) -> dict:
        return {
            'position_id': self.position_id,
            'address': self.address,
            'ticker': self.ticker,
            'entry_price': self.entry_price,
            'current_price': self.current_price,
            'peak_price': self.peak_price,
            'quantity': self.quantity,
            'sol_invested': self.sol_invested,
            'category': self.category.value,
            'effective_stop_loss': self.effective_stop_loss,
            'pnl_percent': self.pnl_percent,
            'peak_pnl_percent': self.peak_pnl_percent,
            'tp1_hit': self.tp1_hit,
            'tp2_hit': self.tp2_hit,
            'status': self.status.value,
            'exit_reason': self.exit_reason.value if self.exit_reason else None,
        }


@dataclass(frozen=True)
class ExitDecision:
    """Output of one exit-policy evaluation"""
    action: ExitAction
    sell_percent: float = 0.0
    reason: str = ""

    @property
    def should_sell(self) -> bool:
        return self.action != ExitAction.NONE and self.sell_percent > 0

    @property
    def is_full_exit(self) -> bool:
        return self.sell_percent >= 100


HOLD = ExitDecision(action=ExitAction.NONE, reason="hold")


@dataclass(frozen=True)
class ExitEvent:
    """Sell fill applied to a position; sent to the notifier."""
    position_id: str
    address: str
    ticker: str
    action: ExitAction
    sell_percent: float
    fill_price: float
    pnl_percent: float
    sol_received: float
    closed: bool
    reason: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            'position_id': self.position_id,
            'address': self.address,
            'ticker': self.ticker,
            'action': self.action.value,
            'sell_percent': self.sell_percent,
            'fill_price': self.fill_price,
            'pnl_percent': self.pnl_percent,
            'sol_received': self.sol_received,
            'closed': self.closed,
            'reason': self.reason,
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class SignalOutcome:
    """Completed trade with the factor values it was entered on."""
    signal_id: str
    address: str
    won: bool
    pnl_percent: float
    features: Dict[str, float]
    closed_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            'signal_id': self.signal_id,
            'address': self.address,
            'won': self.won,
            'pnl_percent': self.pnl_percent,
            'features': dict(self.features),
            'closed_at': self.closed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignalOutcome':
        return cls(
            signal_id=data.get('signal_id', ''),
            address=data.get('address', ''),
            won=bool(data['won']),
            pnl_percent=float(data.get('pnl_percent', 0.0)),
            features={k: float(v) for k, v in data.get('features', {}).items()},
            closed_at=float(data.get('closed_at', time.time())),
        )
