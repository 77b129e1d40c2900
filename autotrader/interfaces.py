"""
Collaborator Interfaces
=======================

Abstract contracts for everything the trading core consumes but does
not implement: market data, safety and bundle detectors, order flow,
validators, the win predictor, swap routes and the notification sink.

Usage:
    from autotrader.interfaces import MetricsProvider

    class MyProvider(MetricsProvider):
        async def fetch_metrics(self, address):
            ...
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

from .models import (
    MetricsSnapshot,
    SafetyResult,
    BundleRisk,
    MomentumReading,
    ValidatorEndorsement,
    SignalFeatures,
    WinPrediction,
    Order,
    ExecutionResult,
    Signal,
    ExitEvent,
    SignalOutcome,
)


class MetricsProvider(ABC):
    """Price/liquidity/holder data for one asset."""

    @abstractmethod
    async def fetch_metrics(self, address: str) -> Optional[MetricsSnapshot]:
        """Return a fresh snapshot, or None when the asset is unknown."""
        pass

    async def fetch_price(self, address: str) -> Optional[float]:
        snapshot = await self.fetch_metrics(address)
        return snapshot.price if snapshot else None


class SafetyChecker(ABC):

    @abstractmethod
    async def check_safety(self, address: str) -> Optional[SafetyResult]:
        pass


class BundleAnalyzer(ABC):

    @abstractmethod
    async def check_bundle_risk(self, address: str) -> Optional[BundleRisk]:
        pass


class MomentumAnalyzer(ABC):

    @abstractmethod
    async def analyze_momentum(self, address: str) -> Optional[MomentumReading]:
        pass


class MarketStructureScorer(ABC):
    """Scores liquidity depth and holder distribution, 0-100."""

    @abstractmethod
    def score(self, metrics: MetricsSnapshot) -> float:
        pass


class ValidatorSource(ABC):
    """Reputation-tiered third-party endorsements (curators, KOLs)."""

    @abstractmethod
    async def get_endorsement(self, address: str) -> Optional[ValidatorEndorsement]:
        pass


class WinPredictor(ABC):

    @abstractmethod
    async def predict_win(self, features: SignalFeatures) -> WinPrediction:
        pass

    def needs_retrain(self) -> bool:
        """Static predictors never ask for retraining."""
        return False

    def train(self, outcomes: Sequence[SignalOutcome]) -> bool:
        return False


class SwapRoute(ABC):
    """One way of getting an order filled (aggregator, AMM, paper)."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def execute(self, order: Order) -> ExecutionResult:
        pass


class Notifier(ABC):
    """Fire-and-forget presentation sink."""

    @abstractmethod
    async def notify(self, event: Union[Signal, ExitEvent]):
        pass


class CandidateSource(ABC):
    """Token-discovery layer: raw candidate addresses."""

    @abstractmethod
    async def get_candidates(self) -> List[str]:
        pass


class OutcomeSource(ABC):
    """Completed (won/lost) signals for threshold learning."""

    @abstractmethod
    def get_outcomes(self) -> List[SignalOutcome]:
        pass
