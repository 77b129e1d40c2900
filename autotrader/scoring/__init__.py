"""On-chain score composition."""

from .onchain import (
    OnChainScorer,
    SnapshotMarketStructureScorer,
    recommendation_for,
    timing_score,
    clamp_score,
)

__all__ = [
    'OnChainScorer',
    'SnapshotMarketStructureScorer',
    'recommendation_for',
    'timing_score',
    'clamp_score',
]
