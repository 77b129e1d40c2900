"""Candidate evaluation: dual-track routing and signal construction."""

from .router import SignalRouter, RouterFunnel, GENERIC_WARNINGS
from .builder import SignalBuilder, category_for, signal_type_for, build_features

__all__ = [
    'SignalRouter',
    'RouterFunnel',
    'GENERIC_WARNINGS',
    'SignalBuilder',
    'category_for',
    'signal_type_for',
    'build_features',
]
