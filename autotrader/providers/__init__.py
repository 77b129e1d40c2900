"""
HTTP data providers.

Usage:
    from autotrader.providers import DexScreenerClient, RugCheckClient
"""
from .dexscreener import DexScreenerClient, momentum_from_pair
from .rugcheck import RugCheckClient, safety_from_report, bundle_from_report

__all__ = [
    'DexScreenerClient',
    'momentum_from_pair',
    'RugCheckClient',
    'safety_from_report',
    'bundle_from_report',
]
