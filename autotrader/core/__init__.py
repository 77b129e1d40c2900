"""
Core infrastructure: TTL cache, loop ticker, trading context.

Usage:
    from autotrader.core import TTLCache, Ticker, TradingContext
"""
from .cache import TTLCache
from .scheduler import Ticker
from .context import TradingContext

__all__ = ['TTLCache', 'Ticker', 'TradingContext']
