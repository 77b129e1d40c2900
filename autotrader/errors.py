"""Domain exceptions."""


class AutoTraderError(Exception):
    """Base class for trading-core errors"""


class PositionError(AutoTraderError):
    """Duplicate open position, or an operation on an unknown/closed one"""
