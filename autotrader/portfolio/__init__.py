from .sizer import PositionSizer, PortfolioState, SizingDecision, SignalStrength

__all__ = ['PositionSizer', 'PortfolioState', 'SizingDecision', 'SignalStrength']
