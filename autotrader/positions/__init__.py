"""Open-position ownership and the exit state machine."""

from .book import PositionBook
from .policy import ExitPolicy
from .manager import PositionManager

__all__ = ['PositionBook', 'ExitPolicy', 'PositionManager']
