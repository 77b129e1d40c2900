from .executor import TradeExecutor, ExecutionStats
from .paper import PaperRoute, SlippageModel, SlippageStats

__all__ = [
    'TradeExecutor',
    'ExecutionStats',
    'PaperRoute',
    'SlippageModel',
    'SlippageStats',
]
