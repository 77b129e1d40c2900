"""
Position Book - the only owner of Position records.

At most one OPEN position per address. Closing removes the position
from the open index, which releases every per-position tracking state.
"""
import logging
from typing import Dict, List, Optional

from ..errors import PositionError
from ..models import Position

logger = logging.getLogger(__name__)


class PositionBook:

    def __init__(self, max_closed: int = 1000):
        self._open: Dict[str, Position] = {}
        self.closed: List[Position] = []
        self.max_closed = max_closed

    def has_open(self, address: str) -> bool:
        return address in self._open

    def get(self, address: str) -> Optional[Position]:
        return self._open.get(address)

    def open_positions(self) -> List[Position]:
        return list(self._open.values())

    def add(self, position: Position):
        if position.address in self._open:
            raise PositionError(f"Position already open for {position.address}")
        self._open[position.address] = position

    def remove(self, address: str) -> Position:
        position = self._open.pop(address, None)
        if position is None:
            raise PositionError(f"No open position for {address}")
        self.closed.append(position)
        if len(self.closed) > self.max_closed:
            self.closed = self.closed[-self.max_closed:]
        return position

    def __len__(self) -> int:
        return len(self._open)

    def summary(self) -> List[dict]:
        return [p.to_dict() for p in self._open.values()]
