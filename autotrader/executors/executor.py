"""
Trade Executor - primary route with fallback.
==============================================

Every buy and sell goes to the primary swap route first. A failed fill
(or a route exception) is retried once on the fallback route; if that
fails too the result is a failed ExecutionResult carrying both errors,
and the caller must not create or mutate any position.

The circuit breaker only refuses buys; sells always reach the routes.

Usage:
    from autotrader.executors import TradeExecutor, PaperRoute

    executor = TradeExecutor(PaperRoute("aggregator"), PaperRoute("amm"))
    result = await executor.buy(address, 0.1, expected_price=price)
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..interfaces import SwapRoute
from ..models import ExecutionResult, Order, OrderSide

logger = logging.getLogger(__name__)


@dataclass
class ExecutionStats:
    """Track execution statistics for monitoring"""
    total_trades: int = 0
    successful_trades: int = 0
    failed_trades: int = 0
    fallback_fills: int = 0
    total_slippage: float = 0.0
    total_sol_spent: float = 0.0
    total_sol_received: float = 0.0
    consecutive_failures: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.successful_trades / self.total_trades

    @property
    def avg_slippage(self) -> float:
        if self.successful_trades == 0:
            return 0.0
        return self.total_slippage / self.successful_trades


class TradeExecutor:
    """Buy/sell through a primary route, falling back to a secondary one."""

    MAX_CONSECUTIVE_FAILURES = 5

    def __init__(
        self,
        primary: SwapRoute,
        fallback: Optional[SwapRoute] = None,
        max_log: int = 1000,
    ):
        self.primary = primary
        self.fallback = fallback
        self.stats = ExecutionStats()
        self.execution_log: List[Dict[str, Any]] = []
        self.max_log = max_log
        self.halted = False     # Circuit breaker

    async def buy(
        self,
        address: str,
        sol_amount: float,
        expected_price: float = 0.0,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        order = Order(
            address=address,
            side=OrderSide.BUY,
            amount_sol=sol_amount,
            expected_price=expected_price,
            context=context or {},
        )
        return await self.execute(order)

    async def sell(
        self,
        address: str,
        percent: float,
        quantity: float,
        expected_price: float = 0.0,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Sell `percent` of the held quantity."""
        order = Order(
            address=address,
            side=OrderSide.SELL,
            sell_percent=percent,
            quantity=quantity * min(percent, 100.0) / 100,
            expected_price=expected_price,
            context=context or {},
        )
        return await self.execute(order)

    async def execute(self, order: Order) -> ExecutionResult:
        if self.halted and order.side == OrderSide.BUY:
            return ExecutionResult(
                success=False,
                error="Executor halted due to consecutive failures; buys refused",
            )

        self.stats.total_trades += 1
        result = await self._try_route(self.primary, order)

        if not result.success and self.fallback is not None:
            logger.warning(
                f"{self.primary.name} failed for {order.side.value} {order.address[:8]} "
                f"({result.error}); trying {self.fallback.name}"
            )
            primary_error = result.error
            result = await self._try_route(self.fallback, order)
            if result.success:
                self.stats.fallback_fills += 1
            else:
                result.error = f"{self.primary.name}: {primary_error}; {self.fallback.name}: {result.error}"

        self._record(order, result)
        return result

    async def _try_route(self, route: SwapRoute, order: Order) -> ExecutionResult:
        start_time = time.time()
        try:
            result = await route.execute(order)
        except Exception as e:
            logger.error(f"{route.name} execution error: {e}")
            result = ExecutionResult(
                success=False,
                error=str(e),
                latency_ms=(time.time() - start_time) * 1000,
            )
        if not result.route:
            result.route = route.name
        return result

    def _record(self, order: Order, result: ExecutionResult):
        if result.success:
            self.stats.successful_trades += 1
            self.stats.total_slippage += result.slippage
            self.stats.consecutive_failures = 0
            if order.side == OrderSide.BUY:
                self.stats.total_sol_spent += result.sol_amount
            else:
                self.stats.total_sol_received += result.sol_amount
        else:
            self.stats.failed_trades += 1
            self.stats.consecutive_failures += 1
            logger.error(f"{order.side.value} {order.address[:8]} failed: {result.error}")
            if self.stats.consecutive_failures >= self.MAX_CONSECUTIVE_FAILURES:
                self.halted = True
                logger.error(f"CIRCUIT BREAKER: {self.MAX_CONSECUTIVE_FAILURES} consecutive failures")

        self.execution_log.append({
            'timestamp': time.time(),
            'order': order.to_dict(),
            'result': result.to_dict(),
        })
        if len(self.execution_log) > self.max_log:
            self.execution_log = self.execution_log[-self.max_log:]

    def reset_circuit_breaker(self):
        self.halted = False
        self.stats.consecutive_failures = 0
        logger.info("Circuit breaker reset")

    def get_stats(self) -> dict:
        return {
            'total_trades': self.stats.total_trades,
            'successful_trades': self.stats.successful_trades,
            'failed_trades': self.stats.failed_trades,
            'fallback_fills': self.stats.fallback_fills,
            'success_rate': self.stats.success_rate,
            'avg_slippage': self.stats.avg_slippage,
            'sol_spent': self.stats.total_sol_spent,
            'sol_received': self.stats.total_sol_received,
            'halted': self.halted,
        }
