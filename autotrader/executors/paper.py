"""
Paper Route - Simulated Swap Execution
======================================

Simulates fills with a liquidity-aware slippage model so paper results
stay close to what a live route would report.
"""

import asyncio
import random
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from ..interfaces import SwapRoute
from ..models import ExecutionResult, Order, OrderSide


@dataclass
class SlippageStats:
    """Running slippage statistics"""
    total_trades: int = 0
    total_slippage: float = 0.0
    max_slippage: float = 0.0
    min_slippage: float = 1.0

    @property
    def avg_slippage(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.total_slippage / self.total_trades


class SlippageModel:
    """
    Slippage from order size relative to pool depth.

    Slippage depends on:
    1. Order size relative to liquidity
    2. Network congestion
    3. Random market impact
    """

    def __init__(
        self,
        base_slippage: float = 0.005,      # 0.5% base
        impact_factor: float = 0.05,        # 5% per 100% of liquidity
        congestion_factor: float = 0.01,    # 1% additional during congestion
        randomness: float = 0.002,          # +/- 0.2% noise
        rng: Optional[random.Random] = None,
    ):
        self.base_slippage = base_slippage
        self.impact_factor = impact_factor
        self.congestion_factor = congestion_factor
        self.randomness = randomness
        self.rng = rng or random.Random()
        self.stats = SlippageStats()

    def estimate(
        self,
        order_size_sol: float,
        liquidity_sol: float = 100.0,
        is_congested: bool = False,
    ) -> float:
        """
        Estimate slippage for an order.

        Returns:
            Estimated slippage as decimal (0.01 = 1%)
        """
        slippage = self.base_slippage

        liquidity_ratio = order_size_sol / max(liquidity_sol, 0.1)
        slippage += liquidity_ratio * self.impact_factor

        if is_congested:
            slippage += self.congestion_factor

        if self.randomness > 0:
            slippage += self.rng.gauss(0, self.randomness)

        slippage = max(0.001, min(0.15, slippage))

        self.stats.total_trades += 1
        self.stats.total_slippage += slippage
        self.stats.max_slippage = max(self.stats.max_slippage, slippage)
        self.stats.min_slippage = min(self.stats.min_slippage, slippage)

        return slippage


class PaperRoute(SwapRoute):
    """Simulated swap route."""

    def __init__(
        self,
        name: str = "paper",
        slippage_model: Optional[SlippageModel] = None,
        latency_ms: float = 100.0,
        failure_rate: float = 0.02,
        rng: Optional[random.Random] = None,
    ):
        self._name = name
        self.rng = rng or random.Random()
        self.slippage_model = slippage_model or SlippageModel(rng=self.rng)
        self.latency_ms = latency_ms
        self.failure_rate = failure_rate

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, order: Order) -> ExecutionResult:
        start_time = time.time()

        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

        if self.rng.random() < self.failure_rate:
            return ExecutionResult(
                success=False,
                error="Simulated transaction failure",
                route=self.name,
                latency_ms=(time.time() - start_time) * 1000,
            )

        if order.expected_price <= 0:
            return ExecutionResult(success=False, error="No reference price", route=self.name)

        slippage = self.slippage_model.estimate(
            order_size_sol=order.amount_sol or order.quantity * order.expected_price,
            liquidity_sol=order.context.get('liquidity_sol', 100.0),
            is_congested=order.context.get('is_congested', False),
        )

        if order.side == OrderSide.BUY:
            fill_price = order.expected_price * (1 + slippage)
            quantity = order.amount_sol / fill_price
            sol_amount = order.amount_sol
        else:
            fill_price = order.expected_price * (1 - slippage)
            quantity = order.quantity
            sol_amount = quantity * fill_price

        return ExecutionResult(
            success=True,
            fill_price=fill_price,
            quantity=quantity,
            sol_amount=sol_amount,
            signature=f"PAPER_{uuid.uuid4().hex[:16]}",
            route=self.name,
            slippage=slippage,
            latency_ms=(time.time() - start_time) * 1000,
        )
