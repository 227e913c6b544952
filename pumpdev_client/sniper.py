"""
New-token sniper.

Listens to the new-token feed and buys tokens that pass a few numeric filters
(market cap ceiling, minimum creator buy, optional creator whitelist), subject to a
concurrency limit and a cooldown after each confirmed buy.

Educational example only: automated trading carries significant financial risk.
"""

import asyncio
import time
from typing import Callable, List, Optional, Set

from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from .config import ClientContext
from .listener import EventHandler
from .models import TradeEvent
from .workflows import buy_token

logger = get_logger(__name__)


class SniperSettings(BaseModel):
    # Trade settings
    buy_amount_sol: float = 0.01
    slippage: float = 20
    priority_fee: float = 0.001
    # Filters
    max_market_cap_sol: float = 50
    min_initial_buy_sol: float = 0.5
    watch_creators: List[str] = Field(default_factory=list)  # empty = any creator
    # Safety
    cooldown_seconds: float = 5
    max_concurrent_buys: int = 1


class CriteriaResult(BaseModel):
    passed: bool
    reason: Optional[str] = None


def check_criteria(event: TradeEvent, settings: SniperSettings) -> CriteriaResult:
    market_cap = event.market_cap_sol
    if market_cap and market_cap > settings.max_market_cap_sol:
        return CriteriaResult(
            passed=False, reason=f"Market cap too high ({market_cap:.2f} > {settings.max_market_cap_sol})"
        )

    # Frames without solAmount are not filtered on it
    initial_buy = event.sol_amount
    if initial_buy is not None and initial_buy < settings.min_initial_buy_sol:
        return CriteriaResult(
            passed=False, reason=f"Initial buy too low ({initial_buy} < {settings.min_initial_buy_sol})"
        )

    if settings.watch_creators and event.trader_public_key not in settings.watch_creators:
        return CriteriaResult(passed=False, reason="Creator not in whitelist")

    return CriteriaResult(passed=True)


class SniperHandler(EventHandler):
    def __init__(
        self,
        ctx: ClientContext,
        settings: Optional[SniperSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ctx = ctx
        self.settings = settings or SniperSettings()
        self.clock = clock
        self.active_buys = 0
        self.last_buy_time: Optional[float] = None
        self.purchases: List[str] = []
        self._buys: Set[asyncio.Task] = set()

    async def on_connected(self, message):
        logger.info("Watching for new tokens...")

    async def on_new_token(self, event: TradeEvent) -> None:
        creator = (event.trader_public_key or "")[:8]
        logger.info(f"NEW: {event.name} ({event.symbol}) mint={event.mint} creator={creator}...")

        result = check_criteria(event, self.settings)
        if not result.passed:
            logger.info(f"Skip {event.mint}: {result.reason}")
            return

        if self.active_buys >= self.settings.max_concurrent_buys:
            logger.info(f"Skip {event.mint}: max concurrent buys reached")
            return

        if self.last_buy_time is not None:
            elapsed = self.clock() - self.last_buy_time
            if elapsed < self.settings.cooldown_seconds:
                logger.info(f"Skip {event.mint}: cooldown ({self.settings.cooldown_seconds - elapsed:.0f}s remaining)")
                return

        logger.info(f"{event.mint} matches criteria, buying {self.settings.buy_amount_sol} SOL")
        self.start_buy(event.mint)

    def start_buy(self, mint: str) -> asyncio.Task:
        """Runs the buy in the background so the feed keeps flowing while it is in flight."""
        self.active_buys += 1
        task = asyncio.create_task(self._buy(mint), name=f"buy-{mint}")
        self._buys.add(task)
        task.add_done_callback(self._buys.discard)
        return task

    async def execute_buy(self, mint: str) -> Optional[str]:
        self.active_buys += 1
        return await self._buy(mint)

    async def wait_for_buys(self) -> None:
        """Waits for every buy still in flight."""
        if self._buys:
            await asyncio.gather(*self._buys, return_exceptions=True)

    async def _buy(self, mint: str) -> Optional[str]:
        # active_buys is incremented by the caller before scheduling
        try:
            signature = await buy_token(
                self.ctx,
                mint,
                self.settings.buy_amount_sol,
                slippage=self.settings.slippage,
                priority_fee=self.settings.priority_fee,
                skip_preflight=True,
                max_retries=2,
            )
            if signature is not None:
                logger.info(f"SUCCESS! Bought {mint}: {signature}")
                self.last_buy_time = self.clock()
                self.purchases.append(mint)
            return signature
        except Exception as e:
            logger.error(f"Buy of {mint} failed: {e}")
            return None
        finally:
            self.active_buys -= 1
