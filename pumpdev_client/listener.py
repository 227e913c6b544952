"""
Real-time event feed over the PumpDev WebSocket.

The listener keeps the set of requested subscriptions, sends the control frames once
connected, and routes incoming JSON frames to an EventHandler: lifecycle frames by
their ``type`` field, trade frames by ``txType``. Anything else is ignored. There is no
acknowledgement tracking; a subscription is considered active once its frame is sent.
"""

import asyncio
import enum
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import ValidationError

from .models import TradeEvent

logger = get_logger(__name__)

SUBSCRIBE_NEW_TOKEN = "subscribeNewToken"
SUBSCRIBE_TOKEN_TRADE = "subscribeTokenTrade"
SUBSCRIBE_ACCOUNT_TRADE = "subscribeAccountTrade"

UNSUBSCRIBE = {
    SUBSCRIBE_NEW_TOKEN: "unsubscribeNewToken",
    SUBSCRIBE_TOKEN_TRADE: "unsubscribeTokenTrade",
    SUBSCRIBE_ACCOUNT_TRADE: "unsubscribeAccountTrade",
}


class ListenerState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"


class EventHandler:
    """Callbacks for feed events. The defaults do nothing; override what you need."""

    async def on_connected(self, message: Optional[str]) -> None:
        pass

    async def on_subscribed(self, method: Optional[str], keys: Optional[List[str]]) -> None:
        pass

    async def on_unsubscribed(self, method: Optional[str]) -> None:
        pass

    async def on_error(self, message: Optional[str]) -> None:
        pass

    async def on_new_token(self, event: TradeEvent) -> None:
        pass

    async def on_buy(self, event: TradeEvent) -> None:
        pass

    async def on_sell(self, event: TradeEvent) -> None:
        pass


def _fmt_sol(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "?"


class ConsoleEventHandler(EventHandler):
    """Prints every event to stdout."""

    def __init__(self, out: Callable[..., None] = print):
        self.out = out

    async def on_connected(self, message):
        self.out(f"Connection confirmed: {message}")

    async def on_subscribed(self, method, keys):
        self.out(f"Subscribed to {method}: {keys or 'all'}")

    async def on_unsubscribed(self, method):
        self.out(f"Unsubscribed from {method}")

    async def on_error(self, message):
        self.out(f"Error: {message}")

    async def on_new_token(self, event):
        timestamp = datetime.now(timezone.utc).isoformat()
        self.out(f"\n[{timestamp}] NEW TOKEN")
        self.out(f"   Name: {event.name} ({event.symbol})")
        self.out(f"   Mint: {event.mint}")
        self.out(f"   Creator: {event.trader_public_key}")
        self.out(f"   Initial Buy: {event.sol_amount} SOL")
        self.out(f"   Market Cap: {_fmt_sol(event.market_cap_sol)} SOL")
        self.out(f"   https://pump.fun/{event.mint}")

    async def on_buy(self, event):
        self._print_trade("BUY", "+", event)

    async def on_sell(self, event):
        self._print_trade("SELL", "-", event)

    def _print_trade(self, label: str, sign: str, event: TradeEvent) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        tokens = f"{event.token_amount:,.0f}" if event.token_amount is not None else "?"
        self.out(f"\n[{timestamp}] {label}")
        self.out(f"   Token: {event.mint}")
        self.out(f"   Trader: {event.trader_public_key}")
        self.out(f"   Amount: {sign}{event.sol_amount} SOL")
        self.out(f"   Tokens: {tokens}")
        self.out(f"   Market Cap: {_fmt_sol(event.market_cap_sol)} SOL")


class EventListener:
    def __init__(
        self,
        url: str,
        handler: Optional[EventHandler] = None,
        connect: Callable[..., Any] = websockets.connect,
        reconnect: bool = False,
        reconnect_delay: float = 5.0,
        close_delay: float = 0.5,
    ):
        self.url = url
        self.handler = handler or ConsoleEventHandler()
        self.reconnect = reconnect
        self.reconnect_delay = reconnect_delay
        self.close_delay = close_delay
        self.state = ListenerState.DISCONNECTED
        # subscribe method -> keys (None for the unscoped new-token feed); last request wins
        self.subscriptions: Dict[str, Optional[List[str]]] = {}
        self._connect = connect
        self._ws = None
        self._closing = False
        self._stopped = asyncio.Event()

    # --- Subscriptions ---

    async def subscribe_new_token(self) -> None:
        await self._subscribe(SUBSCRIBE_NEW_TOKEN, None)

    async def subscribe_token_trade(self, mints: Iterable[str]) -> None:
        await self._subscribe(SUBSCRIBE_TOKEN_TRADE, list(mints))

    async def subscribe_account_trade(self, wallets: Iterable[str]) -> None:
        await self._subscribe(SUBSCRIBE_ACCOUNT_TRADE, list(wallets))

    async def _subscribe(self, method: str, keys: Optional[List[str]]) -> None:
        if keys is not None and not keys:
            return
        self.subscriptions[method] = keys
        if self._ws is not None:
            await self._send_control(method, keys)
            self.state = ListenerState.SUBSCRIBED

    async def unsubscribe(self, method: str) -> None:
        if method not in UNSUBSCRIBE:
            raise ValueError(f"Unknown subscription method {method!r}, expected one of {sorted(UNSUBSCRIBE)}")
        keys = self.subscriptions.pop(method, None)
        if self._ws is not None:
            await self._send_control(UNSUBSCRIBE[method], keys)
        if not self.subscriptions and self.state is ListenerState.SUBSCRIBED:
            self.state = ListenerState.CONNECTED

    async def unsubscribe_all(self) -> None:
        for method in list(self.subscriptions):
            await self.unsubscribe(method)

    async def _send_control(self, method: str, keys: Optional[List[str]] = None) -> None:
        frame: Dict[str, Any] = {"method": method}
        if keys:
            frame["keys"] = keys
        logger.info(f"Sending {method}" + (f" for {len(keys)} keys" if keys else ""))
        await self._ws.send(json.dumps(frame))

    # --- Dispatch ---

    async def dispatch(self, raw: Any) -> Optional[str]:
        """Routes one frame to the handler. Returns the event kind handled, or None if ignored."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Parse error: {e}")
            return None
        if not isinstance(message, dict):
            return None

        msg_type = message.get("type")
        if msg_type == "connected":
            await self.handler.on_connected(message.get("message"))
            return msg_type
        if msg_type == "subscribed":
            await self.handler.on_subscribed(message.get("method"), message.get("keys"))
            return msg_type
        if msg_type == "unsubscribed":
            await self.handler.on_unsubscribed(message.get("method"))
            return msg_type
        if msg_type == "error":
            logger.error(f"Feed error: {message.get('message')}")
            await self.handler.on_error(message.get("message"))
            return msg_type

        callbacks = {
            "create": self.handler.on_new_token,
            "buy": self.handler.on_buy,
            "sell": self.handler.on_sell,
        }
        callback = callbacks.get(message.get("txType"))
        if callback is None:
            return None
        try:
            event = TradeEvent.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed {message.get('txType')} event: {e}")
            return None
        await callback(event)
        return event.tx_type

    # --- Connection ---

    async def listen(self, ws) -> None:
        """Sends the pending subscriptions on ``ws`` and dispatches frames until it closes."""
        self._ws = ws
        self.state = ListenerState.CONNECTED
        logger.info(f"Connected to {self.url}")
        try:
            for method, keys in list(self.subscriptions.items()):
                await self._send_control(method, keys)
            if self.subscriptions:
                self.state = ListenerState.SUBSCRIBED

            async for raw in ws:
                try:
                    await self.dispatch(raw)
                except Exception as e:
                    logger.exception(f"Error handling event: {e}")
        except ConnectionClosed as e:
            logger.warning(f"Connection closed: {e}")
        finally:
            self._ws = None
            self.state = ListenerState.DISCONNECTED
            logger.info("WebSocket disconnected")

    async def run(self) -> None:
        """
        Connects and listens. Without ``reconnect`` a closed socket ends the session.

        ``shutdown()`` ends the loop at any point, including during the reconnect
        delay or while a connection is still being opened.
        """
        self._closing = False
        self._stopped.clear()
        while not self._closing:
            try:
                async with self._connect(self.url) as ws:
                    if self._closing:
                        logger.info("Shutdown requested while connecting")
                        return
                    await self.listen(ws)
            except (OSError, WebSocketException) as e:
                logger.error(f"WebSocket error: {e}")
            if self._closing or not self.reconnect:
                return
            logger.info(f"Reconnecting in {self.reconnect_delay}s...")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                pass

    async def shutdown(self) -> None:
        """Unsubscribes, waits ``close_delay`` and closes. Acknowledgements are not awaited."""
        self._closing = True
        self._stopped.set()
        ws = self._ws
        if ws is None:
            return
        logger.info("Closing connection...")
        await self.unsubscribe_all()
        await asyncio.sleep(self.close_delay)
        await ws.close()
