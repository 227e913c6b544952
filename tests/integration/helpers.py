"""Test doubles and transaction builders shared by the integration tests."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union
from unittest.mock import AsyncMock

import base58
import httpx
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

API_URL = "https://pumpdev.test"
JITO_ENDPOINTS = [
    "https://ny.jito.test/api/v1/bundles",
    "https://tokyo.jito.test/api/v1/bundles",
]


# --- Transaction helpers ---

def make_unsigned_tx(signers: List[Keypair]) -> VersionedTransaction:
    """
    A real v0 transaction whose required signers are exactly ``signers`` (payer first),
    with placeholder signatures, like the ones the API returns.
    """
    payer = signers[0].pubkey()
    instructions = [transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1))]
    for extra in signers[1:]:
        # Moving lamports out of an account makes it a required signer
        instructions.append(transfer(TransferParams(from_pubkey=extra.pubkey(), to_pubkey=payer, lamports=1)))
    message = MessageV0.try_compile(payer, instructions, [], Hash.default())
    required = message.header.num_required_signatures
    return VersionedTransaction.populate(message, [Signature.default()] * required)


def b58_tx(tx: VersionedTransaction) -> str:
    return base58.b58encode(bytes(tx)).decode("ascii")


def sent_transactions(mock_rpc: AsyncMock) -> List[VersionedTransaction]:
    return [VersionedTransaction.from_bytes(call.args[0]) for call in mock_rpc.send_raw_transaction.await_args_list]


async def settle(rounds: int = 10) -> None:
    """Lets pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# --- Fake PumpDev HTTP API ---

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeApi:
    """Routes requests by full URL or by path; records every request it sees."""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, key: str, route: Route) -> None:
        self.routes[key] = route

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url)) or self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": f"no route for {request.url}"})
        if callable(route):
            return route(request)
        # Fresh copy per request so one route can answer repeatedly
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def calls(self, key: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == key or r.url.path == key]

    def bodies(self, key: str) -> List[Any]:
        return [json.loads(r.content) for r in self.calls(key)]


# --- Manual clock ---

class ManualClock:
    """Injectable ``sleep`` whose time only moves when ``advance`` is awaited."""

    def __init__(self):
        self.now = 0.0
        self._sleepers: List = []

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + delay, future))
        await future

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [s for s in self._sleepers if s[0] <= self.now]
        self._sleepers = [s for s in self._sleepers if s[0] > self.now]
        for _, future in due:
            if not future.done():
                future.set_result(None)
        await settle()


# --- Scripted WebSocket ---

class FakeWebSocket:
    """
    Yields the scripted frames, then stays open until ``close`` is called.
    With ``enter_gate`` set, entering the connection blocks until the gate opens,
    standing in for a handshake still in progress.
    """

    def __init__(self, frames: List[str] = (), hold_open: bool = True, enter_gate: Optional[asyncio.Event] = None):
        self.frames = list(frames)
        self.hold_open = hold_open
        self.enter_gate = enter_gate
        self.sent: List[dict] = []
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self._closed.set()

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield frame
        if self.hold_open:
            await self._closed.wait()

    async def __aenter__(self):
        if self.enter_gate is not None:
            await self.enter_gate.wait()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
