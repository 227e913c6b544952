"""
Integration Tests for the MCP Tool Surface

This module exercises the MCP tools in pumpdev_client.server by calling them
directly, the way FastMCP dispatches them, with ``open_context`` patched to return a
ClientContext wired to the fake PumpDev API and a mocked RPC client.

Test Coverage:
- Successful buy, sell, claim, distribute and transfer tool calls
- Address validation before any API call is made
- Human-readable failure messages when the API rejects a request
- Configuration errors surfaced as "Error: ..." strings
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pumpdev_client import api, server
from pumpdev_client.config import ClientContext
from pumpdev_client.signer import SignerRegistry

from .helpers import FakeApi, make_unsigned_tx

# Mark all tests in this module as asyncio
pytestmark = pytest.mark.asyncio

MINT = str(Pubkey.new_unique())


@pytest.fixture
def patched_server(monkeypatch, client_context: ClientContext):
    """Points every tool at the test ClientContext. Each test may make only one tool call, since the context closes its clients on exit."""
    monkeypatch.setattr(server, "open_context", lambda: client_context)
    return server


def tx_response(signers) -> httpx.Response:
    return httpx.Response(200, content=bytes(make_unsigned_tx(signers)))


# --- Trading tools ---

async def test_buy_token_tool_success(patched_server, mock_context: MagicMock, fake_api: FakeApi, wallet: Keypair):
    fake_api.add(api.TRADE_LOCAL, tx_response([wallet]))

    result = await patched_server.buy_token(context=mock_context, mint=MINT, amount_sol=0.1, slippage=15, priority_fee=0.0005)

    assert isinstance(result, str)
    assert result.startswith(f"Bought 0.1 SOL of {MINT}")
    assert "https://solscan.io/tx/" in result


async def test_buy_token_tool_invalid_mint(patched_server, mock_context, fake_api):
    result = await patched_server.buy_token(context=mock_context, mint="not-a-mint", amount_sol=0.1, slippage=15, priority_fee=0.0005)

    assert result == "Invalid mint address format."
    assert fake_api.requests == []  # validation happens before any API call


async def test_buy_token_tool_api_failure(patched_server, mock_context, fake_api, mock_rpc: AsyncMock):
    fake_api.add(api.TRADE_LOCAL, httpx.Response(500, json={"error": "Internal error"}))

    result = await patched_server.buy_token(context=mock_context, mint=MINT, amount_sol=0.1, slippage=15, priority_fee=0.0005)

    assert "failed" in result
    mock_rpc.send_raw_transaction.assert_not_awaited()


async def test_sell_token_tool_percentage(patched_server, mock_context, fake_api, wallet):
    fake_api.add(api.TRADE_LOCAL, tx_response([wallet]))

    result = await patched_server.sell_token(context=mock_context, mint=MINT, amount="25%", slippage=15, priority_fee=0.0005)

    assert result.startswith(f"Sold 25% of {MINT}")
    assert fake_api.bodies(api.TRADE_LOCAL)[0]["amount"] == "25%"


async def test_sell_token_tool_exact_amount(patched_server, mock_context, fake_api, wallet):
    fake_api.add(api.TRADE_LOCAL, tx_response([wallet]))

    await patched_server.sell_token(context=mock_context, mint=MINT, amount="1500", slippage=15, priority_fee=0.0005)

    assert fake_api.bodies(api.TRADE_LOCAL)[0]["amount"] == 1500


async def test_sell_token_tool_invalid_amount(patched_server, mock_context):
    result = await patched_server.sell_token(context=mock_context, mint=MINT, amount="lots", slippage=15, priority_fee=0.0005)
    assert result == "Invalid mint address or amount."


# --- Fee tools ---

async def test_claim_fees_tool(patched_server, mock_context, fake_api, mock_rpc, wallet):
    fake_api.add(api.CLAIM_ACCOUNT, tx_response([wallet]))
    mock_rpc.get_balance.side_effect = [MagicMock(value=2_000_000_000), MagicMock(value=2_500_000_000)]

    result = await patched_server.claim_fees(context=mock_context, mint=None)

    assert result.startswith("Claimed 0.5000 SOL.")
    assert "Balance now 2.5000 SOL" in result


async def test_claim_fees_tool_nothing_claimable(patched_server, mock_context, fake_api):
    fake_api.add(api.CLAIM_ACCOUNT, httpx.Response(400, json={"error": "No claimable fees"}))

    result = await patched_server.claim_fees(context=mock_context, mint=MINT)

    assert result.startswith("No fees were claimed")


async def test_distribute_fees_tool_invalid_mint(patched_server, mock_context):
    result = await patched_server.distribute_fees(context=mock_context, mint="bad")
    assert result == "Invalid mint address format."


async def test_distribute_fees_tool(patched_server, mock_context, fake_api, wallet):
    fake_api.add(api.CLAIM_DISTRIBUTE, tx_response([wallet]))

    result = await patched_server.distribute_fees(context=mock_context, mint=MINT)

    assert result.startswith(f"Fees for {MINT} distributed.")


# --- Transfer tools ---

async def test_transfer_sol_tool(patched_server, mock_context, fake_api, wallet):
    to_address = str(Pubkey.new_unique())
    fake_api.add(api.TRANSFER, tx_response([wallet]))

    result = await patched_server.transfer_sol(context=mock_context, to_address=to_address, amount_sol=0.25)

    assert result.startswith(f"Sent 0.25 SOL to {to_address}.")


async def test_transfer_sol_tool_rejects_non_positive_amount(patched_server, mock_context, fake_api):
    result = await patched_server.transfer_sol(context=mock_context, to_address=str(Pubkey.new_unique()), amount_sol=0)

    assert result == "Error: Amount must be positive."
    assert fake_api.requests == []


async def test_transfer_all_sol_tool_invalid_address(patched_server, mock_context):
    result = await patched_server.transfer_all_sol(context=mock_context, to_address="nope")
    assert result == "Invalid recipient address format."


async def test_tool_reports_missing_private_key(monkeypatch, mock_context, settings, mock_rpc):
    ctx = ClientContext(
        settings,
        http=httpx.AsyncClient(transport=httpx.MockTransport(FakeApi().handler)),
        rpc=mock_rpc,
        signers=SignerRegistry(),
    )
    monkeypatch.setattr(server, "open_context", lambda: ctx)

    result = await server.buy_token(context=mock_context, mint=MINT, amount_sol=0.1, slippage=15, priority_fee=0.0005)

    assert result.startswith("Error: PRIVATE_KEY not set")
