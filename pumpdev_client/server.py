"""
MCP server exposing the PumpDev workflows as tools.

Each tool opens a ClientContext from the environment (PRIVATE_KEY, RPC_URL, ...),
runs one workflow and returns a human-readable summary. Transactions are signed in
this process; keys are never sent to the MCP client.
"""

from typing import Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import Field
from solders.pubkey import Pubkey

from . import workflows
from .config import ClientContext
from .errors import PumpDevError
from .submitter import lamports_to_sol, solscan_url

logger = get_logger(__name__)

mcp = FastMCP(name="PumpDev Trading Server")


def open_context() -> ClientContext:
    return ClientContext.from_env()


def _validate_pubkey(value: str) -> str:
    Pubkey.from_string(value)  # raises ValueError on bad format
    return value


# --- MCP Tools ---

@mcp.tool()
async def buy_token(
    context: Context,
    mint: str = Field(..., description="Mint address of the token to buy."),
    amount_sol: float = Field(..., description="Amount of SOL to spend."),
    slippage: float = Field(15, description="Slippage tolerance in percent."),
    priority_fee: float = Field(0.0005, description="Priority fee in SOL."),
) -> str:
    """Buys a token with SOL and waits for confirmation."""
    logger.info(f"Received buy_token request for mint={mint}, amount_sol={amount_sol}")
    try:
        _validate_pubkey(mint)
        async with open_context() as ctx:
            signature = await workflows.buy_token(ctx, mint, amount_sol, slippage=slippage, priority_fee=priority_fee)
        if signature is None:
            return f"Buy of {mint} failed; see server logs for the API or network error."
        return f"Bought {amount_sol} SOL of {mint}. Signature: {signature} ({solscan_url(signature)})"
    except ValueError:
        return "Invalid mint address format."
    except PumpDevError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Error buying token: {e}")
        return f"An error occurred while buying the token: {e}"


@mcp.tool()
async def sell_token(
    context: Context,
    mint: str = Field(..., description="Mint address of the token to sell."),
    amount: str = Field("100%", description="Percentage string like '100%' or an exact token amount."),
    slippage: float = Field(15, description="Slippage tolerance in percent."),
    priority_fee: float = Field(0.0005, description="Priority fee in SOL."),
) -> str:
    """Sells a token for SOL."""
    logger.info(f"Received sell_token request for mint={mint}, amount={amount}")
    try:
        _validate_pubkey(mint)
        sell_amount = amount if amount.endswith("%") else float(amount)
        async with open_context() as ctx:
            signature = await workflows.sell_token(ctx, mint, sell_amount, slippage=slippage, priority_fee=priority_fee)
        if signature is None:
            return f"Sell of {mint} failed; see server logs for the API or network error."
        return f"Sold {amount} of {mint}. Signature: {signature} ({solscan_url(signature)})"
    except ValueError:
        return "Invalid mint address or amount."
    except PumpDevError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Error selling token: {e}")
        return f"An error occurred while selling the token: {e}"


@mcp.tool()
async def claim_fees(
    context: Context,
    mint: Optional[str] = Field(None, description="Token mint; required when fee sharing is configured."),
) -> str:
    """Claims accumulated creator fees for the configured wallet."""
    try:
        if mint is not None and not isinstance(mint, str):
            mint = None
        if mint:
            _validate_pubkey(mint)
        async with open_context() as ctx:
            result = await workflows.claim_fees(ctx, mint=mint)
        if result is None:
            return "No fees were claimed (nothing claimable, or the claim failed)."
        return (
            f"Claimed {lamports_to_sol(result.fees_claimed):.4f} SOL. "
            f"Balance now {lamports_to_sol(result.balance_after):.4f} SOL. Signature: {result.signature}"
        )
    except ValueError:
        return "Invalid mint address format."
    except PumpDevError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Error claiming fees: {e}")
        return f"An error occurred while claiming fees: {e}"


@mcp.tool()
async def distribute_fees(
    context: Context,
    mint: str = Field(..., description="Mint of a token with fee sharing configured."),
) -> str:
    """Distributes creator fees to all fee-sharing shareholders."""
    try:
        _validate_pubkey(mint)
        async with open_context() as ctx:
            signature = await workflows.distribute_fees(ctx, mint)
        if signature is None:
            return f"Distribution for {mint} failed; see server logs."
        return f"Fees for {mint} distributed. Signature: {signature}"
    except ValueError:
        return "Invalid mint address format."
    except PumpDevError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Error distributing fees: {e}")
        return f"An error occurred while distributing fees: {e}"


@mcp.tool()
async def transfer_sol(
    context: Context,
    to_address: str = Field(..., description="Recipient wallet address."),
    amount_sol: float = Field(..., description="Amount of SOL to send."),
) -> str:
    """Transfers SOL from the configured wallet."""
    try:
        _validate_pubkey(to_address)
        if amount_sol <= 0:
            return "Error: Amount must be positive."
        async with open_context() as ctx:
            signature = await workflows.transfer_sol(ctx, to_address, amount_sol)
        if signature is None:
            return f"Transfer to {to_address} failed; see server logs."
        return f"Sent {amount_sol} SOL to {to_address}. Signature: {signature}"
    except ValueError:
        return "Invalid recipient address format."
    except PumpDevError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Error transferring SOL: {e}")
        return f"An error occurred while transferring SOL: {e}"


@mcp.tool()
async def transfer_all_sol(
    context: Context,
    to_address: str = Field(..., description="Recipient wallet address."),
) -> str:
    """Transfers the whole wallet balance (minus fees)."""
    try:
        _validate_pubkey(to_address)
        async with open_context() as ctx:
            signature = await workflows.transfer_all_sol(ctx, to_address)
        if signature is None:
            return f"Transfer to {to_address} failed; see server logs."
        return f"Wallet drained to {to_address}. Signature: {signature}"
    except ValueError:
        return "Invalid recipient address format."
    except PumpDevError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Error transferring SOL: {e}")
        return f"An error occurred while transferring SOL: {e}"


def run() -> None:
    mcp.run(transport="stdio")


if __name__ == "__main__":
    # Example: python -m pumpdev_client.server
    run()
