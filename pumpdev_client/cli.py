"""
Command-line entry points for the PumpDev workflows.

Configuration comes from the environment (see .env.example). Exits 0 when the
command runs to completion and 1 on an uncaught error.
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional, Set

from mcp.server.fastmcp.utilities.logging import configure_logging, get_logger

from . import workflows
from .config import ClientContext, load_settings
from .listener import ConsoleEventHandler, EventListener
from .models import TokenMetadata
from .scheduler import OverlapPolicy
from .signer import MINT_ROLE
from .sniper import SniperHandler, SniperSettings

logger = get_logger("pumpdev_client.cli")


def _amount(value: str):
    """Percentage strings stay as-is, anything else is a number."""
    return value if value.endswith("%") else float(value)


def _add_token_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", required=True)
    parser.add_argument("--symbol", required=True)
    parser.add_argument("--description", default="")
    parser.add_argument("--twitter", default="")
    parser.add_argument("--telegram", default="")
    parser.add_argument("--website", default="")
    parser.add_argument("--image", help="Image to upload to IPFS (required unless --uri is given)")
    parser.add_argument("--uri", help="Existing metadata URI; skips the upload")
    parser.add_argument("--dev-buy", dest="dev_buy", type=float, default=None, help="Dev buy in SOL")
    parser.add_argument("--slippage", type=float, default=30)
    parser.add_argument("--priority-fee", dest="priority_fee", type=float, default=0.001)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pumpdev", description="PumpDev trading API client")
    parser.add_argument("--log-level", dest="log_level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("buy", help="Buy a token with SOL")
    p.add_argument("mint")
    p.add_argument("amount", type=float, help="SOL to spend")
    p.add_argument("--slippage", type=float, default=15)
    p.add_argument("--priority-fee", dest="priority_fee", type=float, default=0.0005)

    p = sub.add_parser("sell", help="Sell a token")
    p.add_argument("mint")
    p.add_argument("amount", nargs="?", default="100%", type=_amount, help="'100%%', '50%%' or a token amount")
    p.add_argument("--slippage", type=float, default=15)
    p.add_argument("--priority-fee", dest="priority_fee", type=float, default=0.0005)

    p = sub.add_parser("sell-bundle", help="Sell from every configured wallet in one API call")
    p.add_argument("mint")
    p.add_argument("--amount", default="100%", type=_amount)
    p.add_argument("--slippage", type=float, default=99)
    p.add_argument("--priority-fee", dest="priority_fee", type=float, default=0.005)

    p = sub.add_parser("create", help="Create a token (optionally with a dev buy)")
    _add_token_args(p)

    p = sub.add_parser("create-bundle", help="Create a token and buy from extra wallets in one Jito bundle")
    _add_token_args(p)
    p.add_argument(
        "--buyer", action="append", default=[], metavar="ROLE=SOL",
        help="Buyer wallet role (from WALLET_<ROLE>) and SOL amount, e.g. buyer1=0.5",
    )
    p.add_argument("--jito-tip", dest="jito_tip", type=float, default=0.001)

    p = sub.add_parser("claim", help="Claim creator fees")
    p.add_argument("--mint", default=None, help="Token mint (needed for fee sharing; default: MINT)")

    p = sub.add_parser("claim-all", help="Claim fees for several tokens")
    p.add_argument("mints", nargs="+")

    p = sub.add_parser("distribute", help="Distribute fee-sharing creator fees")
    p.add_argument("mint")

    p = sub.add_parser("schedule-claim", help="Claim fees now and then every N hours")
    p.add_argument("--hours", type=float, default=24)
    p.add_argument("--overlap", choices=[o.value for o in OverlapPolicy], default=OverlapPolicy.SKIP.value)
    p.add_argument("--mint", default=None)

    p = sub.add_parser("transfer", help="Transfer SOL")
    p.add_argument("to")
    p.add_argument("amount", type=float)

    p = sub.add_parser("transfer-all", help="Transfer the whole balance")
    p.add_argument("to")

    p = sub.add_parser("batch-transfer", help="Transfer SOL to recipients listed in a JSON file")
    p.add_argument("file", help='JSON list of {"address": ..., "amount": ...}')
    p.add_argument("--delay", type=float, default=0.5)

    p = sub.add_parser("listen", help="Print the real-time event feed")
    p.add_argument("--no-new-tokens", dest="new_tokens", action="store_false")
    p.add_argument("--token", action="append", default=[], help="Mint to watch trades for")
    p.add_argument("--wallet", action="append", default=[], help="Wallet to watch trades for")
    p.add_argument("--reconnect", action="store_true")

    p = sub.add_parser("snipe", help="Buy new tokens that pass the sniper filters")
    p.add_argument("--buy-amount", dest="buy_amount_sol", type=float, default=0.01)
    p.add_argument("--slippage", type=float, default=20)
    p.add_argument("--priority-fee", dest="priority_fee", type=float, default=0.001)
    p.add_argument("--max-market-cap", dest="max_market_cap_sol", type=float, default=50)
    p.add_argument("--min-initial-buy", dest="min_initial_buy_sol", type=float, default=0.5)
    p.add_argument("--creator", dest="watch_creators", action="append", default=[])
    p.add_argument("--cooldown", dest="cooldown_seconds", type=float, default=5)

    sub.add_parser("serve", help="Run the MCP tool server on stdio")
    return parser


def _parse_buyers(values: List[str]):
    buyers = []
    for value in values:
        role, sep, amount = value.partition("=")
        if not sep:
            raise ValueError(f"--buyer expects ROLE=SOL, got {value!r}")
        buyers.append((role.strip().lower(), float(amount)))
    return buyers


async def _metadata_uri(ctx: ClientContext, args: argparse.Namespace, token: TokenMetadata) -> str:
    if args.uri:
        return args.uri
    if not args.image:
        raise ValueError("Either --image or --uri is required")
    return await workflows.upload_metadata(ctx, args.image, token)


def _request_shutdown(listener: EventListener, pending: Set[asyncio.Task]) -> asyncio.Task:
    """Schedules listener.shutdown(), holding a reference until it finishes."""
    task = asyncio.ensure_future(listener.shutdown())
    pending.add(task)
    task.add_done_callback(pending.discard)
    return task


async def _run_listener(listener: EventListener) -> None:
    loop = asyncio.get_running_loop()
    pending: Set[asyncio.Task] = set()
    try:
        loop.add_signal_handler(signal.SIGINT, _request_shutdown, listener, pending)
    except NotImplementedError:  # Windows event loops
        pass
    await listener.run()
    if pending:
        await asyncio.gather(*pending)


async def run_command(args: argparse.Namespace) -> int:
    async with ClientContext.from_env() as ctx:
        cmd = args.command

        if cmd == "buy":
            result = await workflows.buy_token(ctx, args.mint, args.amount, slippage=args.slippage, priority_fee=args.priority_fee)
        elif cmd == "sell":
            result = await workflows.sell_token(ctx, args.mint, args.amount, slippage=args.slippage, priority_fee=args.priority_fee)
        elif cmd == "sell-bundle":
            accounts = {role: ctx.signers.get(role) for role in ctx.signers.roles() if role != MINT_ROLE}
            result = await workflows.sell_bundle(
                ctx, args.mint, accounts, creator=ctx.public_key,
                amount=args.amount, slippage=args.slippage, priority_fee=args.priority_fee,
            )
        elif cmd in ("create", "create-bundle"):
            token = TokenMetadata(
                name=args.name, symbol=args.symbol, description=args.description,
                twitter=args.twitter, telegram=args.telegram, website=args.website,
            )
            uri = await _metadata_uri(ctx, args, token)
            if cmd == "create":
                result = await workflows.create_token(
                    ctx, uri, token, dev_buy_sol=args.dev_buy, slippage=args.slippage, priority_fee=args.priority_fee
                )
            else:
                result = await workflows.create_token_bundle(
                    ctx, uri, token, _parse_buyers(args.buyer), dev_buy_sol=args.dev_buy,
                    slippage=args.slippage, priority_fee=args.priority_fee, jito_tip=args.jito_tip,
                )
        elif cmd == "claim":
            result = await workflows.claim_fees(ctx, mint=args.mint or ctx.settings.mint)
        elif cmd == "claim-all":
            result = await workflows.claim_multiple_mints(ctx, args.mints)
        elif cmd == "distribute":
            result = await workflows.distribute_fees(ctx, args.mint)
        elif cmd == "schedule-claim":
            task = workflows.schedule_claims(ctx, interval_hours=args.hours, overlap=OverlapPolicy(args.overlap), mint=args.mint)
            print("Scheduler running. Press Ctrl+C to stop.")
            try:
                await task.start()
            finally:
                await task.stop()
            result = None
        elif cmd == "transfer":
            result = await workflows.transfer_sol(ctx, args.to, args.amount)
        elif cmd == "transfer-all":
            result = await workflows.transfer_all_sol(ctx, args.to)
        elif cmd == "batch-transfer":
            with open(args.file, "r") as f:
                recipients = json.load(f)
            result = await workflows.batch_transfer(ctx, recipients, delay=args.delay)
        elif cmd == "listen":
            listener = EventListener(ctx.settings.ws_url, ConsoleEventHandler(), reconnect=args.reconnect)
            if args.new_tokens:
                await listener.subscribe_new_token()
            await listener.subscribe_token_trade(args.token)
            await listener.subscribe_account_trade(args.wallet)
            await _run_listener(listener)
            result = None
        elif cmd == "snipe":
            settings = SniperSettings(
                buy_amount_sol=args.buy_amount_sol, slippage=args.slippage, priority_fee=args.priority_fee,
                max_market_cap_sol=args.max_market_cap_sol, min_initial_buy_sol=args.min_initial_buy_sol,
                watch_creators=args.watch_creators, cooldown_seconds=args.cooldown_seconds,
            )
            print(f"Sniper wallet {ctx.public_key}. EDUCATIONAL PURPOSES ONLY, USE AT YOUR OWN RISK.")
            sniper = SniperHandler(ctx, settings)
            listener = EventListener(ctx.settings.ws_url, sniper)
            await listener.subscribe_new_token()
            try:
                await _run_listener(listener)
            finally:
                await sniper.wait_for_buys()
            result = None
        else:
            raise ValueError(f"Unknown command {cmd}")

    if result is not None:
        print(result.model_dump_json(indent=2) if hasattr(result, "model_dump_json") else result)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()
    configure_logging((args.log_level or settings.log_level).upper())

    if args.command == "serve":
        from .server import run

        run()
        return 0

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        logger.info("Shutting down")
        return 0
    except Exception as e:
        logger.exception(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
