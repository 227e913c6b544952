"""
End-to-end PumpDev operations.

Every workflow follows the same sequence: build the request, POST it, materialize the
returned transaction(s), sign locally, submit, and optionally wait for confirmation.
A non-200 API response is logged and the workflow returns None without submitting.
Batch workflows run their entries strictly one after another and catch errors per
entry so one failure does not abort the rest.
"""

import asyncio
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from mcp.server.fastmcp.utilities.logging import get_logger
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from . import api
from .config import ClientContext, parse_keypair
from .errors import MaterializeError, MissingSignerError, SigningError, SubmissionError
from .materializer import from_base58, from_bytes, materialize_envelope, parse_envelope
from .models import (
    Amount,
    BatchTransferResult,
    BundleAccount,
    BundleBuyer,
    BundleSend,
    BundleTradeRequest,
    ClaimAllRequest,
    ClaimRequest,
    ClaimResult,
    CreateBundleRequest,
    CreateTokenRequest,
    DistributeRequest,
    Recipient,
    TokenMetadata,
    TradeRequest,
    TransferAllRequest,
    TransferRequest,
)
from .scheduler import OverlapPolicy, PeriodicTask
from .signer import MINT_ROLE, sign_materialized, sign_transaction
from .submitter import lamports_to_sol, solscan_url

logger = get_logger(__name__)

NO_CLAIMABLE_FEES = "No claimable fees"


# --- Helpers ---

async def _send(
    ctx: ClientContext,
    tx: VersionedTransaction,
    skip_preflight: bool = False,
    max_retries: int = 3,
    confirm: bool = True,
) -> Optional[str]:
    """Submits a signed transaction. Returns the signature, or None if sending or confirmation failed."""
    try:
        signature = await ctx.submitter.send(tx, skip_preflight=skip_preflight, max_retries=max_retries)
        logger.info(f"Solscan: {solscan_url(signature)}")
        if confirm:
            err = await ctx.submitter.confirm(signature)
            if err is not None:
                return None
        return str(signature)
    except SubmissionError as e:
        logger.error(f"Send error: {e}")
        return None


def _log_api_error(response: api.ApiResponse) -> None:
    logger.error(f"API Error ({response.status_code}): {response.error_message}")


# --- Trading ---

async def buy_token(
    ctx: ClientContext,
    mint: str,
    amount_sol: float,
    slippage: float = 15,
    priority_fee: float = 0.0005,
    skip_preflight: bool = False,
    max_retries: int = 3,
    confirm: bool = True,
) -> Optional[str]:
    """Buys ``amount_sol`` SOL worth of ``mint``. Returns the transaction signature."""
    keypair = ctx.keypair
    public_key = str(keypair.pubkey())
    logger.info(f"Buying {amount_sol} SOL of {mint} from wallet {public_key}")

    request = TradeRequest(
        public_key=public_key,
        action="buy",
        mint=mint,
        amount=amount_sol,
        denominated_in_sol="true",
        slippage=slippage,
        priority_fee=priority_fee,
    )
    response = await ctx.api.post(api.TRADE_LOCAL, request)
    if not response.ok:
        _log_api_error(response)
        return None

    tx = sign_transaction(from_bytes(response.content), [keypair])
    logger.debug("Buy transaction signed locally")
    return await _send(ctx, tx, skip_preflight=skip_preflight, max_retries=max_retries, confirm=confirm)


async def sell_token(
    ctx: ClientContext,
    mint: str,
    amount: Amount = "100%",
    slippage: float = 15,
    priority_fee: float = 0.0005,
    confirm: bool = False,
) -> Optional[str]:
    """Sells ``amount`` of ``mint``: a percentage string ("100%", "50%") or an exact token amount."""
    keypair = ctx.keypair
    public_key = str(keypair.pubkey())
    logger.info(f"Selling {amount} of {mint} from wallet {public_key}")

    request = TradeRequest(
        public_key=public_key,
        action="sell",
        mint=mint,
        amount=amount,
        denominated_in_sol="false",
        slippage=slippage,
        priority_fee=priority_fee,
    )
    response = await ctx.api.post(api.TRADE_LOCAL, request)
    logger.info(f"Sell transaction built in {response.elapsed_ms:.0f}ms")
    if not response.ok:
        _log_api_error(response)
        return None

    tx = sign_transaction(from_bytes(response.content), [keypair])
    return await _send(ctx, tx, confirm=confirm)


async def sell_bundle(
    ctx: ClientContext,
    mint: str,
    accounts: Mapping[str, Keypair],
    creator: Optional[str] = None,
    amount: Amount = "100%",
    slippage: float = 99,
    priority_fee: float = 0.005,
) -> Optional[List[BundleSend]]:
    """
    Sells from several wallets with a single API call.

    ``accounts`` maps an account name to its keypair. The API returns one transaction
    per account; entries the server failed to build, or whose name is not a local
    account, are skipped. Sends use skip_preflight for speed and are not confirmed.
    Returns the successful sends.
    """
    logger.info(f"Bundle sell of {mint} across {len(accounts)} accounts")
    request = BundleTradeRequest(
        accounts=[BundleAccount(public_key=str(kp.pubkey()), name=name) for name, kp in accounts.items()],
        action="sell",
        mint=mint,
        amount=amount,
        denominated_in_sol="false",
        slippage=slippage,
        priority_fee=priority_fee,
        creator=creator,
    )
    response = await ctx.api.post(api.TRADE_BUNDLE, request)
    if not response.ok:
        _log_api_error(response)
        return None

    envelope = parse_envelope(response.json())
    if envelope.stats is not None:
        logger.info(
            f"Built {envelope.stats.success}/{envelope.stats.total} transactions "
            f"(server time {envelope.stats.duration_ms}ms)"
        )

    sends: List[BundleSend] = []
    attempted = 0
    for entry in envelope.transactions:
        if not entry.transaction:
            logger.error(f"{entry.name}: {entry.error}")
            continue
        keypair = accounts.get(entry.name or "")
        if keypair is None:
            continue

        attempted += 1
        try:
            tx = sign_transaction(from_base58(entry.transaction), [keypair])
            signature = await ctx.submitter.send(tx, skip_preflight=True, max_retries=2)
        except (MaterializeError, SigningError, SubmissionError) as e:
            logger.error(f"{entry.name} send error: {e}")
            continue
        logger.info(f"{entry.name} sent: {str(signature)[:20]}...")
        sends.append(BundleSend(name=entry.name, signature=str(signature)))

    logger.info(f"Successful sends: {len(sends)}/{attempted} attempted, {len(accounts)} accounts")
    return sends


# --- Token creation ---

async def upload_metadata(ctx: ClientContext, image_path: Union[str, Path], token: TokenMetadata) -> str:
    return await ctx.api.upload_metadata(image_path, token)


async def create_token(
    ctx: ClientContext,
    metadata_uri: str,
    token: TokenMetadata,
    dev_buy_sol: Optional[float] = None,
    slippage: float = 30,
    priority_fee: float = 0.001,
) -> Optional[str]:
    """Creates a token, optionally with a dev buy in the same transaction. Returns the mint."""
    keypair = ctx.keypair
    public_key = str(keypair.pubkey())
    logger.info(f"Creating token {token.name} ({token.symbol}) from {public_key}")

    request = CreateTokenRequest(
        public_key=public_key,
        name=token.name,
        symbol=token.symbol,
        uri=metadata_uri,
        priority_fee=priority_fee,
        amount=dev_buy_sol,
        slippage=slippage if dev_buy_sol is not None else None,
    )
    response = await ctx.api.post(api.CREATE, request)
    if not response.ok:
        _log_api_error(response)
        return None

    envelope = parse_envelope(response.json())
    if not envelope.transaction or not envelope.mint_secret_key:
        raise MaterializeError("Create response is missing the transaction or mint key")
    logger.info(f"New token mint: {envelope.mint}")
    if envelope.dev_buy is not None:
        logger.info(f"Dev buy: {envelope.dev_buy}")

    # The mint account is new, so the transaction needs both the creator and the mint signature
    mint_keypair = parse_keypair(envelope.mint_secret_key, MINT_ROLE)
    tx = sign_transaction(from_base58(envelope.transaction), [keypair, mint_keypair])

    signature = await _send(ctx, tx)
    if signature is None:
        return None
    logger.info(f"Token created: https://pump.fun/{envelope.mint}")
    return envelope.mint


async def create_token_bundle(
    ctx: ClientContext,
    metadata_uri: str,
    token: TokenMetadata,
    buyers: Sequence[Tuple[str, float]],
    dev_buy_sol: Optional[float] = None,
    slippage: float = 30,
    priority_fee: float = 0.001,
    jito_tip: float = 0.001,
    strict: bool = True,
) -> Optional[str]:
    """
    Creates a token and buys it from extra wallets in one atomic Jito bundle.

    ``buyers`` pairs a signer role held in ``ctx.signers`` (e.g. ``buyer1``) with a SOL
    amount. Each returned transaction declares the roles it needs and is signed from
    the registry, with the returned mint keypair added as the ``mint`` role.
    Returns the bundle id.
    """
    keypair = ctx.keypair
    bundle_buyers = []
    for role, amount in buyers:
        buyer = ctx.signers.get(role)
        if buyer is None:
            raise MissingSignerError([role])
        bundle_buyers.append(BundleBuyer(public_key=str(buyer.pubkey()), amount=amount))

    request = CreateBundleRequest(
        public_key=str(keypair.pubkey()),
        name=token.name,
        symbol=token.symbol,
        uri=metadata_uri,
        priority_fee=priority_fee,
        amount=dev_buy_sol,
        slippage=slippage,
        jito_tip=jito_tip,
        buyers=bundle_buyers,
    )
    response = await ctx.api.post(api.CREATE_BUNDLE, request)
    if not response.ok:
        _log_api_error(response)
        return None

    envelope = parse_envelope(response.json())
    registry = ctx.signers
    if envelope.mint_secret_key:
        registry = registry.with_role(MINT_ROLE, parse_keypair(envelope.mint_secret_key, MINT_ROLE))

    signed = []
    for item in materialize_envelope(envelope):
        logger.info(f"Signing {item.label} as {item.signers}")
        signed.append(sign_materialized(item, registry, strict=strict))

    try:
        bundle_id = await ctx.relay.send_bundle(signed)
    except SubmissionError as e:
        logger.error(f"Bundle error: {e}")
        return None
    logger.info(f"Bundle {bundle_id} submitted for mint {envelope.mint}")
    return bundle_id


# --- Creator fees ---

async def claim_fees(ctx: ClientContext, mint: Optional[str] = None, priority_fee: float = 0.0001) -> Optional[ClaimResult]:
    """
    Claims all creator fees for the wallet in one transaction.

    Passing ``mint`` lets the API detect a fee-sharing configuration for that token and
    build the distribute instruction instead.
    """
    keypair = ctx.keypair
    pubkey = keypair.pubkey()
    if mint:
        logger.info(f"Claiming fees for {pubkey}, mint {mint} (fee sharing auto-detected)")
    else:
        logger.info(f"Claiming fees for {pubkey}")

    balance_before = await ctx.submitter.get_balance(pubkey)
    logger.info(f"Balance before: {lamports_to_sol(balance_before):.4f} SOL")

    response = await ctx.api.post(api.CLAIM_ACCOUNT, ClaimRequest(public_key=str(pubkey), priority_fee=priority_fee, mint=mint))
    if not response.ok:
        if NO_CLAIMABLE_FEES in response.error_message:
            logger.info("No fees to claim right now.")
        else:
            _log_api_error(response)
        return None

    tx = sign_transaction(from_bytes(response.content), [keypair])
    signature = await _send(ctx, tx)
    if signature is None:
        return None

    balance_after = await ctx.submitter.get_balance(pubkey)
    result = ClaimResult(signature=signature, balance_before=balance_before, balance_after=balance_after)
    logger.info(
        f"Balance after: {lamports_to_sol(balance_after):.4f} SOL, "
        f"fees claimed: {lamports_to_sol(result.fees_claimed):.4f} SOL"
    )
    return result


async def claim_multiple_mints(ctx: ClientContext, mints: Sequence[str], priority_fee: float = 0.0001) -> List[str]:
    """Claims fees for several tokens; each entry is signed and sent one after another."""
    keypair = ctx.keypair
    logger.info(f"Claiming fees for {len(mints)} tokens")
    response = await ctx.api.post(
        api.CLAIM_ALL, ClaimAllRequest(public_key=str(keypair.pubkey()), mints=list(mints), priority_fee=priority_fee)
    )
    if not response.ok:
        _log_api_error(response)
        return []

    envelope = parse_envelope(response.json())
    logger.info(f"Transactions built: {envelope.count}, errors: {envelope.errors}")

    signatures: List[str] = []
    for entry in envelope.transactions:
        if entry.error or not entry.transaction:
            logger.warning(f"{entry.mint}: error - {entry.error}")
            continue
        label = " (fee sharing)" if entry.fee_sharing else ""
        logger.info(f"{entry.mint}: {entry.vault_balance} SOL{label}")
        try:
            tx = sign_transaction(from_base58(entry.transaction), [keypair])
        except (MaterializeError, SigningError) as e:
            logger.error(f"{entry.mint}: {e}")
            continue
        signature = await _send(ctx, tx)
        if signature is not None:
            signatures.append(signature)
    return signatures


async def distribute_fees(ctx: ClientContext, mint: str, priority_fee: float = 0.0001) -> Optional[str]:
    """Distributes a fee-sharing token's creator fees to all shareholders. Any wallet may trigger it."""
    keypair = ctx.keypair
    logger.info(f"Distributing creator fees for {mint}, payer {keypair.pubkey()}")
    response = await ctx.api.post(
        api.CLAIM_DISTRIBUTE, DistributeRequest(public_key=str(keypair.pubkey()), mint=mint, priority_fee=priority_fee)
    )
    if not response.ok:
        _log_api_error(response)
        return None

    tx = sign_transaction(from_bytes(response.content), [keypair])
    return await _send(ctx, tx)


def schedule_claims(
    ctx: ClientContext,
    interval_hours: float = 24,
    overlap: OverlapPolicy = OverlapPolicy.SKIP,
    mint: Optional[str] = None,
) -> PeriodicTask:
    """A PeriodicTask that claims fees now and every ``interval_hours``. Call ``start()`` on it."""

    async def run_claim():
        await claim_fees(ctx, mint=mint or ctx.settings.mint)

    return PeriodicTask(run_claim, interval_hours * 3600, overlap=overlap, name="claim-fees")


# --- Transfers ---

async def transfer_sol(ctx: ClientContext, to_address: str, amount_sol: float, priority_fee: float = 0.0001) -> Optional[str]:
    keypair = ctx.keypair
    logger.info(f"Transferring {amount_sol} SOL from {keypair.pubkey()} to {to_address}")
    request = TransferRequest(
        from_public_key=str(keypair.pubkey()), to_public_key=to_address, amount=amount_sol, priority_fee=priority_fee
    )
    response = await ctx.api.post(api.TRANSFER, request)
    if not response.ok:
        _log_api_error(response)
        return None

    tx = sign_transaction(from_bytes(response.content), [keypair])
    return await _send(ctx, tx)


async def transfer_all_sol(ctx: ClientContext, to_address: str, priority_fee: float = 0.0001) -> Optional[str]:
    """Drains the wallet to ``to_address``; the API computes the amount net of fees."""
    keypair = ctx.keypair
    pubkey = keypair.pubkey()
    balance = await ctx.submitter.get_balance(pubkey)
    logger.info(f"Transferring all SOL from {pubkey} to {to_address}; balance {lamports_to_sol(balance):.4f} SOL")

    response = await ctx.api.post(
        api.TRANSFER_ALL,
        TransferAllRequest(from_public_key=str(pubkey), to_public_key=to_address, priority_fee=priority_fee),
    )
    if not response.ok:
        _log_api_error(response)
        return None

    envelope = parse_envelope(response.json())
    logger.info(f"Estimated transfer: {envelope.estimated_amount} SOL, estimated fees: {envelope.estimated_fees} SOL")
    if not envelope.transaction:
        raise MaterializeError("Transfer-all response did not include a transaction")

    tx = sign_transaction(from_base58(envelope.transaction), [keypair])
    signature = await _send(ctx, tx)
    if signature is not None:
        final_balance = await ctx.submitter.get_balance(pubkey)
        logger.info(f"Final balance: {lamports_to_sol(final_balance):.4f} SOL")
    return signature


async def batch_transfer(
    ctx: ClientContext,
    recipients: Sequence[Union[Recipient, Dict]],
    delay: float = 0.5,
    priority_fee: float = 0.0001,
) -> BatchTransferResult:
    """Sends SOL to each recipient in turn, pausing ``delay`` seconds between transfers."""
    keypair = ctx.keypair
    from_public_key = str(keypair.pubkey())
    result = BatchTransferResult()
    entries = [r if isinstance(r, Recipient) else Recipient.model_validate(r) for r in recipients]
    logger.info(f"Batch transfer from {from_public_key} to {len(entries)} recipients")

    for i, recipient in enumerate(entries):
        if i and delay > 0:
            await asyncio.sleep(delay)
        result.attempted += 1
        logger.info(f"Sending {recipient.amount} SOL to {recipient.address[:8]}...")
        try:
            response = await ctx.api.post(
                api.TRANSFER,
                TransferRequest(
                    from_public_key=from_public_key,
                    to_public_key=recipient.address,
                    amount=recipient.amount,
                    priority_fee=priority_fee,
                ),
            )
            if not response.ok:
                _log_api_error(response)
                continue
            tx = sign_transaction(from_bytes(response.content), [keypair])
            signature = await ctx.submitter.send(tx)
            await ctx.submitter.confirm(signature)
        except Exception as e:
            logger.error(f"Transfer to {recipient.address} failed: {e}")
            continue

        logger.info(f"Success: {str(signature)[:20]}...")
        result.succeeded += 1
        result.total_sent += recipient.amount
        result.signatures.append(str(signature))

    logger.info(f"Completed: {result.succeeded}/{len(entries)} transfers, total sent: {result.total_sent} SOL")
    return result
