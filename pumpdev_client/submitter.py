"""
Submission of signed transactions.

RpcSubmitter forwards single transactions to a Solana RPC node and polls for
confirmation. JitoRelay sends a batch of signed transactions to a Jito block engine
as an atomic bundle, trying each endpoint in order until one accepts.
"""

from typing import Any, List, Optional, Sequence

import base58
import httpx
from mcp.server.fastmcp.utilities.logging import get_logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import BundleSubmissionError, SubmissionError

logger = get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

DEFAULT_JITO_ENDPOINTS = [
    "https://mainnet.block-engine.jito.wtf/api/v1/bundles",
    "https://amsterdam.mainnet.block-engine.jito.wtf/api/v1/bundles",
    "https://frankfurt.mainnet.block-engine.jito.wtf/api/v1/bundles",
    "https://ny.mainnet.block-engine.jito.wtf/api/v1/bundles",
    "https://tokyo.mainnet.block-engine.jito.wtf/api/v1/bundles",
]


def solscan_url(signature: Any) -> str:
    return f"https://solscan.io/tx/{signature}"


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


class RpcSubmitter:
    """Thin wrapper over the solana-py AsyncClient for send / confirm / balance."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def send(
        self, tx: VersionedTransaction, skip_preflight: bool = False, max_retries: int = 3
    ) -> Signature:
        opts = TxOpts(
            skip_confirmation=True,
            skip_preflight=skip_preflight,
            preflight_commitment=Confirmed,
            max_retries=max_retries,
        )
        try:
            resp = await self.client.send_raw_transaction(bytes(tx), opts=opts)
        except (RPCException, SolanaRpcException) as e:
            raise SubmissionError(f"RPC rejected transaction: {e}") from e
        signature = resp.value
        logger.info(f"Transaction sent: {signature}")
        return signature

    async def confirm(self, signature: Signature) -> Optional[Any]:
        """Waits for ``confirmed`` commitment. Returns the on-chain error, or None on success."""
        try:
            resp = await self.client.confirm_transaction(signature, commitment=Confirmed)
        except (UnconfirmedTxError, RPCException, SolanaRpcException) as e:
            raise SubmissionError(f"Could not confirm {signature}: {e}") from e
        statuses = resp.value
        status = statuses[0] if statuses else None
        err = status.err if status is not None else None
        if err is not None:
            logger.error(f"Transaction {signature} failed: {err}")
        else:
            logger.info(f"Transaction {signature} confirmed")
        return err

    async def get_balance(self, pubkey: Pubkey) -> int:
        resp = await self.client.get_balance(pubkey, commitment=Confirmed)
        return resp.value


class JitoRelay:
    """Submits atomic bundles through the Jito block-engine JSON-RPC ``sendBundle`` method."""

    def __init__(self, http: httpx.AsyncClient, endpoints: Optional[Sequence[str]] = None):
        self.http = http
        self.endpoints: List[str] = list(endpoints or DEFAULT_JITO_ENDPOINTS)

    async def send_bundle(self, transactions: Sequence[VersionedTransaction]) -> str:
        encoded = [base58.b58encode(bytes(tx)).decode("ascii") for tx in transactions]
        payload = {"jsonrpc": "2.0", "id": 1, "method": "sendBundle", "params": [encoded]}

        failures: List[str] = []
        for endpoint in self.endpoints:
            try:
                resp = await self.http.post(endpoint, json=payload)
                data = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Bundle endpoint {endpoint} unreachable: {e}")
                failures.append(f"{endpoint}: {e}")
                continue

            if resp.status_code == 200 and data.get("result"):
                bundle_id = data["result"]
                logger.info(f"Bundle accepted by {endpoint}: {bundle_id}")
                return bundle_id

            error = data.get("error") or resp.text
            logger.warning(f"Bundle rejected by {endpoint} ({resp.status_code}): {error}")
            failures.append(f"{endpoint}: {error}")

        raise BundleSubmissionError(f"All {len(self.endpoints)} block engines rejected the bundle: {failures}")

