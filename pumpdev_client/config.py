"""
Configuration and the per-process client context.

Settings come from environment variables, with a ``.env`` file in the project root
loaded first. The ClientContext owns every network client and the signing keys and is
passed explicitly to each workflow, so nothing is held in module-level globals.
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import base58
import httpx
from dotenv import load_dotenv
from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field, SecretStr
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from .api import PumpDevApi
from .errors import ConfigError
from .signer import CREATOR_ROLE, SignerRegistry
from .submitter import DEFAULT_JITO_ENDPOINTS, JitoRelay, RpcSubmitter

DOTENV_PATH = Path(__file__).parent.parent / ".env"

DEFAULT_API_URL = "https://pumpdev.io"
DEFAULT_WS_URL = "wss://pumpdev.io/ws"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
WALLET_ENV_PREFIX = "WALLET_"

logger = get_logger(__name__)


class Settings(BaseModel):
    api_url: str = DEFAULT_API_URL
    ws_url: str = DEFAULT_WS_URL
    rpc_url: str = DEFAULT_RPC_URL
    private_key: Optional[SecretStr] = None
    mint: Optional[str] = None
    wallets: Dict[str, SecretStr] = Field(default_factory=dict)  # extra signer roles
    jito_endpoints: List[str] = Field(default_factory=lambda: list(DEFAULT_JITO_ENDPOINTS))
    log_level: str = "INFO"
    http_timeout: float = 30.0


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> Settings:
    """Builds Settings from ``env`` (defaults to os.environ, after loading .env)."""
    if env is None:
        if dotenv:
            load_dotenv(dotenv_path=DOTENV_PATH)
        env = os.environ

    wallets = {
        key[len(WALLET_ENV_PREFIX):].lower(): SecretStr(value)
        for key, value in env.items()
        if key.startswith(WALLET_ENV_PREFIX) and value
    }
    jito = [e.strip() for e in env.get("JITO_ENDPOINTS", "").split(",") if e.strip()]

    return Settings(
        api_url=env.get("PUMPDEV_API_URL") or DEFAULT_API_URL,
        ws_url=env.get("PUMPDEV_WS_URL") or DEFAULT_WS_URL,
        rpc_url=env.get("RPC_URL") or DEFAULT_RPC_URL,
        private_key=SecretStr(env["PRIVATE_KEY"]) if env.get("PRIVATE_KEY") else None,
        mint=env.get("MINT") or None,
        wallets=wallets,
        jito_endpoints=jito or list(DEFAULT_JITO_ENDPOINTS),
        log_level=env.get("LOG_LEVEL") or "INFO",
    )


def parse_keypair(secret: str, role: str = CREATOR_ROLE) -> Keypair:
    """Keypair from a base-58 encoded 64-byte secret key."""
    try:
        return Keypair.from_bytes(base58.b58decode(secret.strip()))
    except (ValueError, TypeError) as e:
        # Never echo the secret itself
        raise ConfigError(f"Invalid base-58 secret key for role '{role}'") from e


def build_registry(settings: Settings) -> SignerRegistry:
    registry = SignerRegistry()
    if settings.private_key is not None:
        registry.add(CREATOR_ROLE, parse_keypair(settings.private_key.get_secret_value()))
    for role, secret in settings.wallets.items():
        registry.add(role, parse_keypair(secret.get_secret_value(), role))
    return registry


class ClientContext:
    """
    Everything an operation needs: settings, the PumpDev HTTP client, the Solana RPC
    client, the Jito relay and the signer registry. Use as an async context manager so
    the underlying connections are closed.
    """

    def __init__(
        self,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
        rpc: Optional[AsyncClient] = None,
        signers: Optional[SignerRegistry] = None,
    ):
        self.settings = settings
        self.http = http or httpx.AsyncClient(timeout=settings.http_timeout)
        self.rpc = rpc or AsyncClient(settings.rpc_url)
        self.signers = signers if signers is not None else build_registry(settings)
        self.api = PumpDevApi(self.http, settings.api_url)
        self.submitter = RpcSubmitter(self.rpc)
        self.relay = JitoRelay(self.http, settings.jito_endpoints)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ClientContext":
        return cls(load_settings(env))

    @property
    def keypair(self) -> Keypair:
        """The main wallet (``creator`` role)."""
        keypair = self.signers.get(CREATOR_ROLE)
        if keypair is None:
            raise ConfigError("PRIVATE_KEY not set in environment variables! Copy .env.example to .env and add your key")
        return keypair

    @property
    def public_key(self) -> str:
        return str(self.keypair.pubkey())

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.rpc.close()

    async def __aenter__(self) -> "ClientContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
