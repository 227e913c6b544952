import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock # For mocking the RPC client and MCP Context

import httpx
import pytest
from solders.keypair import Keypair
from solders.signature import Signature

# Ensure the package can be imported without installing it
ROOT_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(ROOT_DIR))

from pumpdev_client.config import ClientContext, Settings
from pumpdev_client.signer import SignerRegistry

from .helpers import API_URL, JITO_ENDPOINTS, FakeApi

# --- Fixtures ---

@pytest.fixture(scope="function")
def wallet() -> Keypair:
    return Keypair()


@pytest.fixture(scope="function")
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture(scope="function")
def mock_rpc() -> AsyncMock:
    """Mock solana AsyncClient: sends succeed, confirmations carry no error, 5 SOL balance."""
    rpc = AsyncMock()
    rpc.send_raw_transaction.side_effect = lambda *args, **kwargs: MagicMock(value=Signature.new_unique())
    rpc.confirm_transaction.return_value = MagicMock(value=[MagicMock(err=None)])
    rpc.get_balance.return_value = MagicMock(value=5_000_000_000)
    return rpc


@pytest.fixture(scope="function")
def settings() -> Settings:
    return Settings(api_url=API_URL, ws_url="wss://pumpdev.test/ws", jito_endpoints=list(JITO_ENDPOINTS))


@pytest.fixture(scope="function")
def client_context(settings: Settings, fake_api: FakeApi, mock_rpc: AsyncMock, wallet: Keypair) -> ClientContext:
    """ClientContext wired to the fake API and mock RPC, with ``wallet`` as the creator."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
    return ClientContext(settings, http=http, rpc=mock_rpc, signers=SignerRegistry({"creator": wallet}))


@pytest.fixture(scope="function")
def mock_context() -> MagicMock:
    """Provides a mock MCP Context object."""
    return MagicMock()
