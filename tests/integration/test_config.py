"""
Tests for environment configuration and ClientContext construction.
"""

import httpx
import pytest
from solders.keypair import Keypair

from pumpdev_client.config import ClientContext, build_registry, load_settings, parse_keypair
from pumpdev_client.errors import ConfigError
from pumpdev_client.submitter import DEFAULT_JITO_ENDPOINTS

pytestmark = pytest.mark.asyncio


async def test_load_settings_defaults():
    settings = load_settings({})
    assert settings.api_url == "https://pumpdev.io"
    assert settings.private_key is None
    assert settings.wallets == {}
    assert settings.jito_endpoints == DEFAULT_JITO_ENDPOINTS
    assert settings.log_level == "INFO"


async def test_load_settings_reads_env_and_wallet_roles():
    creator, buyer = Keypair(), Keypair()
    env = {
        "PUMPDEV_API_URL": "https://api.test",
        "RPC_URL": "https://rpc.test",
        "PRIVATE_KEY": str(creator),
        "MINT": "Mint111",
        "WALLET_BUYER1": str(buyer),
        "WALLET_EMPTY": "",
        "JITO_ENDPOINTS": "https://a.test/api/v1/bundles, https://b.test/api/v1/bundles",
        "LOG_LEVEL": "debug",
    }

    settings = load_settings(env)

    assert settings.api_url == "https://api.test"
    assert settings.rpc_url == "https://rpc.test"
    assert settings.mint == "Mint111"
    assert list(settings.wallets) == ["buyer1"]
    assert settings.jito_endpoints == ["https://a.test/api/v1/bundles", "https://b.test/api/v1/bundles"]
    assert settings.log_level == "debug"

    registry = build_registry(settings)
    assert registry.get("creator").pubkey() == creator.pubkey()
    assert registry.get("buyer1").pubkey() == buyer.pubkey()


async def test_secret_key_not_exposed_in_repr():
    secret = str(Keypair())
    settings = load_settings({"PRIVATE_KEY": secret})
    assert secret not in repr(settings)
    assert secret not in str(settings)


async def test_parse_keypair_invalid_does_not_echo_secret():
    with pytest.raises(ConfigError) as exc_info:
        parse_keypair("0OIl-definitely-not-a-key", "buyer2")
    assert "buyer2" in str(exc_info.value)
    assert "definitely" not in str(exc_info.value)


async def test_parse_keypair_wrong_length():
    with pytest.raises(ConfigError):
        parse_keypair("3yZe7d")


async def test_context_without_private_key(mock_rpc):
    ctx = ClientContext(load_settings({}), http=httpx.AsyncClient(), rpc=mock_rpc)
    with pytest.raises(ConfigError, match="PRIVATE_KEY"):
        ctx.keypair
    await ctx.aclose()
    mock_rpc.close.assert_awaited_once()


async def test_context_manager_closes_clients(mock_rpc):
    kp = Keypair()
    http = httpx.AsyncClient()
    async with ClientContext(load_settings({"PRIVATE_KEY": str(kp)}), http=http, rpc=mock_rpc) as ctx:
        assert ctx.public_key == str(kp.pubkey())
        assert ctx.relay.endpoints == DEFAULT_JITO_ENDPOINTS
    assert http.is_closed
    mock_rpc.close.assert_awaited_once()
