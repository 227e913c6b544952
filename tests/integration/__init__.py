"""
Integration Tests for the PumpDev Client

The integration tests cover:
- Transaction materialization and local signing, including signer role resolution
- Every workflow (buy, sell, bundle sell, create, create bundle, claims, transfers)
- Jito bundle submission across several block-engine endpoints
- The WebSocket listener's subscription and dispatch logic
- The periodic task driven by a manual clock
- The sniper filters, the MCP tools, configuration loading and the CLI parser

No test touches the network: HTTP goes through httpx.MockTransport and the Solana
RPC client is an AsyncMock.
"""

# Integration tests for pumpdev-client
