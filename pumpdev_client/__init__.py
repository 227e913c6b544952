"""
PumpDev Client Package

This package provides a Python client for the PumpDev token-trading API. The remote
service builds unsigned Solana transactions (buy, sell, create, claim, transfer and
bundles); this package signs them locally with keys that never leave the process and
submits them to a Solana RPC endpoint or a Jito block-engine relay.

Main components:
- config.py: Environment configuration and the ClientContext passed to every operation
- api.py: HTTP request builder for the PumpDev endpoints
- materializer.py / signer.py / submitter.py: deserialize, sign and send transactions
- workflows.py: End-to-end operations (buy, sell, create, claim, transfer, bundles)
- listener.py / sniper.py: WebSocket event feed and the new-token sniper
- scheduler.py: Periodic task used for automated fee claiming
- server.py / cli.py: MCP tool server and command-line entry points
"""

__version__ = "0.1.0"
