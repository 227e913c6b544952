"""
Test Package for the PumpDev Client

This package contains the test suite for the PumpDev client. The integration tests
drive the workflows end to end against a mocked PumpDev HTTP API (httpx.MockTransport),
a mocked Solana RPC client and scripted WebSocket frames, with real solders
transactions and keypairs.

Test Structure:
- integration/: Tests for every component and workflow
- integration/conftest.py: Pytest fixtures and test doubles
"""

# Test package for pumpdev-client
