"""
Version constants for jsonrpc-ws.

- CLIENT_VERSION: User-facing package version
- JSONRPC_VERSION: Value of the "jsonrpc" member of every message we send
"""

from __future__ import annotations

# jsonrpc-ws version (user-facing semver)
CLIENT_VERSION = "1.0.0"

# JSON-RPC protocol version spoken on the wire
JSONRPC_VERSION = "2.0"
