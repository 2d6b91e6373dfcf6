"""Tests for jsonrpc_ws._core.version module."""

import jsonrpc_ws
from jsonrpc_ws._core.version import CLIENT_VERSION, JSONRPC_VERSION


class TestVersionConstants:
    """Tests for version constants."""

    def test_client_version_format(self):
        """Client version should be valid semver."""
        parts = CLIENT_VERSION.split(".")
        assert len(parts) == 3
        for part in parts:
            assert part.isdigit()

    def test_package_version(self):
        """__version__ matches the client version."""
        assert jsonrpc_ws.__version__ == CLIENT_VERSION

    def test_jsonrpc_version(self):
        assert JSONRPC_VERSION == "2.0"
