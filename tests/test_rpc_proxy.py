# =============================================================================
# CHASM RPC PROXY TESTS
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest
import requests


class TestBuildRpcBody:
    """Test JSON-RPC defaults."""

    def test_defaults(self):
        """Version, params and id are filled in."""
        from chasm.infra.rpc_proxy import build_rpc_body

        assert build_rpc_body("eth_blockNumber") == {
            "jsonrpc": "2.0",
            "method": "eth_blockNumber",
            "params": [],
            "id": 1,
        }

    def test_explicit_values_kept(self):
        """Caller values are not overwritten, including id 0."""
        from chasm.infra.rpc_proxy import build_rpc_body

        body = build_rpc_body("eth_call", params=[{"to": "0x1"}], request_id=0, jsonrpc="1.0")
        assert body["params"] == [{"to": "0x1"}]
        assert body["id"] == 0
        assert body["jsonrpc"] == "1.0"


class TestForwardRpc:
    """Test forward_rpc."""

    @patch("chasm.infra.rpc_proxy.requests.post")
    def test_returns_decoded_reply(self, mock_post):
        """The upstream JSON is returned as-is."""
        from chasm.infra.rpc_proxy import forward_rpc

        mock_post.return_value = MagicMock(json=lambda: {"result": "0x1"})
        assert forward_rpc("http://node", {"method": "eth_chainId"}) == {"result": "0x1"}
        assert mock_post.call_args[1]["timeout"] == 30

    @patch("chasm.infra.rpc_proxy.requests.post")
    def test_connection_error(self, mock_post):
        """Transport failures carry no status code."""
        from chasm.infra.rpc_proxy import ProxyError, forward_rpc

        mock_post.side_effect = requests.Timeout("slow")
        with pytest.raises(ProxyError) as exc_info:
            forward_rpc("http://node", {"method": "eth_chainId"})

        assert exc_info.value.status_code is None
        assert "slow" in str(exc_info.value)
