"""
Unit tests for auth_token lookup.

requests.get is patched; no network access.
"""
from unittest.mock import MagicMock, patch

import requests

from ws_client.tradingview.auth import extract_auth_token, get_auth_token
from ws_client.tradingview.config import AUTH_URL, UNAUTHORIZED_TOKEN


def _response(text):
    resp = MagicMock()
    resp.text = text
    return resp


class TestExtract:
    def test_found(self):
        html = '<script>var user = {"id":1,"auth_token":"eyJabc.def","pro":true};</script>'
        assert extract_auth_token(html) == "eyJabc.def"

    def test_missing(self):
        assert extract_auth_token("<html></html>") is None
        assert extract_auth_token(None) is None


class TestLookup:
    @patch("ws_client.tradingview.auth.requests.get")
    def test_token_returned_and_cookie_sent(self, mock_get):
        mock_get.return_value = _response('..."auth_token":"tok-1"...')

        assert get_auth_token("sid42") == "tok-1"
        args, kwargs = mock_get.call_args
        assert args[0] == AUTH_URL
        assert kwargs["headers"]["Cookie"] == "sessionid=sid42"
        assert kwargs["timeout"] > 0

    @patch("ws_client.tradingview.auth.requests.get")
    def test_no_token_falls_back(self, mock_get, diagnostics):
        mock_get.return_value = _response("<html>login</html>")

        assert get_auth_token("sid", diagnostics=diagnostics) == UNAUTHORIZED_TOKEN
        assert diagnostics.kinds == ["auth_fallback"]

    @patch("ws_client.tradingview.auth.requests.get")
    def test_network_error_falls_back(self, mock_get, diagnostics):
        mock_get.side_effect = requests.ConnectionError("dns")

        assert get_auth_token("sid", diagnostics=diagnostics) == UNAUTHORIZED_TOKEN
        assert diagnostics.kinds == ["auth_fallback"]
