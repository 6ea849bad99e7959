"""Tests for single-attempt webhook delivery."""

import asyncio

import httpx
import pytest

from storywire.exceptions import DeliveryError
from storywire.webhooks import (
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    DeliveryTransport,
    Signer,
    classify_response,
    verify_signature,
)

URL = "https://hooks.example.com/storywire"
BODY = b'{"shortId":"JB-1"}'


def _response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", URL))


class TestClassifyResponse:
    """Tests for response classification."""

    @pytest.mark.parametrize("code", [200, 201, 204, 301, 302, 399])
    def test_success(self, code):
        classify_response(_response(code))

    @pytest.mark.parametrize("code", [500, 502, 503, 504])
    def test_server_error_is_retryable(self, code):
        with pytest.raises(DeliveryError) as exc_info:
            classify_response(_response(code))
        assert exc_info.value.retryable
        assert exc_info.value.status_code == code
        assert exc_info.value.message.startswith(f"Server error: {code}")

    @pytest.mark.parametrize("code", [400, 401, 404, 410, 422, 429])
    def test_client_error_is_permanent(self, code):
        with pytest.raises(DeliveryError) as exc_info:
            classify_response(_response(code))
        assert not exc_info.value.retryable
        assert exc_info.value.message.endswith("(not retrying)")

    def test_server_error_message(self):
        with pytest.raises(DeliveryError, match="^Server error: 503 Service Unavailable$"):
            classify_response(_response(503))

    def test_client_error_message(self):
        with pytest.raises(
            DeliveryError, match=r"^Client error: 404 Not Found \(not retrying\)$"
        ):
            classify_response(_response(404))


class TestDeliveryTransport:
    """Tests for DeliveryTransport.send."""

    @pytest.mark.asyncio
    async def test_signed_post(self, responder, recorded_requests):
        """The request should carry the body, signature and event type."""
        transport = DeliveryTransport(Signer("secret"), client=responder(200))

        status = await transport.send(URL, BODY, "state-transition")

        assert status == 200
        [request] = recorded_requests
        assert request.method == "POST"
        assert str(request.url) == URL
        assert request.content == BODY
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers[EVENT_TYPE_HEADER] == "state-transition"
        assert verify_signature(BODY, "secret", request.headers[SIGNATURE_HEADER])

    @pytest.mark.asyncio
    async def test_redirect_not_followed(self, responder, recorded_requests):
        """A 3xx response counts as delivered and is not followed."""
        transport = DeliveryTransport(Signer("secret"), client=responder(302))

        assert await transport.send(URL, BODY, "state-transition") == 302
        assert len(recorded_requests) == 1

    @pytest.mark.asyncio
    async def test_server_error(self, responder):
        transport = DeliveryTransport(Signer("secret"), client=responder(503))

        with pytest.raises(DeliveryError) as exc_info:
            await transport.send(URL, BODY, "state-transition")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_client_error(self, responder):
        transport = DeliveryTransport(Signer("secret"), client=responder(404))

        with pytest.raises(DeliveryError) as exc_info:
            await transport.send(URL, BODY, "state-transition")
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_httpx_timeout(self, responder):
        """A transport-level timeout is retryable with a timeout message."""
        client = responder(httpx.ReadTimeout("timed out"))
        transport = DeliveryTransport(Signer("secret"), timeout_seconds=10.0, client=client)

        with pytest.raises(DeliveryError) as exc_info:
            await transport.send(URL, BODY, "state-transition")
        assert exc_info.value.retryable
        assert exc_info.value.message == "Request timeout after 10000ms"

    @pytest.mark.asyncio
    async def test_hard_timeout(self):
        """A receiver slower than the timeout is cut off."""

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        transport = DeliveryTransport(Signer("secret"), timeout_seconds=0.05, client=client)

        with pytest.raises(DeliveryError) as exc_info:
            await transport.send(URL, BODY, "state-transition")
        assert exc_info.value.retryable
        assert exc_info.value.message.startswith("Request timeout after")

    @pytest.mark.asyncio
    async def test_connection_error(self, responder):
        client = responder(httpx.ConnectError("Connection refused"))
        transport = DeliveryTransport(Signer("secret"), client=client)

        with pytest.raises(DeliveryError) as exc_info:
            await transport.send(URL, BODY, "state-transition")
        assert exc_info.value.retryable
        assert exc_info.value.message == "Connection error: Connection refused"

    @pytest.mark.asyncio
    async def test_error_never_contains_secret(self, responder):
        client = responder(httpx.ConnectError("Connection refused"))
        transport = DeliveryTransport(Signer("top-secret-value"), client=client)

        with pytest.raises(DeliveryError) as exc_info:
            await transport.send(URL, BODY, "state-transition")
        assert "top-secret-value" not in str(exc_info.value)

    def test_timeout_ms(self):
        assert DeliveryTransport(Signer("secret")).timeout_ms == 10000
