"""Single-attempt HTTP delivery of a signed webhook payload.

Response classification:

- 200-399: success
- 400-499: permanent client error, never retried
- 500+: server error, retryable
- timeout or connection failure: retryable
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from storywire.exceptions import DeliveryError

if TYPE_CHECKING:
    from .signing import Signer

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"
EVENT_TYPE_HEADER = "X-Event-Type"

DEFAULT_TIMEOUT_SECONDS = 10.0


def classify_response(response: httpx.Response) -> None:
    """Raise DeliveryError unless the response counts as delivered."""
    code = response.status_code
    reason = response.reason_phrase

    if code >= 500:
        raise DeliveryError(
            f"Server error: {code} {reason}", retryable=True, status_code=code
        )
    if code >= 400:
        raise DeliveryError(
            f"Client error: {code} {reason} (not retrying)", retryable=False, status_code=code
        )
    if code < 200:
        raise DeliveryError(
            f"Unexpected status: {code} {reason}", retryable=False, status_code=code
        )


class DeliveryTransport:
    """Performs one signed POST with a hard per-attempt timeout.

    Args:
        signer: Signer applied to every request body.
        timeout_seconds: Upper bound on the whole attempt, connect through
            response body.
        client: Optional shared httpx client. When omitted a short-lived
            client is opened for each attempt.
    """

    def __init__(
        self,
        signer: Signer,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._signer = signer
        self._timeout = timeout_seconds
        self._client = client

    @property
    def timeout_ms(self) -> int:
        return int(self._timeout * 1000)

    def build_headers(self, body: bytes, event_type: str) -> dict[str, str]:
        """Headers for one delivery, including the body signature."""
        return {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: self._signer.sign(body),
            EVENT_TYPE_HEADER: event_type,
        }

    async def send(self, url: str, body: bytes, event_type: str) -> int:
        """POST ``body`` to ``url``.

        Args:
            url: Receiver URL.
            body: Serialized payload; transmitted byte-for-byte as signed.
            event_type: Value for the ``X-Event-Type`` header.

        Returns:
            The HTTP status code of a successful response.

        Raises:
            DeliveryError: On timeout, transport failure or a non-success status.
        """
        headers = self.build_headers(body, event_type)

        try:
            async with asyncio.timeout(self._timeout):
                if self._client is not None:
                    response = await self._post(self._client, url, body, headers)
                else:
                    async with httpx.AsyncClient(
                        timeout=self._timeout, follow_redirects=False
                    ) as client:
                        response = await self._post(client, url, body, headers)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise DeliveryError(
                f"Request timeout after {self.timeout_ms}ms", retryable=True
            ) from e
        except httpx.RequestError as e:
            raise DeliveryError(
                f"Connection error: {str(e) or type(e).__name__}", retryable=True
            ) from e

        classify_response(response)
        logger.debug("Webhook accepted by %s (status %d)", url, response.status_code)
        return response.status_code

    @staticmethod
    async def _post(
        client: httpx.AsyncClient, url: str, body: bytes, headers: dict[str, str]
    ) -> httpx.Response:
        return await client.post(url, content=body, headers=headers, follow_redirects=False)
