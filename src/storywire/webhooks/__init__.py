"""Webhook notification pipeline for Storywire.

Detects story status changes, records them as webhook events and delivers
them as HMAC-signed POSTs with exponential backoff retry.

Example:
    ```python
    from storywire.webhooks import (
        ChangeDetector,
        NotificationPipeline,
        WebhookDispatcher,
    )

    pipeline = NotificationPipeline(
        ChangeDetector(storage),
        WebhookDispatcher.from_settings(storage, settings),
    )
    event = await pipeline.story_updated(before, after)
    ```

Receivers verify a delivery with ``verify_signature(raw_body, secret,
request.headers["X-Signature"])``.
"""

from .detector import ChangeDetector, did_status_change, read_snapshot
from .dispatcher import (
    BASE_RETRY_DELAY_MS,
    MAX_ATTEMPTS,
    PROJECT_NOT_FOUND,
    WebhookDispatcher,
    backoff_delay_ms,
    backoff_delays,
)
from .pipeline import NotificationPipeline
from .signing import Signer, compute_signature, verify_signature
from .transport import (
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    DeliveryTransport,
    classify_response,
)

__all__ = [
    "BASE_RETRY_DELAY_MS",
    "ChangeDetector",
    "DeliveryTransport",
    "EVENT_TYPE_HEADER",
    "MAX_ATTEMPTS",
    "NotificationPipeline",
    "PROJECT_NOT_FOUND",
    "SIGNATURE_HEADER",
    "Signer",
    "WebhookDispatcher",
    "backoff_delay_ms",
    "backoff_delays",
    "classify_response",
    "compute_signature",
    "did_status_change",
    "read_snapshot",
    "verify_signature",
]
