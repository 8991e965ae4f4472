"""Web Push delivery via pywebpush (VAPID)."""

import logging

from pywebpush import WebPushException, webpush

from storm_intel.errors import PushDeliveryError

logger = logging.getLogger(__name__)


class WebPushTransport:
    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        ttl_seconds: int = 3600,
        timeout_seconds: float = 10.0,
    ):
        self._vapid_private_key = vapid_private_key
        self._vapid_subject = vapid_subject
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self._vapid_private_key)

    def send(self, endpoint: str, p256dh: str, auth: str, payload: str) -> None:
        """Deliver one payload. Blocking; raises PushDeliveryError on failure."""
        if not self.configured:
            raise PushDeliveryError("VAPID keys are not configured")

        try:
            webpush(
                subscription_info={"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}},
                data=payload,
                vapid_private_key=self._vapid_private_key,
                vapid_claims={"sub": self._vapid_subject},
                ttl=self.ttl_seconds,
                timeout=self.timeout_seconds,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            raise PushDeliveryError(str(e), status_code=status) from e
