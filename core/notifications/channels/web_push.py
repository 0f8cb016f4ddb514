"""Web push delivery channel (VAPID-signed, via pywebpush)."""

import asyncio

from pywebpush import WebPushException, webpush

from core.config import get_vapid_settings
from core.exceptions import DeliveryError, SubscriptionGoneError
from core.notifications.templates import PushPayload


# Push service statuses meaning the subscription will never work again
PERMANENT_FAILURE_STATUSES = (404, 410)

PUSH_TTL_SECONDS = 24 * 60 * 60
PUSH_TIMEOUT_SECONDS = 10


def _deliver(subscription_info: dict, data: str, vapid: dict) -> None:
    """Blocking pywebpush call; run in a worker thread."""
    webpush(
        subscription_info=subscription_info,
        data=data,
        vapid_private_key=vapid["private_key"],
        # pywebpush adds aud/exp to the claims dict, so pass a fresh one
        vapid_claims={"sub": vapid["subject"]},
        ttl=PUSH_TTL_SECONDS,
        timeout=PUSH_TIMEOUT_SECONDS,
    )


async def send_push(subscription: dict, payload: PushPayload) -> None:
    """
    Deliver a payload to one push subscription.

    Args:
        subscription: Row with endpoint, p256dh and auth
        payload: Payload to JSON-encode and send

    Raises:
        ConfigurationError: If VAPID keys are not configured
        SubscriptionGoneError: If the push service returned 404 or 410
        DeliveryError: For any other failure (other statuses, network errors)
    """
    vapid = get_vapid_settings()
    endpoint = subscription["endpoint"]
    subscription_info = {
        "endpoint": endpoint,
        "keys": {
            "p256dh": subscription["p256dh"],
            "auth": subscription["auth"],
        },
    }

    try:
        await asyncio.to_thread(_deliver, subscription_info, payload.to_json(), vapid)
    except WebPushException as e:
        # Response objects are falsy for 4xx/5xx, so compare against None
        status_code = e.response.status_code if e.response is not None else None
        if status_code in PERMANENT_FAILURE_STATUSES:
            raise SubscriptionGoneError(
                f"Subscription gone ({status_code})",
                status_code=status_code,
                endpoint=endpoint,
            ) from e
        raise DeliveryError(str(e), status_code=status_code, endpoint=endpoint) from e
    except Exception as e:
        raise DeliveryError(str(e), endpoint=endpoint) from e
