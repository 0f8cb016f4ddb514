"""Error types for the notification system."""


class NotificationError(Exception):
    """Base class for notification scheduling and delivery errors."""


class AuthorizationError(NotificationError):
    """Cron caller did not present a valid shared secret."""


class ConfigurationError(NotificationError):
    """Required secret, key material or timezone is missing or malformed."""


class TransientStoreError(NotificationError):
    """Database operation still failing after retries."""


class SchedulingInputError(NotificationError, ValueError):
    """Malformed frequency, day or hour input. Never escapes the scheduler."""


class DeliveryError(NotificationError):
    """
    Push delivery to a single subscription failed.

    Attributes:
        status_code: HTTP status from the push service, None for network errors
        endpoint: Subscription endpoint the delivery was for
    """

    permanent = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class SubscriptionGoneError(DeliveryError):
    """Push service reported the subscription as expired or unknown (410/404)."""

    permanent = True


class UnknownTimezoneError(ConfigurationError):
    """A stored timezone id is not in the timezone database."""
