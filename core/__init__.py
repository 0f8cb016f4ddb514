"""
Core business logic - platform-agnostic.
Used by the web API and the in-process ping scheduler.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Errors
from .exceptions import (
    NotificationError, AuthorizationError, ConfigurationError, UnknownTimezoneError,
    TransientStoreError, DeliveryError, SubscriptionGoneError, SchedulingInputError,
)

# Timezone utilities
from .timezone import get_timezone, is_valid_timezone, to_local, local_to_utc

__all__ = [
    # Database (SQLAlchemy)
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Errors
    'NotificationError', 'AuthorizationError', 'ConfigurationError', 'UnknownTimezoneError',
    'TransientStoreError', 'DeliveryError', 'SubscriptionGoneError', 'SchedulingInputError',
    # Timezone
    'get_timezone', 'is_valid_timezone', 'to_local', 'local_to_utc',
]
