"""
Centralized configuration for the Group Vibes notification service.

Provides environment-aware settings so main.py, the web routes and the
notification core read configuration the same way.
"""

import os

from .exceptions import ConfigurationError


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_frontend_port() -> int:
    """Get frontend dev server port from env or default."""
    return int(os.getenv("FRONTEND_PORT", "3000"))


def get_frontend_url() -> str:
    """Get frontend URL based on mode."""
    if is_dev_mode():
        return os.environ.get(
            "FRONTEND_URL", f"http://localhost:{get_frontend_port()}"
        ).rstrip("/")
    if is_production():
        return os.environ.get("FRONTEND_URL", f"http://localhost:{get_api_port()}")
    return f"http://localhost:{get_api_port()}"


def get_allowed_origins() -> list[str]:
    """
    Get list of allowed CORS origins.

    Includes localhost variants for dev and the production frontend URL.
    """
    ports = [get_api_port(), get_frontend_port()]
    hosts = ["localhost", "127.0.0.1"]
    origins = [f"http://{host}:{port}" for host in hosts for port in ports]

    frontend_url = get_frontend_url()
    if frontend_url not in origins:
        origins.append(frontend_url)

    env_frontend = os.environ.get("FRONTEND_URL")
    if env_frontend and env_frontend not in origins:
        origins.append(env_frontend)

    return origins


def get_cron_secret() -> str:
    """
    Get the shared secret the cron trigger must present.

    Raises:
        ConfigurationError: If CRON_SECRET is not set
    """
    secret = os.environ.get("CRON_SECRET")
    if not secret:
        raise ConfigurationError("CRON_SECRET environment variable not set")
    return secret


def get_vapid_settings() -> dict[str, str]:
    """
    Get VAPID key material for web push.

    Returns:
        Dict with public_key, private_key and subject (a mailto: or https: URL)

    Raises:
        ConfigurationError: If either key is missing
    """
    public_key = os.environ.get("VAPID_PUBLIC_KEY")
    private_key = os.environ.get("VAPID_PRIVATE_KEY")
    if not public_key or not private_key:
        raise ConfigurationError(
            "VAPID keys not configured. Set VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY."
        )
    return {
        "public_key": public_key,
        "private_key": private_key,
        "subject": os.environ.get("VAPID_SUBJECT", "mailto:notifications@groupvibes.nl"),
    }


def is_ping_scheduler_enabled() -> bool:
    """Check if the ping cycle should also run in-process (RUN_PING_SCHEDULER)."""
    return os.getenv("RUN_PING_SCHEDULER", "").lower() in ("true", "1", "yes")


def get_ping_interval_minutes() -> int:
    """Minutes between in-process ping cycles."""
    return int(os.getenv("PING_INTERVAL_MINUTES", "5"))


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for session tokens", True),
    ("CRON_SECRET", "Shared secret for the cron ping endpoint", True),
    ("VAPID_PUBLIC_KEY", "Web push VAPID public key", False),
    ("VAPID_PRIVATE_KEY", "Web push VAPID private key", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
