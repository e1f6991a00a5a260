"""Configuration for the identity lookup client.

Resolution order: explicit argument > env var > default.

Environment variables:
- IDENTITY_SERVER_URL: Base URL of the identity server (required unless passed)
- IDENTITY_SERVER_TIMEOUT: Request timeout in seconds (default: 30)
- IDENTITY_SERVER_USER_AGENT: User-Agent header sent with every request
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "identity-lookup/0.1"


@dataclass(frozen=True)
class IdentityServerConfig:
    """Connection settings for one identity server."""

    base_url: str
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT


def normalize_base_url(url: str) -> str:
    """Add a default https:// scheme and strip trailing slashes."""
    url = url.strip()
    if not url:
        raise ValueError("Identity server URL must not be empty")
    if "://" not in url:
        url = f"https://{url}"
    return url.rstrip("/")


def _parse_timeout(raw: str) -> float:
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ValueError(f"IDENTITY_SERVER_TIMEOUT must be a number, got {raw!r}") from exc
    if timeout <= 0:
        raise ValueError("IDENTITY_SERVER_TIMEOUT must be positive")
    return timeout


def load_config(
    base_url: str | None = None,
    timeout: float | None = None,
) -> IdentityServerConfig:
    """Build an IdentityServerConfig from arguments and the environment.

    Raises:
        ValueError: If no base URL is configured or the timeout is invalid
    """
    url = base_url or os.environ.get("IDENTITY_SERVER_URL", "").strip()
    if not url:
        raise ValueError("No identity server configured (set IDENTITY_SERVER_URL)")

    if timeout is None:
        raw_timeout = os.environ.get("IDENTITY_SERVER_TIMEOUT", "").strip()
        timeout = _parse_timeout(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
    elif timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout!r}")

    user_agent = os.environ.get("IDENTITY_SERVER_USER_AGENT", "").strip() or DEFAULT_USER_AGENT

    return IdentityServerConfig(
        base_url=normalize_base_url(url),
        timeout=timeout,
        user_agent=user_agent,
    )
