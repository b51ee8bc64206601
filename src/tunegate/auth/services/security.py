"""Redirect URI validation for the PKCE flow."""

from __future__ import annotations

from urllib.parse import urlparse

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "[::1]", "::1")


def validate_redirect_uri(uri: str) -> bool:
    """Validate redirect URI meets OAuth 2.1 security requirements.

    Args:
        uri: Redirect URI to validate

    Returns:
        True if the URI is HTTPS, or plain HTTP on a loopback host
    """
    try:
        parsed = urlparse(uri)
    except ValueError:
        return False

    if not parsed.netloc or parsed.fragment:
        return False

    return parsed.scheme == "https" or (
        parsed.scheme == "http" and parsed.hostname in LOOPBACK_HOSTS
    )

