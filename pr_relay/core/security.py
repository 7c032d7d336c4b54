"""Webhook signature verification."""

import hashlib
import hmac

from pr_relay.config import settings
from pr_relay.core.exceptions import SignatureVerificationError
from pr_relay.core.logging import get_logger

logger = get_logger("security")


def verify_github_signature(payload: bytes, signature: str, secret: str | None = None) -> bool:
    """Verify GitHub webhook signature using HMAC-SHA256.

    Args:
        payload: Raw request body bytes
        signature: X-Hub-Signature-256 header value
        secret: Shared secret, defaults to the configured webhook secret

    Returns:
        True if valid, False otherwise
    """
    secret = secret if secret is not None else settings.github_webhook_secret
    if not secret:
        logger.warning("No GitHub webhook secret configured, skipping verification")
        return True

    if not signature:
        logger.warning("Webhook request missing signature header")
        return False

    expected = hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256,
    ).hexdigest()

    expected_signature = f"sha256={expected}"
    return hmac.compare_digest(expected_signature, signature)


def require_github_signature(payload: bytes, signature: str, secret: str | None = None) -> None:
    """Verify GitHub signature or raise exception.

    Raises:
        SignatureVerificationError: If signature is invalid
    """
    if not verify_github_signature(payload, signature, secret):
        logger.warning("Invalid GitHub webhook signature")
        raise SignatureVerificationError("GitHub webhook")
