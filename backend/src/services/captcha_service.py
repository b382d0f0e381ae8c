"""
Cloudflare Turnstile CAPTCHA verification for the public booking flow.
"""

import logging
from typing import Optional

import httpx
from fastapi import HTTPException, status

from core.config import (
    CAPTCHA_ENABLED, TURNSTILE_SECRET_KEY, TURNSTILE_TIMEOUT_SECONDS, TURNSTILE_VERIFY_URL
)

logger = logging.getLogger(__name__)


def verify_challenge(token: Optional[str], remote_ip: Optional[str] = None) -> bool:
    """
    Verify a Turnstile token with Cloudflare.

    Verification is skipped (True) when CAPTCHA is disabled. When enabled, a
    missing token or a missing secret fails closed.

    Args:
        token: Turnstile token from the client
        remote_ip: Client IP address (optional)

    Returns:
        True if verification succeeded, False otherwise

    Raises:
        HTTPException: 503 if the verification service cannot be reached
    """
    if not CAPTCHA_ENABLED:
        return True

    if not token:
        logger.warning(f"❌ Turnstile token missing for IP: {remote_ip}")
        return False

    if not TURNSTILE_SECRET_KEY:
        logger.error("❌ CAPTCHA is enabled but TURNSTILE_SECRET_KEY is not configured")
        return False

    payload = {"secret": TURNSTILE_SECRET_KEY, "response": token}
    if remote_ip:
        payload["remoteip"] = remote_ip

    try:
        with httpx.Client(timeout=TURNSTILE_TIMEOUT_SECONDS) as client:
            response = client.post(TURNSTILE_VERIFY_URL, data=payload)
            response.raise_for_status()
            result = response.json()
    except httpx.HTTPError as e:
        logger.error(f"❌ Turnstile verification error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Human verification service unavailable, please try again"
        )

    success = bool(result.get("success", False))
    if success:
        logger.info(f"✅ Turnstile verification successful for IP: {remote_ip}")
    else:
        logger.warning(
            f"❌ Turnstile verification failed for IP: {remote_ip} - Errors: {result.get('error-codes', [])}"
        )
    return success
