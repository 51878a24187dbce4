"""
Security helpers for the chatbot endpoints: caller identification and
admin passkey authentication.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

PASSKEY_HEADER = "X-Chatbot-Passkey"


def hash_passkey(passkey: str) -> str:
    """Create a SHA-256 hash of the passkey for logging (never log raw passkey)."""
    return hashlib.sha256(passkey.encode()).hexdigest()[:8]


def get_client_ip(request: Request) -> str:
    """Extract real client IP from request, handling proxies and load balancers."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, use the first one
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()

    return str(request.client.host) if request.client else ""


def log_security_event(event_type: str, ip_address: str, details: Dict[str, Any], severity: str = "WARNING") -> None:
    log_entry = {
        "event": event_type,
        "ip": ip_address,
        "severity": severity,
        **details
    }
    if severity == "ERROR":
        logger.error(f"[SECURITY] {log_entry}")
    elif severity == "INFO":
        logger.info(f"[SECURITY] {log_entry}")
    else:
        logger.warning(f"[SECURITY] {log_entry}")


def is_authenticated(request: Request, expected_passkey: str) -> bool:
    """True when the request carries the configured admin passkey."""
    provided = request.headers.get(PASSKEY_HEADER, "")
    if not expected_passkey or not provided:
        return False
    return hmac.compare_digest(provided, expected_passkey)


def require_admin(request: Request, expected_passkey: str) -> None:
    """
    Reject the request unless it carries the admin passkey.

    Raises:
        HTTPException: 401 when the passkey is missing or wrong.
    """
    if is_authenticated(request, expected_passkey):
        return

    provided = request.headers.get(PASSKEY_HEADER, "")
    client_ip = get_client_ip(request)
    if not provided:
        log_security_event(
            "auth_failure_missing_passkey",
            client_ip,
            {"path": request.url.path, "user_agent": request.headers.get('User-Agent', 'unknown')},
        )
        raise HTTPException(status_code=401, detail="Authentication required")

    log_security_event(
        "auth_failure_invalid_passkey",
        client_ip,
        {
            "path": request.url.path,
            "passkey_hash": hash_passkey(provided),
            "user_agent": request.headers.get('User-Agent', 'unknown'),
        },
        severity="ERROR",
    )
    raise HTTPException(status_code=401, detail="Authentication failed")
