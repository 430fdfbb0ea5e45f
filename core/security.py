# core/security.py
"""
Security helpers for the Telegram webhook.
"""
import secrets

# Header Telegram sends with every update when a secret_token was registered
WEBHOOK_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_webhook_secret(expected: str | None, provided: str | None) -> bool:
    """
    Check the secret header of an incoming update.

    With no secret configured every request is accepted.
    """
    if not expected:
        return True
    if not provided:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
