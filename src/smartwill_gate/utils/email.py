# src/smartwill_gate/utils/email.py
"""Email address helpers shared by the code store and the user store."""


def normalize_email(email: str) -> str:
    """Return the canonical form used to key records by email."""
    return email.strip().lower()
