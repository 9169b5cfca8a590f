"""Input normalization for account lookups."""

import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str | None) -> str | None:
    """
    Normalize email to lowercase.

    Returns:
        Lowercased, stripped email or None if empty
    """
    if not email:
        return None
    return email.strip().lower()


def is_valid_email(email: str | None) -> bool:
    """Simple shape check (local@domain.tld)."""
    return bool(email) and bool(EMAIL_RE.match(email))

