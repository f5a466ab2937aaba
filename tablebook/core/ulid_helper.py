"""ULID and secret generation helpers."""

import secrets
from typing import Optional

import ulid

REDEMPTION_SECRET_PREFIX = "qs"


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def parse_ulid(ulid_str: str) -> Optional[ulid.ULID]:
    """Parse and validate a ULID string."""
    try:
        return ulid.ULID.from_str(ulid_str)
    except (ValueError, AttributeError, TypeError):
        return None


def is_valid_ulid(ulid_str: str) -> bool:
    return parse_ulid(ulid_str) is not None


def generate_redemption_secret() -> str:
    """Single-use secret printed into a booking's entry QR code."""
    return f"{REDEMPTION_SECRET_PREFIX}{secrets.token_hex(12)}"
