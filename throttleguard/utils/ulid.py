"""ULID generation utility for ThrottleGuard.

Account identifiers are ULIDs: 26 Crockford Base32 characters, sortable by
creation time, URL-safe. Uses the `python-ulid` library; do NOT hand-roll ULIDs.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: e.g. ``"01KJ0JRVHYA7KX32VPN5ZSCTMV"``.
    """
    return str(ULID())
