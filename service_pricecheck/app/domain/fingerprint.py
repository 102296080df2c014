"""
Canonical request fingerprint shared by the result cache and request pooling.
"""

from typing import Optional


def make_fingerprint(
    item_name: Optional[str],
    model: Optional[str] = None,
    brand: Optional[str] = None,
    condition: Optional[str] = None,
) -> str:
    """Lower-cased, pipe-joined request parameters; absent fields become empty strings."""
    parts = [item_name, model, brand, condition]
    return "|".join((part or "").strip() for part in parts).lower()
