"""Shared item name normalization utilities."""

import re

_WHITESPACE = re.compile(r"\s+")


def canonical_key(item_name: str) -> str:
    """Normalize an item name into the key used to group repeat purchases."""
    return _WHITESPACE.sub(" ", item_name.strip().lower())


def clean_name(item_name: str) -> str:
    """Trim an edited name, keeping its original casing."""
    return item_name.strip()


def format_amount(amount: float) -> str:
    """Render a per-unit amount, dropping ``.0`` on whole numbers."""
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)
