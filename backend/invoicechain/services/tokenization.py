"""Mock tokenization reference.

No ledger is contacted; the reference has the shape of an EVM
transaction hash so downstream displays need no special casing.
"""

import secrets


def mint_token_reference() -> str:
    """Return a random ``0x``-prefixed 40 hex character reference."""
    return "0x" + secrets.token_hex(20)
