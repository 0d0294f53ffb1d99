"""
Lightning utility functions
Preimage verification and integer money conversions
"""

import hashlib
import logging
import re
import secrets
from typing import Tuple

logger = logging.getLogger(__name__)

_HEX_32_BYTES = re.compile(r"^[0-9a-fA-F]{64}$")


def is_valid_preimage(value: str) -> bool:
    """
    Check that a value looks like a Lightning preimage or payment hash.

    Args:
        value: Candidate hex string

    Returns:
        True if value is 64 hex characters (32 bytes)
    """
    return isinstance(value, str) and bool(_HEX_32_BYTES.match(value))


def hash_preimage(preimage: str) -> str:
    """
    Calculate the payment hash for a preimage.

    Args:
        preimage: Preimage as hex string

    Returns:
        Hexadecimal SHA256 of the preimage bytes
    """
    return hashlib.sha256(bytes.fromhex(preimage)).hexdigest()


def verify_preimage(preimage: str, payment_hash: str) -> bool:
    """
    Verify a payment preimage matches a payment hash.

    Malformed input never raises, it just fails verification.

    Args:
        preimage: Payment preimage (hex string)
        payment_hash: Payment hash (hex string)

    Returns:
        True if sha256(preimage) == payment_hash (case-insensitive)
    """
    if not is_valid_preimage(preimage) or not is_valid_preimage(payment_hash):
        return False

    computed = hash_preimage(preimage)
    is_valid = secrets.compare_digest(computed, payment_hash.lower())
    if not is_valid:
        logger.warning(
            f"Preimage verification failed (computed {computed[:10]}..., expected {payment_hash[:10]}...)"
        )
    return is_valid


def generate_invoice_secret() -> Tuple[str, str]:
    """
    Generate a random preimage and its payment hash.

    Returns:
        (preimage, payment_hash) as hex strings
    """
    preimage = secrets.token_hex(32)
    return preimage, hash_preimage(preimage)


def cents_to_sats(cents: int, sats_per_usd: int) -> int:
    """
    Convert USD cents to satoshis, rounding down.

    Args:
        cents: Amount in USD cents
        sats_per_usd: Conversion rate

    Returns:
        floor(cents / 100 * sats_per_usd), computed in integers
    """
    if cents < 0:
        raise ValueError("cents must not be negative")
    return (cents * sats_per_usd) // 100


def calculate_fee(amount_cents: int, fee_percent: int) -> Tuple[int, int]:
    """
    Split an amount into platform fee and runner net.

    Args:
        amount_cents: Gross amount in cents
        fee_percent: Platform fee as an integer percentage in [0, 100]

    Returns:
        (fee_cents, net_cents) where fee is rounded down and
        fee_cents + net_cents == amount_cents
    """
    if amount_cents < 0:
        raise ValueError("amount_cents must not be negative")
    if fee_percent < 0 or fee_percent > 100:
        raise ValueError("fee_percent must be between 0 and 100")
    fee_cents = (amount_cents * fee_percent) // 100
    return fee_cents, amount_cents - fee_cents
