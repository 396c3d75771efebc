"""
Input Validation - Sanitization of values crossing the engine boundary.

Provides validation for external inputs to prevent:
- Malformed identities
- Negative or oversized amounts
- Oversized ciphertexts, proofs and keys
"""

from typing import Any, Optional, Tuple

from sealbid.crypto import SIGNATURE_LENGTH, is_valid_address

# =============================================================================
# Constants
# =============================================================================

MAX_CIPHERTEXT_SIZE = 64 * 1024
MAX_PROOF_SIZE = 64 * 1024
MAX_KEY_SIZE = 8 * 1024

MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_identity(identity: Any, name: str = "identity") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte address."""
    if not is_valid_address(identity):
        return False, f"{name} must be a 0x-prefixed 20-byte address, got {identity!r}"
    return True, ""


def validate_amount(
    value: Any,
    name: str = "amount",
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer amount within bounds.

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_signature(signature: Any) -> Tuple[bool, str]:
    """Validate a recoverable signature (r || s || v)."""
    return validate_bytes(signature, "signature", expected_length=SIGNATURE_LENGTH)


def validate_bid_payload(
    ciphertext: Any,
    proof: Any,
    declared_key: Any,
) -> Tuple[bool, str]:
    """Validate the opaque parts of a bid submission."""
    for data, name, limit in (
        (ciphertext, "ciphertext", MAX_CIPHERTEXT_SIZE),
        (proof, "proof", MAX_PROOF_SIZE),
        (declared_key, "declared_key", MAX_KEY_SIZE),
    ):
        ok, err = validate_bytes(data, name, max_length=limit)
        if not ok:
            return ok, err
        if len(data) == 0:
            return False, f"{name} must not be empty"
    return True, ""
