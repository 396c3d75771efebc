"""
Tests for boundary input validation.
"""

from sealbid.utils.validation import (
    MAX_CIPHERTEXT_SIZE,
    validate_amount,
    validate_bid_payload,
    validate_identity,
    validate_signature,
)


class TestValidation:
    """Each validator returns (ok, error_message)."""

    def test_identity(self):
        assert validate_identity("0x" + "ab" * 20) == (True, "")
        ok, err = validate_identity("0xabc", "beneficiary")
        assert not ok
        assert "beneficiary" in err

    def test_amount(self):
        assert validate_amount(0)[0]
        assert not validate_amount(-1)[0]
        assert not validate_amount(True)[0]
        assert not validate_amount(1.5)[0]
        assert not validate_amount(5, min_val=10)[0]

    def test_signature_length(self):
        assert validate_signature(b"\x00" * 65)[0]
        assert not validate_signature(b"\x00" * 64)[0]
        assert not validate_signature("00" * 65)[0]

    def test_bid_payload(self):
        assert validate_bid_payload(b"c", b"p", b"k") == (True, "")
        assert not validate_bid_payload(b"", b"p", b"k")[0]
        assert not validate_bid_payload(b"c", None, b"k")[0]
        ok, err = validate_bid_payload(b"c" * (MAX_CIPHERTEXT_SIZE + 1), b"p", b"k")
        assert not ok
        assert "ciphertext" in err
