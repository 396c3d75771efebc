"""
Key binding signatures.

A bidder proves that the encryption key used to produce their ciphertext
proof is theirs by signing a typed-data digest of that key:

    structHash = keccak256(PUBLIC_KEY_TYPEHASH || keccak256(declared_key))
    digest     = keccak256(0x19 0x01 || domainSeparator || structHash)

The verifier recovers the signer from the signature and requires it to be
the caller, which blocks submitting another identity's key (or replaying
their signature) under a different caller.
"""

from sealbid.crypto import (
    domain_separator,
    keccak256,
    normalize_address,
    recover_address,
    sign,
    typed_data_digest,
)
from sealbid.core.errors import InvalidSignature
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import validate_signature

logger = get_logger("signature")

PUBLIC_KEY_TYPEHASH = keccak256(b"PublicKey(bytes publicKey)")


class SignatureVerifier:
    """
    Verifies that a declared key is bound to a caller identity.

    One verifier is bound to one deployment domain.
    """

    def __init__(
        self,
        verifying_contract: str,
        chain_id: int = 31337,
        name: str = "SealedBidAuction",
        version: str = "1",
    ):
        self.verifying_contract = normalize_address(verifying_contract)
        self.chain_id = chain_id
        self.separator = domain_separator(name, version, chain_id, self.verifying_contract)

    def key_digest(self, declared_key: bytes) -> bytes:
        """Typed-data digest a bidder signs for their key."""
        struct_hash = keccak256(PUBLIC_KEY_TYPEHASH + keccak256(declared_key))
        return typed_data_digest(self.separator, struct_hash)

    def verify_key_binding(self, caller: str, declared_key: bytes, signature: bytes) -> bool:
        """
        Check that `signature` over `declared_key` was made by `caller`.

        Returns:
            True on success

        Raises:
            InvalidSignature: if the signature is malformed or the recovered
                signer is not the caller
        """
        ok, err = validate_signature(signature)
        if not ok:
            raise InvalidSignature(err, details={"caller": caller})

        signer = recover_address(self.key_digest(declared_key), bytes(signature))
        if signer is None:
            raise InvalidSignature("Malformed key binding signature", details={"caller": caller})
        if signer != normalize_address(caller):
            logger.debug(f"Key binding signer {signer} does not match caller {caller}")
            raise InvalidSignature(
                "Key binding signer does not match caller",
                details={"caller": caller, "signer": signer},
            )
        return True

    def sign_key_binding(self, private_key: bytes, declared_key: bytes) -> bytes:
        """Produce the signature a client attaches to its bids."""
        return sign(self.key_digest(declared_key), private_key)
