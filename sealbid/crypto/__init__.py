"""
Cryptographic primitives for sealbid.

This module provides:
- Hashing functions (Keccak-256, SHA-256)
- Key generation and Ethereum-style addresses
- Recoverable ECDSA signatures on secp256k1 (r || s || v)
- Signer recovery (address from message hash + signature)
- Typed-data digests with a domain separator

Design Notes:
-------------
Identities are 0x-prefixed 20-byte addresses derived from the keccak256 of
the uncompressed public key. A signature carries its recovery byte so the
verifier can recover the signer without knowing its public key in advance,
which is what binds a declared encryption key to a caller.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

SIGNATURE_LENGTH = 65
ADDRESS_LENGTH = 20
ZERO_ADDRESS = "0x" + "00" * ADDRESS_LENGTH

# Prefix for typed structured data (EIP-191 version 0x01)
TYPED_DATA_PREFIX = b"\x19\x01"

EIP712_DOMAIN_TYPE = (
    b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation, typed-data digests, attestations.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def uint256(value: int) -> bytes:
    """Encode an unsigned integer as a 32-byte big-endian word."""
    if value < 0 or value >= 2**256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return value.to_bytes(32, byteorder="big")


def address_word(address: str) -> bytes:
    """Encode an address as a left-padded 32-byte word."""
    return hex_to_bytes(address).rjust(32, b"\x00")


# =============================================================================
# Keys and Addresses
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> str:
        """Checksum-free lowercase address derived from the public key."""
        return address_from_public_key(self.public_key)

    @property
    def private_key_hex(self) -> str:
        return self.private_key.hex()

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()


def _point_to_bytes(point) -> bytes:
    return point[0].to_bytes(32, byteorder="big") + point[1].to_bytes(32, byteorder="big")


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def keypair_from_private_key(private_key: bytes) -> KeyPair:
    """Rebuild a keypair from a stored private key."""
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.

    Args:
        private_key: 32-byte private key

    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    return _point_to_bytes(secp256k1.privtopub(private_key))


def address_from_public_key(public_key: bytes) -> str:
    """
    Address = last 20 bytes of keccak256(public_key), hex with 0x prefix.
    """
    if len(public_key) != 64:
        raise ValueError(f"Public key must be 64 bytes, got {len(public_key)}")
    return "0x" + keccak256(public_key)[-ADDRESS_LENGTH:].hex()


def normalize_address(address: str) -> str:
    """Lowercase an address so comparisons are case-insensitive."""
    return address.lower()


# =============================================================================
# Recoverable Signatures
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a message hash with a recoverable ECDSA signature.

    Args:
        message_hash: 32-byte hash of the message to sign
        private_key: 32-byte private key

    Returns:
        65-byte signature (r || s || v), v in {27, 28}

    Note: py_ecc produces deterministic, low-s signatures (RFC 6979 / EIP-2)
    and adjusts v accordingly.
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)
    return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big") + bytes([v])


def recover_public_key(message_hash: bytes, signature: bytes) -> Optional[bytes]:
    """
    Recover the signer's public key from a 65-byte signature.

    Returns:
        64-byte public key, or None if recovery fails
    """
    if len(message_hash) != 32 or len(signature) != SIGNATURE_LENGTH:
        return None

    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:64], byteorder="big")
    v = signature[64]
    if v < 27:
        v += 27

    if v not in (27, 28):
        return None
    if not (1 <= r < SECP256K1_ORDER and 1 <= s <= SECP256K1_ORDER // 2):
        return None

    try:
        recovered = secp256k1.ecdsa_raw_recover(message_hash, (v, r, s))
    except ValueError:
        return None
    if not recovered:
        return None
    return _point_to_bytes(recovered)


def recover_address(message_hash: bytes, signature: bytes) -> Optional[str]:
    """Recover the signer's address, or None if the signature is malformed."""
    public_key = recover_public_key(message_hash, signature)
    if public_key is None:
        return None
    return address_from_public_key(public_key)


# =============================================================================
# Typed Data
# =============================================================================


def domain_separator(
    name: str,
    version: str,
    chain_id: int,
    verifying_contract: str,
) -> bytes:
    """
    Compute the typed-data domain separator.

    Binds signatures to one deployment (name, version, chain, engine address)
    so they cannot be replayed against another.
    """
    return keccak256(
        keccak256(EIP712_DOMAIN_TYPE)
        + keccak256(name.encode("utf-8"))
        + keccak256(version.encode("utf-8"))
        + uint256(chain_id)
        + address_word(verifying_contract)
    )


def typed_data_digest(separator: bytes, struct_hash: bytes) -> bytes:
    """keccak256(0x19 0x01 || domainSeparator || structHash)"""
    return keccak256(TYPED_DATA_PREFIX + separator + struct_hash)


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    if len(address) != 2 + 2 * ADDRESS_LENGTH:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False
