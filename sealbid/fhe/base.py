"""
Boundary of the homomorphic tally.

The auction engine never sees plaintext bids. It consumes two external
capabilities through these protocols:

- CiphertextEngine: ingest proof-checked inputs, compare and select
  encrypted values, produce trivial encryptions, expose handle references.
- DecryptionOracle: accept a batch of handles, later deliver the
  cleartexts with an attestation through a callback.

Cleartexts travel as concatenated 32-byte big-endian words, one per
requested handle, in request order.
"""

from dataclasses import dataclass
from typing import Callable, List, Protocol, Sequence

from sealbid.core.errors import MalformedCleartexts

WORD_SIZE = 32

# Encrypted value kinds
EUINT64 = "euint64"
EBOOL = "ebool"

UINT64_MAX = 2**64 - 1


@dataclass(frozen=True)
class EncryptedValue:
    """Opaque reference to a ciphertext held by the engine."""
    handle: int
    kind: str = EUINT64


# (request_id, cleartexts, attestation, caller)
DecryptionCallback = Callable[[int, bytes, bytes, str], None]


class CiphertextEngine(Protocol):
    """Homomorphic operations over encrypted unsigned integers."""

    def ingest(self, ciphertext: bytes, proof: bytes, owner: str) -> EncryptedValue:
        """Verify the input proof and register the ciphertext for `owner`."""
        ...

    def gt(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        """Encrypted boolean a > b."""
        ...

    def select(
        self,
        condition: EncryptedValue,
        if_true: EncryptedValue,
        if_false: EncryptedValue,
    ) -> EncryptedValue:
        """Encrypted condition ? if_true : if_false."""
        ...

    def encrypt(self, value: int) -> EncryptedValue:
        """Trivial (public) encryption of a constant."""
        ...

    def handle_ref(self, value: EncryptedValue) -> int:
        """Reference passed to the decryption oracle."""
        ...


class DecryptionOracle(Protocol):
    """Off-band decryption service with authenticated results."""

    @property
    def identity(self) -> str:
        """The only caller allowed to deliver callbacks."""
        ...

    def request_decryption(self, handles: Sequence[int], callback: DecryptionCallback) -> int:
        """Submit handles for decryption; returns the request id."""
        ...

    def verify_attestation(self, request_id: int, cleartexts: bytes, attestation: bytes) -> bool:
        """Check that the cleartexts were produced by the oracle for this request."""
        ...


# =============================================================================
# Cleartext Encoding
# =============================================================================


def encode_cleartexts(values: Sequence[int]) -> bytes:
    """Pack values as 32-byte big-endian words."""
    return b"".join(int(v).to_bytes(WORD_SIZE, byteorder="big") for v in values)


def decode_cleartexts(data: bytes, expected: int) -> List[int]:
    """
    Unpack cleartexts, requiring exactly `expected` words.

    Raises:
        MalformedCleartexts: if the payload does not match the request
    """
    if len(data) != expected * WORD_SIZE:
        raise MalformedCleartexts(
            f"Expected {expected} cleartext words, got {len(data)} bytes",
            details={"expected": expected, "length": len(data)},
        )
    return [
        int.from_bytes(data[i:i + WORD_SIZE], byteorder="big")
        for i in range(0, len(data), WORD_SIZE)
    ]
