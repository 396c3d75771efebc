"""
Homomorphic tally boundary and local simulation backend.
"""

from sealbid.fhe.base import (
    CiphertextEngine,
    DecryptionOracle,
    DecryptionCallback,
    EncryptedValue,
    encode_cleartexts,
    decode_cleartexts,
    EUINT64,
    EBOOL,
    UINT64_MAX,
)

from sealbid.fhe.local import (
    LocalCiphertextEngine,
    LocalDecryptionOracle,
    DecryptionRequest,
)

__all__ = [
    "CiphertextEngine",
    "DecryptionOracle",
    "DecryptionCallback",
    "EncryptedValue",
    "encode_cleartexts",
    "decode_cleartexts",
    "EUINT64",
    "EBOOL",
    "UINT64_MAX",
    "LocalCiphertextEngine",
    "LocalDecryptionOracle",
    "DecryptionRequest",
]
