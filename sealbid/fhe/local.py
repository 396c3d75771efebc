"""
Local simulation of the homomorphic tally.

In-process stand-ins for the ciphertext engine and the decryption oracle.
They keep plaintexts in a handle table and therefore provide NO
confidentiality; they exist so the auction engine can be driven end to end
(tests, CLI demo) with the same call pattern as a real deployment:

    client:  encrypt_input(value, owner) -> (ciphertext, proof)
    engine:  ingest / gt / select / encrypt
    oracle:  request_decryption(handles, callback) ... fulfil(request_id)

The oracle signs `keccak256(request_id || cleartexts)` with its own key, so
attestation checks exercise real signature recovery.
"""

import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sealbid.crypto import (
    KeyPair,
    generate_keypair,
    hex_to_bytes,
    keccak256,
    normalize_address,
    recover_address,
    sign,
    uint256,
)
from sealbid.core.errors import InvalidArgument, InvalidProof, InvalidRequestId
from sealbid.fhe.base import (
    EBOOL,
    EUINT64,
    UINT64_MAX,
    DecryptionCallback,
    EncryptedValue,
    encode_cleartexts,
)
from sealbid.utils.logger import get_logger

logger = get_logger("fhe.local")

# Domain tag for simulated input proofs
INPUT_PROOF_TAG = b"sealbid.input.v1"

NONCE_SIZE = 16


def _input_proof(ciphertext: bytes, owner: str) -> bytes:
    return keccak256(INPUT_PROOF_TAG + ciphertext + hex_to_bytes(normalize_address(owner)))


def _mask(nonce: bytes) -> int:
    return int.from_bytes(keccak256(nonce)[:8], byteorder="big")


# =============================================================================
# Ciphertext Engine
# =============================================================================


class LocalCiphertextEngine:
    """
    Handle-table implementation of the CiphertextEngine protocol.

    Ciphertext wire format: nonce (16 bytes) || value XOR mask(nonce) (8 bytes).
    """

    def __init__(self):
        self._values: Dict[int, int] = {}
        self._kinds: Dict[int, str] = {}
        self._next_handle = 1

    def _store(self, value: int, kind: str) -> EncryptedValue:
        handle = self._next_handle
        self._next_handle += 1
        self._values[handle] = value
        self._kinds[handle] = kind
        return EncryptedValue(handle=handle, kind=kind)

    def _value(self, encrypted: EncryptedValue) -> int:
        if encrypted.handle not in self._values:
            raise InvalidArgument(f"Unknown ciphertext handle {encrypted.handle}")
        return self._values[encrypted.handle]

    # =========================================================================
    # Client Side
    # =========================================================================

    @staticmethod
    def encrypt_input(value: int, owner: str) -> Tuple[bytes, bytes]:
        """
        Produce (ciphertext, proof) for a bid value owned by `owner`.

        Args:
            value: Bid value (uint64)
            owner: Address that will submit the ciphertext
        """
        if not 0 <= value <= UINT64_MAX:
            raise InvalidArgument(f"Value out of uint64 range: {value}")
        nonce = secrets.token_bytes(NONCE_SIZE)
        masked = value ^ _mask(nonce)
        ciphertext = nonce + masked.to_bytes(8, byteorder="big")
        return ciphertext, _input_proof(ciphertext, owner)

    # =========================================================================
    # CiphertextEngine Protocol
    # =========================================================================

    def ingest(self, ciphertext: bytes, proof: bytes, owner: str) -> EncryptedValue:
        if len(ciphertext) != NONCE_SIZE + 8:
            raise InvalidProof(f"Malformed ciphertext length {len(ciphertext)}")
        if bytes(proof) != _input_proof(bytes(ciphertext), owner):
            raise InvalidProof("Input proof does not bind ciphertext to owner", details={"owner": owner})
        nonce, masked = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        value = int.from_bytes(masked, byteorder="big") ^ _mask(nonce)
        return self._store(value, EUINT64)

    def gt(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        return self._store(int(self._value(a) > self._value(b)), EBOOL)

    def select(
        self,
        condition: EncryptedValue,
        if_true: EncryptedValue,
        if_false: EncryptedValue,
    ) -> EncryptedValue:
        if condition.kind != EBOOL:
            raise InvalidArgument("Select condition must be an encrypted boolean")
        chosen = if_true if self._value(condition) else if_false
        return self._store(self._value(chosen), chosen.kind)

    def encrypt(self, value: int) -> EncryptedValue:
        if not 0 <= value <= UINT64_MAX:
            raise InvalidArgument(f"Value out of uint64 range: {value}")
        return self._store(value, EUINT64)

    def handle_ref(self, value: EncryptedValue) -> int:
        return value.handle

    # =========================================================================
    # Oracle Side
    # =========================================================================

    def reveal(self, handle: int) -> int:
        """Plaintext behind a handle. Only the oracle calls this."""
        if handle not in self._values:
            raise InvalidArgument(f"Unknown ciphertext handle {handle}")
        return self._values[handle]

    def handle_count(self) -> int:
        return len(self._values)


# =============================================================================
# Decryption Oracle
# =============================================================================


@dataclass
class DecryptionRequest:
    """A decryption batch waiting to be fulfilled."""
    request_id: int
    handles: List[int]
    callback: DecryptionCallback = field(repr=False)


class LocalDecryptionOracle:
    """
    Queue-based implementation of the DecryptionOracle protocol.

    Requests are held until `fulfil` is called, which models the
    asynchronous continuation of a real oracle.
    """

    def __init__(self, engine: LocalCiphertextEngine, keypair: Optional[KeyPair] = None):
        self.engine = engine
        self.keypair = keypair or generate_keypair()
        self._pending: Dict[int, DecryptionRequest] = {}
        self._next_request_id = 1

    @property
    def identity(self) -> str:
        return self.keypair.address

    @staticmethod
    def attestation_digest(request_id: int, cleartexts: bytes) -> bytes:
        return keccak256(uint256(request_id) + cleartexts)

    def request_decryption(self, handles: Sequence[int], callback: DecryptionCallback) -> int:
        request_id = self._next_request_id
        self._next_request_id += 1
        self._pending[request_id] = DecryptionRequest(
            request_id=request_id,
            handles=list(handles),
            callback=callback,
        )
        logger.debug(f"Decryption request {request_id} queued for {len(handles)} handles")
        return request_id

    def verify_attestation(self, request_id: int, cleartexts: bytes, attestation: bytes) -> bool:
        signer = recover_address(self.attestation_digest(request_id, cleartexts), attestation)
        return signer is not None and signer == self.identity

    def pending_requests(self) -> List[int]:
        return sorted(self._pending)

    def attest(self, request_id: int, values: Sequence[int]) -> Tuple[bytes, bytes]:
        """Encode and sign a result without delivering it."""
        cleartexts = encode_cleartexts(values)
        attestation = sign(self.attestation_digest(request_id, cleartexts), self.keypair.private_key)
        return cleartexts, attestation

    def fulfil(self, request_id: int) -> List[int]:
        """
        Decrypt a pending request and deliver it through its callback.

        The request is dequeued only once the callback returns; if it raises
        (e.g. the auction is paused) the request stays queued for redelivery
        and the error propagates to the caller.

        Returns:
            The decrypted values in handle order
        """
        request = self._pending.get(request_id)
        if request is None:
            raise InvalidRequestId(f"No pending decryption request {request_id}")

        values = [self.engine.reveal(h) for h in request.handles]
        cleartexts, attestation = self.attest(request_id, values)

        logger.info(f"Delivering decryption request {request_id} ({len(values)} values)")
        request.callback(request_id, cleartexts, attestation, self.identity)
        del self._pending[request_id]
        return values

    def fulfil_all(self) -> Dict[int, List[int]]:
        """Fulfil every pending request in id order."""
        return {rid: self.fulfil(rid) for rid in self.pending_requests()}
