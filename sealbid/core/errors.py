"""
Exception taxonomy for the auction engine.

Every error aborts the whole operation: the engine restores its state
snapshot and drops buffered events before the exception leaves it.
"""

from typing import Any, Dict, Optional


class AuctionError(Exception):
    """Base exception for all auction errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AccessDenied(AuctionError):
    """Caller is not allowed to invoke a restricted operation."""


class TimingViolation(AuctionError):
    """Operation invoked outside its allowed time window."""


class InsufficientDeposit(AuctionError):
    """Deposit below the configured minimum (or nothing to reclaim)."""


class InvalidSignature(AuctionError):
    """Key binding or oracle attestation failed verification."""


class AlreadyFinalized(AuctionError):
    """Round is finalized or already awaiting decryption."""


class InvalidRequestId(AuctionError):
    """Callback does not match the single outstanding decryption request."""


class MalformedCleartexts(InvalidRequestId):
    """Cleartext payload does not align with the requested handles."""


class PausedState(AuctionError):
    """Operation blocked by the pause gate."""


class NotPaused(PausedState):
    """Unpause requested while the engine is running."""


class TransferFailure(AuctionError):
    """A recipient rejected a funds transfer."""

    def __init__(self, message: str, recipient: str = "", amount: int = 0, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.recipient = recipient
        self.amount = amount


class ReentrantCall(AuctionError):
    """Engine entered again from inside a running operation."""


class InvalidArgument(AuctionError, ValueError):
    """Malformed input or configuration value."""


class InvalidProof(InvalidArgument):
    """Ciphertext input proof rejected by the ciphertext engine."""


__all__ = [
    "AuctionError",
    "AccessDenied",
    "TimingViolation",
    "InsufficientDeposit",
    "InvalidSignature",
    "AlreadyFinalized",
    "InvalidRequestId",
    "MalformedCleartexts",
    "PausedState",
    "NotPaused",
    "TransferFailure",
    "ReentrantCall",
    "InvalidArgument",
    "InvalidProof",
]
