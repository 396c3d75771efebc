"""
Data model of the repeating sealed-bid auction.

All mutable bookkeeping lives in one AuctionState owned by the engine, so an
operation can be rolled back by restoring a snapshot of it.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

from sealbid.fhe.base import EncryptedValue


# =============================================================================
# Enums
# =============================================================================


class RoundStatus(IntEnum):
    """State of an auction round."""
    OPEN = 0                  # Accepting bids until end_time
    AWAITING_DECRYPTION = 1   # Decryption requested, callback pending
    FINALIZED = 2             # Winner selected and settled
    EMERGENCY_ENDED = 3       # Force-refunded after the emergency delay
    CANCELLED = 4             # Aborted before end_time

    @property
    def is_terminal(self) -> bool:
        return self in (RoundStatus.FINALIZED, RoundStatus.EMERGENCY_ENDED, RoundStatus.CANCELLED)


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class Round:
    """
    The current auction round.

    `bidders` keeps registration order and never holds duplicates.
    `winner`, `winning_value` and `lead_deposit` are the public lead fields,
    filled at settlement.
    """
    round_id: int
    end_time: int
    encrypted_max: EncryptedValue
    bidders: List[str] = field(default_factory=list)
    status: RoundStatus = RoundStatus.OPEN
    winner: Optional[str] = None
    winning_value: int = 0
    lead_deposit: int = 0

    @property
    def finalized(self) -> bool:
        return self.status.is_terminal

    def has_ended(self, now: int) -> bool:
        return now >= self.end_time


@dataclass
class BidderRecord:
    """
    Per-identity bid storage. Survives round transitions.

    Attributes:
        encrypted_bid: Latest ingested bid (overwritten on every bid)
        deposit: Accumulated deposit, zeroed only by refund/payment paths
        last_round: Round id of the last registration (0 = never)
    """
    encrypted_bid: Optional[EncryptedValue] = None
    deposit: int = 0
    last_round: int = 0


@dataclass
class PendingDecryption:
    """The single outstanding decryption request."""
    request_id: int
    round_id: int
    handles: List[int]
    outstanding: bool = True


@dataclass
class AdminState:
    """Administrative configuration and flags."""
    admin: str
    beneficiary: str
    oracle: str
    min_deposit: int
    paused: bool = False


@dataclass(frozen=True)
class RoundResult:
    """Archived outcome of a closed round."""
    round_id: int
    status: RoundStatus
    winner: Optional[str]
    winning_value: int
    payment: int
    refunded: int
    bidder_count: int
    closed_at: int


@dataclass
class AuctionState:
    """
    Everything the engine mutates.

    Attributes:
        admin: Administrative state
        current: The current round
        records: Identity -> BidderRecord
        pending: Outstanding decryption request, if any
        credits: Identity -> withdrawable balance (pull settlement)
        escrow: Funds held by the auction (deposits + credits)
        history: Results of closed rounds, oldest first
    """
    admin: AdminState
    current: Optional[Round] = None
    records: Dict[str, BidderRecord] = field(default_factory=dict)
    pending: Optional[PendingDecryption] = None
    credits: Dict[str, int] = field(default_factory=dict)
    escrow: int = 0
    history: List[RoundResult] = field(default_factory=list)

    def record_for(self, identity: str) -> BidderRecord:
        """Get or create the bidder record for an identity."""
        record = self.records.get(identity)
        if record is None:
            record = BidderRecord()
            self.records[identity] = record
        return record

    def is_registered(self, identity: str) -> bool:
        """Whether identity has bid in the current round."""
        record = self.records.get(identity)
        return record is not None and self.current is not None and record.last_round == self.current.round_id

    def liabilities(self) -> int:
        """Deposits plus credits owed; equals escrow when books balance."""
        return sum(r.deposit for r in self.records.values()) + sum(self.credits.values())
