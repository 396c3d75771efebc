"""
Sealbid Auction Module.

This module provides the repeating sealed-bid auction:
- Encrypted bid intake with a homomorphic running maximum
- Decryption request/callback finalization
- Deposit tie-break winner selection
- Refund settlement (push or pull)
- Pause and emergency controls
"""

from sealbid.core.auction.models import (
    Round,
    RoundStatus,
    RoundResult,
    BidderRecord,
    PendingDecryption,
    AdminState,
    AuctionState,
)

from sealbid.core.auction.events import (
    EventKind,
    AuctionEvent,
    EventLog,
)

from sealbid.core.auction.tiebreak import (
    DecryptedRound,
    select_winner,
)

from sealbid.core.auction.settlement import (
    FundsSink,
    InMemoryFundsSink,
    Payout,
    RefundSettlement,
    SettlementReport,
)

from sealbid.core.auction.pause import (
    PauseCapability,
    NullPauser,
    PauseGuard,
)

from sealbid.core.auction.engine import SealedBidAuction

__all__ = [
    # Models
    "Round",
    "RoundStatus",
    "RoundResult",
    "BidderRecord",
    "PendingDecryption",
    "AdminState",
    "AuctionState",
    # Events
    "EventKind",
    "AuctionEvent",
    "EventLog",
    # Winner selection
    "DecryptedRound",
    "select_winner",
    # Settlement
    "FundsSink",
    "InMemoryFundsSink",
    "Payout",
    "RefundSettlement",
    "SettlementReport",
    # Pause
    "PauseCapability",
    "NullPauser",
    "PauseGuard",
    # Engine
    "SealedBidAuction",
]
