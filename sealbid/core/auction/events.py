"""
Observable records emitted by the auction engine.

Events are buffered during an operation and appended only when the
operation commits, so a rejected operation leaves no trace in the log.
Subscribers are notified after the engine has released the operation;
a failing subscriber is logged and never affects the engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from sealbid.utils.logger import get_logger

logger = get_logger("events")


class EventKind(str, Enum):
    """Kinds of records in the event log."""
    BID_RECEIVED = "BidReceived"
    DECRYPTION_REQUESTED = "DecryptionRequested"
    AUCTION_FINISHED = "AuctionFinished"
    REFUND_ISSUED = "RefundIssued"
    ROUND_STARTED = "RoundStarted"
    ROUND_CANCELLED = "RoundCancelled"
    EMERGENCY_ENDED = "EmergencyEnded"
    PAUSED = "Paused"
    UNPAUSED = "Unpaused"
    WITHDRAWAL = "Withdrawal"


@dataclass(frozen=True)
class AuctionEvent:
    """A single published record."""
    kind: EventKind
    round_id: int
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


Subscriber = Callable[[AuctionEvent], None]


class EventLog:
    """
    Append-only log of published events.

    Appending and notifying are separate steps: the engine appends under
    its lock and notifies subscribers once the operation is over.
    """

    def __init__(self):
        self.records: List[AuctionEvent] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def append(self, events: Iterable[AuctionEvent]) -> List[AuctionEvent]:
        """Append committed events, assigning sequence numbers."""
        appended = []
        for event in events:
            sequenced = AuctionEvent(
                kind=event.kind,
                round_id=event.round_id,
                timestamp=event.timestamp,
                data=event.data,
                sequence=len(self.records) + 1,
            )
            self.records.append(sequenced)
            appended.append(sequenced)
            logger.info(f"[round {sequenced.round_id}] {sequenced.kind.value} {sequenced.data}")
        return appended

    def notify(self, events: Iterable[AuctionEvent]) -> None:
        """Deliver appended events to every subscriber, in order."""
        for event in events:
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception(f"Subscriber {callback!r} failed on event {event.sequence}")

    def query(
        self,
        kind: Optional[EventKind] = None,
        round_id: Optional[int] = None,
    ) -> List[AuctionEvent]:
        """Filter events by kind and/or round."""
        return [
            e for e in self.records
            if (kind is None or e.kind == kind) and (round_id is None or e.round_id == round_id)
        ]

    def last(self, kind: EventKind) -> Optional[AuctionEvent]:
        matches = self.query(kind)
        return matches[-1] if matches else None

    def __len__(self) -> int:
        return len(self.records)
