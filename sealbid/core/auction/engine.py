"""
Sealed-Bid Auction Engine - Repeating rounds over encrypted bids.

Round state machine:

    OPEN --request_finalize--> AWAITING_DECRYPTION --callback--> FINALIZED
    OPEN --emergency_cancel--> CANCELLED
    OPEN / AWAITING_DECRYPTION --emergency_end--> EMERGENCY_ENDED

Every terminal transition archives the round result and starts the next
round.

Operation model:
- Operations are serialised by one lock and cannot be re-entered (a funds
  recipient calling back during a payout gets ReentrantCall).
- Each operation is atomic: the state is snapshotted on entry and restored
  on any error; events are published only on success.
- The decryption round-trip is asynchronous: request_finalize returns the
  request id and the oracle later calls on_decryption_callback.
"""

import copy
import secrets
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from sealbid.crypto import hex_to_bytes, keccak256, normalize_address
from sealbid.core.auction.events import AuctionEvent, EventKind, EventLog
from sealbid.core.auction.models import (
    AdminState,
    AuctionState,
    BidderRecord,
    PendingDecryption,
    Round,
    RoundResult,
    RoundStatus,
)
from sealbid.core.auction.pause import PauseCapability, PauseGuard
from sealbid.core.auction.settlement import FundsSink, InMemoryFundsSink, RefundSettlement
from sealbid.core.auction.tiebreak import DecryptedRound, select_winner
from sealbid.core.clock import Clock, system_clock
from sealbid.core.config import AuctionConfig
from sealbid.core.errors import (
    AccessDenied,
    AlreadyFinalized,
    AuctionError,
    InsufficientDeposit,
    InvalidArgument,
    InvalidRequestId,
    InvalidSignature,
    ReentrantCall,
    TimingViolation,
)
from sealbid.core.signature import SignatureVerifier
from sealbid.fhe.base import CiphertextEngine, DecryptionOracle, decode_cleartexts
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import validate_amount, validate_bid_payload, validate_identity

logger = get_logger("engine")


class SealedBidAuction:
    """
    Repeating sealed-bid auction.

    Bids are ciphertexts; the engine keeps a homomorphic running maximum and
    learns plaintexts only through one decryption request per round.
    """

    def __init__(
        self,
        beneficiary: str,
        admin: str,
        engine: CiphertextEngine,
        oracle: DecryptionOracle,
        min_deposit: Optional[int] = None,
        pauser: Optional[PauseCapability] = None,
        funds: Optional[FundsSink] = None,
        clock: Optional[Clock] = None,
        config: Optional[AuctionConfig] = None,
        address: Optional[str] = None,
    ):
        """
        Args:
            beneficiary: Recipient of winning payments
            admin: Administrative identity (auction operator)
            engine: Ciphertext engine
            oracle: Decryption oracle; its identity is the only callback caller
            min_deposit: Minimum deposit per bid (defaults to config)
            pauser: Optional delegated pause capability
            funds: Funds sink for outgoing transfers
            clock: Time source (seconds)
            config: Engine configuration
            address: Engine identity used in the key binding domain
        """
        self.config = config or AuctionConfig()
        if min_deposit is None:
            min_deposit = self.config.min_deposit
        ok, err = validate_amount(min_deposit, "min_deposit", min_val=1)
        if not ok:
            raise InvalidArgument(err)

        beneficiary = self._identity(beneficiary, "beneficiary")
        admin = self._identity(admin, "admin")
        oracle_identity = self._identity(oracle.identity, "oracle")

        self.engine = engine
        self.oracle = oracle
        self.clock: Clock = clock or system_clock
        self.address = normalize_address(address) if address else self._derive_address(admin)
        self.verifier = SignatureVerifier(
            self.address,
            chain_id=self.config.chain_id,
            name=self.config.domain_name,
            version=self.config.domain_version,
        )
        self.pause_guard = PauseGuard(pauser)
        self.settlement = RefundSettlement(funds or InMemoryFundsSink(), self.config.settlement_mode)
        self.events = EventLog()

        self.state = AuctionState(
            admin=AdminState(
                admin=admin,
                beneficiary=beneficiary,
                oracle=oracle_identity,
                min_deposit=min_deposit,
            )
        )

        self._lock = threading.RLock()
        self._active = False
        self._buffer: List[AuctionEvent] = []

        with self._operation("start"):
            self._start_new_round()

        logger.info(
            f"SealedBidAuction {self.address} initialized: min_deposit={min_deposit}, "
            f"beneficiary={beneficiary}, settlement={self.settlement.mode.value}"
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _identity(identity: Any, name: str = "caller") -> str:
        ok, err = validate_identity(identity, name)
        if not ok:
            raise InvalidArgument(err)
        return normalize_address(identity)

    @staticmethod
    def _derive_address(admin: str) -> str:
        salt = secrets.token_bytes(32)
        return "0x" + keccak256(b"sealbid.engine" + hex_to_bytes(admin) + salt)[-20:].hex()

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        """
        Serialised, non-reentrant, all-or-nothing section.

        Delegated pause changes are forwarded once the body succeeds.
        Subscribers see the committed events after the lock is released.
        """
        with self._lock:
            if self._active:
                logger.warning(f"{name} rejected: re-entered during another operation")
                raise ReentrantCall(f"{name} called while another operation is running")

            self._active = True
            snapshot = copy.deepcopy(self.state)
            funds_token = self.settlement.checkpoint()
            self._buffer = []
            try:
                yield
                self.pause_guard.commit()
            except Exception as e:
                self.state = snapshot
                self.settlement.revert(funds_token)
                self.pause_guard.discard()
                self._buffer = []
                if isinstance(e, AuctionError):
                    logger.warning(f"{name} rejected: {type(e).__name__}: {e.message}")
                else:
                    logger.error(f"{name} failed: {e!r}")
                raise
            finally:
                self._active = False
            committed = self.events.append(self._buffer)
            self._buffer = []

        self.events.notify(committed)

    def _emit(self, kind: EventKind, **data: Any) -> None:
        self._buffer.append(
            AuctionEvent(
                kind=kind,
                round_id=self.state.current.round_id if self.state.current else 0,
                timestamp=self.clock(),
                data=data,
            )
        )

    def _require_admin(self, caller: str) -> None:
        if caller != self.state.admin.admin:
            raise AccessDenied("Caller is not the auction admin", details={"caller": caller})

    def _archive(self, rnd: Round, payment: int = 0, refunded: int = 0) -> RoundResult:
        result = RoundResult(
            round_id=rnd.round_id,
            status=rnd.status,
            winner=rnd.winner,
            winning_value=rnd.winning_value,
            payment=payment,
            refunded=refunded,
            bidder_count=len(rnd.bidders),
            closed_at=self.clock(),
        )
        self.state.history.append(result)
        return result

    # =========================================================================
    # Round Lifecycle
    # =========================================================================

    def _start_new_round(self) -> Round:
        """
        Open the next round.

        Bidder records are kept; registration is scoped by comparing each
        record's last_round against the new round id.
        """
        previous_id = self.state.current.round_id if self.state.current else 0
        rnd = Round(
            round_id=previous_id + 1,
            end_time=self.clock() + self.config.round_duration,
            encrypted_max=self.engine.encrypt(0),
        )
        self.state.current = rnd
        self._emit(EventKind.ROUND_STARTED, end_time=rnd.end_time)
        logger.debug(f"Round {rnd.round_id} open until {rnd.end_time}")
        return rnd

    # =========================================================================
    # Bid Intake
    # =========================================================================

    def submit_bid(
        self,
        ciphertext: bytes,
        proof: bytes,
        declared_key: bytes,
        signature: bytes,
        deposit: int,
        caller: str,
    ) -> None:
        """
        Submit an encrypted bid with a deposit.

        A later bid in the same round replaces the stored ciphertext while the
        deposits accumulate.

        Raises:
            PausedState, TimingViolation, InvalidSignature, InsufficientDeposit,
            InvalidArgument / InvalidProof for malformed input
        """
        with self._operation("submit_bid"):
            caller = self._identity(caller)
            ok, err = validate_bid_payload(ciphertext, proof, declared_key)
            if not ok:
                raise InvalidArgument(err)
            ok, err = validate_amount(deposit, "deposit")
            if not ok:
                raise InvalidArgument(err)

            state = self.state
            rnd = state.current
            self.pause_guard.require_running(state)
            if rnd.finalized or rnd.has_ended(self.clock()):
                raise TimingViolation(
                    f"Round {rnd.round_id} closed at {rnd.end_time}",
                    details={"round_id": rnd.round_id, "end_time": rnd.end_time},
                )
            self.verifier.verify_key_binding(caller, bytes(declared_key), bytes(signature))
            if deposit < state.admin.min_deposit:
                raise InsufficientDeposit(
                    f"Deposit {deposit} below minimum {state.admin.min_deposit}",
                    details={"deposit": deposit, "min_deposit": state.admin.min_deposit},
                )

            bid = self.engine.ingest(bytes(ciphertext), bytes(proof), caller)

            record = state.record_for(caller)
            record.deposit += deposit
            state.escrow += deposit
            if record.last_round != rnd.round_id:
                record.last_round = rnd.round_id
                rnd.bidders.append(caller)
            record.encrypted_bid = bid

            is_higher = self.engine.gt(bid, rnd.encrypted_max)
            rnd.encrypted_max = self.engine.select(is_higher, bid, rnd.encrypted_max)

            self._emit(EventKind.BID_RECEIVED, bidder=caller, deposit=deposit)

    # =========================================================================
    # Finalization
    # =========================================================================

    def request_finalize(self, caller: str) -> int:
        """
        Ask the oracle to decrypt the running maximum and every bid.

        Handle order: [max, bid of bidder 1, ..., bid of bidder N] in
        registration order.

        Returns:
            The decryption request id

        Raises:
            AccessDenied, TimingViolation, AlreadyFinalized, PausedState
        """
        with self._operation("request_finalize"):
            caller = self._identity(caller)
            state = self.state
            rnd = state.current

            self._require_admin(caller)
            if not rnd.has_ended(self.clock()):
                raise TimingViolation(
                    f"Round {rnd.round_id} still open until {rnd.end_time}",
                    details={"round_id": rnd.round_id, "end_time": rnd.end_time},
                )
            if rnd.finalized:
                raise AlreadyFinalized(f"Round {rnd.round_id} already finalized")
            self.pause_guard.require_running(state)
            if state.pending is not None and state.pending.outstanding:
                raise AlreadyFinalized(
                    f"Decryption request {state.pending.request_id} already outstanding",
                    details={"request_id": state.pending.request_id},
                )

            handles = [self.engine.handle_ref(rnd.encrypted_max)]
            for bidder in rnd.bidders:
                handles.append(self.engine.handle_ref(state.records[bidder].encrypted_bid))

            request_id = self.oracle.request_decryption(handles, self.on_decryption_callback)
            state.pending = PendingDecryption(
                request_id=request_id,
                round_id=rnd.round_id,
                handles=handles,
            )
            rnd.status = RoundStatus.AWAITING_DECRYPTION

            self._emit(EventKind.DECRYPTION_REQUESTED, request_id=request_id, handles=len(handles))
            return request_id

    def on_decryption_callback(
        self,
        request_id: int,
        cleartexts: bytes,
        attestation: bytes,
        caller: str,
    ) -> Optional[str]:
        """
        Oracle delivery of the decrypted round.

        Accepted once per request. Selects the winner, settles, finalizes the
        round and opens the next one.

        Returns:
            The winner, or None for a round without a matching bidder

        Raises:
            AccessDenied, InvalidRequestId, InvalidSignature, PausedState,
            MalformedCleartexts, TransferFailure (push settlement)
        """
        with self._operation("on_decryption_callback"):
            caller = self._identity(caller)
            state = self.state

            if caller != state.admin.oracle:
                raise AccessDenied("Callback caller is not the decryption oracle", details={"caller": caller})
            pending = state.pending
            if pending is None or not pending.outstanding or pending.request_id != request_id:
                raise InvalidRequestId(
                    f"Request {request_id} is not the outstanding decryption request",
                    details={"request_id": request_id},
                )
            self.pause_guard.require_running(state)
            if not self.oracle.verify_attestation(request_id, bytes(cleartexts), bytes(attestation)):
                raise InvalidSignature("Decryption attestation rejected", details={"request_id": request_id})

            rnd = state.current
            values = decode_cleartexts(bytes(cleartexts), len(pending.handles))
            decrypted = DecryptedRound.from_values(values)

            deposits = {b: state.records[b].deposit for b in rnd.bidders}
            winner, _ = select_winner(rnd.bidders, decrypted.bid_values, deposits, decrypted.max_value)

            pending.outstanding = False
            state.pending = None

            report = self.settlement.settle_round(state, rnd, winner, decrypted.max_value, self._emit)
            rnd.status = RoundStatus.FINALIZED
            self._emit(
                EventKind.AUCTION_FINISHED,
                winner=winner,
                winning_value=rnd.winning_value,
                payment=report.payment,
            )
            self._archive(rnd, payment=report.payment, refunded=report.refunded)
            self._start_new_round()
            return winner

    # =========================================================================
    # Pause Controls
    # =========================================================================

    def pause(self, caller: str) -> None:
        """Halt bidding and finalization. Admin only."""
        with self._operation("pause"):
            caller = self._identity(caller)
            self._require_admin(caller)
            self.pause_guard.pause(self.state)
            self._emit(EventKind.PAUSED, by=caller)

    def unpause(self, caller: str) -> None:
        """Resume operation. Admin only."""
        with self._operation("unpause"):
            caller = self._identity(caller)
            self._require_admin(caller)
            self.pause_guard.unpause(self.state)
            self._emit(EventKind.UNPAUSED, by=caller)

    # =========================================================================
    # Emergency Controls
    # =========================================================================

    def emergency_end(self, caller: str) -> int:
        """
        Force-refund a stalled round once end_time + emergency_delay passed.

        Pauses the engine, refunds every registered bidder, drops any
        outstanding decryption request and opens the next round. Not gated
        by pause.

        Returns:
            Total refunded
        """
        with self._operation("emergency_end"):
            caller = self._identity(caller)
            state = self.state
            rnd = state.current

            self._require_admin(caller)
            unlock_time = rnd.end_time + self.config.emergency_delay
            if self.clock() < unlock_time:
                raise TimingViolation(
                    f"Emergency end available from {unlock_time}",
                    details={"round_id": rnd.round_id, "unlock_time": unlock_time},
                )
            if rnd.finalized:
                raise AlreadyFinalized(f"Round {rnd.round_id} already finalized")

            if self.pause_guard.force_pause(state):
                self._emit(EventKind.PAUSED, by=caller)

            report = self.settlement.refund_all(state, list(rnd.bidders), "emergency", self._emit)
            state.pending = None
            rnd.status = RoundStatus.EMERGENCY_ENDED
            self._emit(EventKind.EMERGENCY_ENDED, refunded=report.refunded, bidders=len(rnd.bidders))
            self._archive(rnd, refunded=report.refunded)
            self._start_new_round()
            return report.refunded

    def emergency_cancel(self, caller: str) -> int:
        """
        Abort the current round before its end time.

        Refunds the recorded lead bidder's deposit (if any) and resets the
        running maximum. Other bidders keep their deposits on record and can
        reclaim them.

        Returns:
            Amount refunded
        """
        with self._operation("emergency_cancel"):
            caller = self._identity(caller)
            state = self.state
            rnd = state.current

            self._require_admin(caller)
            if rnd.has_ended(self.clock()):
                raise TimingViolation(f"Round {rnd.round_id} already ended at {rnd.end_time}")
            self.pause_guard.require_running(state)
            if rnd.finalized:
                raise AlreadyFinalized(f"Round {rnd.round_id} already finalized")

            refunded = 0
            if rnd.winner is not None:
                refunded = self.settlement.refund_one(state, rnd.winner, "cancel", self._emit).refunded

            rnd.encrypted_max = self.engine.encrypt(0)
            rnd.status = RoundStatus.CANCELLED
            self._emit(EventKind.ROUND_CANCELLED, refunded=refunded, bidders=len(rnd.bidders))
            self._archive(rnd, refunded=refunded)
            self._start_new_round()
            return refunded

    # =========================================================================
    # Funds Recovery
    # =========================================================================

    def reclaim_deposit(self, caller: str) -> int:
        """
        Refund a deposit carried over from an earlier round.

        Only for identities not registered in the current round. Not gated
        by pause.

        Returns:
            Amount refunded
        """
        with self._operation("reclaim_deposit"):
            caller = self._identity(caller)
            state = self.state
            record = state.records.get(caller)
            if record is None or record.deposit == 0:
                raise InsufficientDeposit(f"No deposit on record for {caller}")
            if state.is_registered(caller):
                raise AccessDenied(
                    "Deposit backs a bid in the current round",
                    details={"round_id": state.current.round_id},
                )
            return self.settlement.refund_one(state, caller, "reclaim", self._emit).refunded

    def withdraw(self, caller: str) -> int:
        """Withdraw credited funds (pull settlement). Not gated by pause."""
        with self._operation("withdraw"):
            caller = self._identity(caller)
            return self.settlement.withdraw(self.state, caller, self._emit)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def round_id(self) -> int:
        return self.state.current.round_id

    @property
    def round_end_time(self) -> int:
        return self.state.current.end_time

    @property
    def round_status(self) -> RoundStatus:
        return self.state.current.status

    @property
    def min_deposit(self) -> int:
        return self.state.admin.min_deposit

    @property
    def beneficiary(self) -> str:
        return self.state.admin.beneficiary

    @property
    def admin(self) -> str:
        return self.state.admin.admin

    @property
    def lead_bidder(self) -> Optional[str]:
        return self.state.current.winner

    @property
    def lead_deposit(self) -> int:
        return self.state.current.lead_deposit

    @property
    def winning_value(self) -> int:
        return self.state.current.winning_value

    @property
    def finalized(self) -> bool:
        return self.state.current.finalized

    @property
    def paused(self) -> bool:
        return self.pause_guard.is_paused(self.state)

    @property
    def encrypted_max(self):
        return self.state.current.encrypted_max

    @property
    def pending_request(self) -> Optional[int]:
        pending = self.state.pending
        return pending.request_id if pending is not None and pending.outstanding else None

    @property
    def escrow(self) -> int:
        return self.state.escrow

    def bidders(self) -> List[str]:
        return list(self.state.current.bidders)

    def is_registered(self, identity: str) -> bool:
        return self.state.is_registered(normalize_address(identity))

    def bidder_record(self, identity: str) -> Optional[BidderRecord]:
        record = self.state.records.get(normalize_address(identity))
        return copy.deepcopy(record)

    def deposit_of(self, identity: str) -> int:
        record = self.state.records.get(normalize_address(identity))
        return record.deposit if record else 0

    def credit_of(self, identity: str) -> int:
        return self.state.credits.get(normalize_address(identity), 0)

    def results(self) -> List[RoundResult]:
        return list(self.state.history)

    def result_for(self, round_id: int) -> Optional[RoundResult]:
        for result in self.state.history:
            if result.round_id == round_id:
                return result
        return None

    def stats(self) -> dict:
        """Get engine statistics."""
        finished = [r for r in self.state.history if r.status == RoundStatus.FINALIZED]
        return {
            "round_id": self.round_id,
            "round_status": self.round_status.name,
            "bidders": len(self.state.current.bidders),
            "paused": self.paused,
            "escrow": self.state.escrow,
            "liabilities": self.state.liabilities(),
            "rounds_closed": len(self.state.history),
            "rounds_finalized": len(finished),
            "total_payments": sum(r.payment for r in finished),
            "settlement_mode": self.settlement.mode.value,
        }
