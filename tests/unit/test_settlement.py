"""
Tests for refund settlement.

Tests cover:
1. Pull settlement (credits and withdrawals)
2. Push settlement (immediate transfers)
3. Funds sink checkpoints
"""

import pytest

from sealbid.core.auction import (
    AdminState,
    AuctionState,
    BidderRecord,
    EventKind,
    InMemoryFundsSink,
    RefundSettlement,
    Round,
)
from sealbid.core.config import SettlementMode
from sealbid.core.errors import InsufficientDeposit, InvalidArgument, TransferFailure
from sealbid.fhe import EncryptedValue


BENEFICIARY = "0x" + "be" * 20
A = "0x" + "0a" * 20
B = "0x" + "0b" * 20


class PlainSink:
    """Sink that can send but not undo a transfer."""

    def __init__(self):
        self.paid = {}

    def send(self, recipient, amount):
        self.paid[recipient] = self.paid.get(recipient, 0) + amount
        return True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def state():
    state = AuctionState(
        admin=AdminState(admin="0x" + "01" * 20, beneficiary=BENEFICIARY, oracle="0x" + "02" * 20, min_deposit=1)
    )
    state.current = Round(round_id=1, end_time=0, encrypted_max=EncryptedValue(handle=1), bidders=[A, B])
    state.records = {
        A: BidderRecord(deposit=30, last_round=1),
        B: BidderRecord(deposit=50, last_round=1),
    }
    state.escrow = 80
    return state


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def emit(emitted):
    def _emit(kind, **data):
        emitted.append((kind, data))
    return _emit


@pytest.fixture
def sink():
    return InMemoryFundsSink()


# =============================================================================
# Pull Settlement
# =============================================================================


class TestPullSettlement:
    """Payouts are credited and withdrawn later."""

    def test_settle_credits(self, state, sink, emit):
        settlement = RefundSettlement(sink, SettlementMode.PULL)
        report = settlement.settle_round(state, state.current, B, 40, emit)

        assert report.payment == 40
        assert report.refunded == 40
        assert state.credits == {A: 30, BENEFICIARY: 40, B: 10}
        assert state.escrow == 80
        assert state.liabilities() == 80
        assert sink.transfers == []

    def test_lead_fields_recorded(self, state, sink, emit):
        settlement = RefundSettlement(sink)
        settlement.settle_round(state, state.current, B, 40, emit)
        assert state.current.winner == B
        assert state.current.winning_value == 40
        assert state.current.lead_deposit == 50

    def test_refund_events(self, state, sink, emit, emitted):
        RefundSettlement(sink).settle_round(state, state.current, B, 40, emit)
        refunds = [(d["bidder"], d["amount"], d["reason"]) for k, d in emitted if k == EventKind.REFUND_ISSUED]
        assert refunds == [(A, 30, "refund"), (B, 10, "excess")]

    def test_no_winner_refunds_everyone(self, state, sink, emit):
        report = RefundSettlement(sink).settle_round(state, state.current, None, 0, emit)
        assert report.payment == 0
        assert report.refunded == 80
        assert state.current.winner is None

    def test_withdraw(self, state, sink, emit, emitted):
        settlement = RefundSettlement(sink)
        settlement.settle_round(state, state.current, B, 40, emit)

        assert settlement.withdraw(state, A, emit) == 30
        assert sink.balance_of(A) == 30
        assert state.credits[A] == 0
        assert state.escrow == 50
        assert emitted[-1] == (EventKind.WITHDRAWAL, {"recipient": A, "amount": 30})

    def test_withdraw_nothing(self, state, sink, emit):
        with pytest.raises(InsufficientDeposit):
            RefundSettlement(sink).withdraw(state, A, emit)

    def test_withdraw_rejected(self, state, sink, emit):
        settlement = RefundSettlement(sink)
        settlement.settle_round(state, state.current, B, 40, emit)
        sink.rejecting.add(A)
        with pytest.raises(TransferFailure) as exc:
            settlement.withdraw(state, A, emit)
        assert exc.value.recipient == A
        assert exc.value.amount == 30


# =============================================================================
# Push Settlement
# =============================================================================


class TestPushSettlement:
    """Payouts leave through the sink immediately."""

    def test_settle_transfers(self, state, sink, emit):
        settlement = RefundSettlement(sink, SettlementMode.PUSH)
        settlement.settle_round(state, state.current, B, 40, emit)

        assert sink.balance_of(A) == 30
        assert sink.balance_of(BENEFICIARY) == 40
        assert sink.balance_of(B) == 10
        assert state.escrow == 0
        assert state.credits == {}

    def test_rejected_transfer_raises(self, state, sink, emit):
        sink.rejecting.add(A)
        with pytest.raises(TransferFailure):
            RefundSettlement(sink, SettlementMode.PUSH).settle_round(state, state.current, B, 40, emit)

    def test_withdraw_unavailable(self, state, sink, emit):
        with pytest.raises(InvalidArgument):
            RefundSettlement(sink, SettlementMode.PUSH).withdraw(state, A, emit)

    def test_mode_from_string(self, sink):
        assert RefundSettlement(sink, "push").mode == SettlementMode.PUSH


# =============================================================================
# Funds Sink
# =============================================================================


class TestFundsSink:
    """Tests for the in-memory sink."""

    def test_checkpoint_and_revert(self, sink):
        sink.send(A, 5)
        token = sink.checkpoint()
        sink.send(A, 7)
        sink.send(B, 1)
        sink.revert(token)
        assert sink.balances == {A: 5}
        assert sink.transfers == [(A, 5)]

    def test_hook_runs_before_credit(self, sink):
        seen = []
        sink.hooks[A] = lambda amount: seen.append((amount, sink.balance_of(A)))
        sink.send(A, 9)
        assert seen == [(9, 0)]
        assert sink.balance_of(A) == 9

    def test_pull_accepts_send_only_sink(self, state, emit):
        plain = PlainSink()
        settlement = RefundSettlement(plain)
        assert not settlement.revertible
        assert settlement.checkpoint() is None
        settlement.revert(None)

        settlement.settle_round(state, state.current, B, 40, emit)
        assert settlement.withdraw(state, A, emit) == 30
        assert plain.paid == {A: 30}

    def test_push_requires_revertible_sink(self):
        with pytest.raises(InvalidArgument) as exc:
            RefundSettlement(PlainSink(), SettlementMode.PUSH)
        assert exc.value.details["sink"] == "PlainSink"

    def test_push_accepts_in_memory_sink(self, sink):
        assert RefundSettlement(sink, SettlementMode.PUSH).revertible
