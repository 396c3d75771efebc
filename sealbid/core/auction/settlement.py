"""
Refund Settlement - Paying losers, the winner and the beneficiary.

Manages:
- Refunds of non-winning deposits
- Winner payment min(winning_value, deposit) to the beneficiary
- Refund of the winner's excess deposit
- Emergency and reclaim refunds
- Withdrawals of credited balances

Two settlement modes:
- PUSH: funds leave through the FundsSink immediately; a rejected transfer
  raises TransferFailure and the engine rolls the whole operation back.
- PULL: payouts are credited to the recipient; they withdraw later, so one
  recipient rejecting funds only affects their own withdrawal.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from sealbid.core.auction.events import EventKind
from sealbid.core.auction.models import AuctionState, Round
from sealbid.core.config import SettlementMode
from sealbid.core.errors import InsufficientDeposit, InvalidArgument, TransferFailure
from sealbid.utils.logger import get_logger

logger = get_logger("settlement")

Emit = Callable[..., None]


# =============================================================================
# Funds Boundary
# =============================================================================


class FundsSink(Protocol):
    """
    Moves funds out of the auction.

    checkpoint/revert undo transfers made by an operation that is later
    rolled back. Push settlement requires them; pull settlement makes at
    most one transfer per operation, as its last step, and also accepts a
    sink that only implements send.
    """

    def send(self, recipient: str, amount: int) -> bool:
        """Transfer amount to recipient. False if the recipient rejects it."""
        ...

    def checkpoint(self) -> Any:
        """Opaque token for the current balances."""
        ...

    def revert(self, token: Any) -> None:
        """Restore the balances captured by checkpoint."""
        ...


def supports_revert(funds: Any) -> bool:
    return callable(getattr(funds, "checkpoint", None)) and callable(getattr(funds, "revert", None))


class InMemoryFundsSink:
    """
    Balance book standing in for external accounts.

    Recipients in `rejecting` refuse every transfer. `hooks` run when a
    recipient receives funds, before the transfer returns.
    """

    def __init__(self):
        self.balances: Dict[str, int] = {}
        self.rejecting: Set[str] = set()
        self.hooks: Dict[str, Callable[[int], Any]] = {}
        self.transfers: List[tuple] = []

    def send(self, recipient: str, amount: int) -> bool:
        if recipient in self.rejecting:
            return False
        hook = self.hooks.get(recipient)
        if hook is not None:
            hook(amount)
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.transfers.append((recipient, amount))
        return True

    def balance_of(self, identity: str) -> int:
        return self.balances.get(identity, 0)

    def checkpoint(self) -> Dict[str, Any]:
        return {"balances": dict(self.balances), "transfers": list(self.transfers)}

    def revert(self, token: Dict[str, Any]) -> None:
        self.balances = token["balances"]
        self.transfers = token["transfers"]


# =============================================================================
# Reports
# =============================================================================


@dataclass(frozen=True)
class Payout:
    """A single amount owed to a recipient."""
    recipient: str
    amount: int
    reason: str


@dataclass
class SettlementReport:
    """What a settlement paid out."""
    winner: Optional[str] = None
    winning_value: int = 0
    payment: int = 0
    payouts: List[Payout] = field(default_factory=list)

    @property
    def refunded(self) -> int:
        return sum(p.amount for p in self.payouts if p.reason != "payment")


# =============================================================================
# Settlement
# =============================================================================


class RefundSettlement:
    """
    Executes payouts against the engine state.

    All methods mutate the AuctionState passed in; rollback on failure is
    the engine's job.
    """

    def __init__(self, funds: FundsSink, mode: SettlementMode = SettlementMode.PULL):
        """
        Raises:
            InvalidArgument: push mode with a sink that cannot revert
        """
        self.funds = funds
        self.mode = SettlementMode(mode)
        self.revertible = supports_revert(funds)
        if self.mode == SettlementMode.PUSH and not self.revertible:
            raise InvalidArgument(
                "Push settlement needs a funds sink with checkpoint/revert",
                details={"sink": type(funds).__name__},
            )

    # =========================================================================
    # Payout Primitive
    # =========================================================================

    def _pay(self, state: AuctionState, recipient: str, amount: int, reason: str,
             report: SettlementReport) -> None:
        if amount <= 0:
            return
        if self.mode == SettlementMode.PUSH:
            self._transfer(state, recipient, amount)
        else:
            state.credits[recipient] = state.credits.get(recipient, 0) + amount
        report.payouts.append(Payout(recipient=recipient, amount=amount, reason=reason))
        logger.debug(f"{reason}: {amount} -> {recipient} ({self.mode.value})")

    def _transfer(self, state: AuctionState, recipient: str, amount: int) -> None:
        state.escrow -= amount
        if not self.funds.send(recipient, amount):
            logger.error(f"Transfer of {amount} to {recipient} rejected")
            raise TransferFailure(
                f"Transfer of {amount} to {recipient} rejected",
                recipient=recipient,
                amount=amount,
            )

    def _refund(self, state: AuctionState, identity: str, reason: str,
                report: SettlementReport, emit: Emit) -> int:
        record = state.records.get(identity)
        if record is None or record.deposit == 0:
            return 0
        amount = record.deposit
        record.deposit = 0
        self._pay(state, identity, amount, reason, report)
        emit(EventKind.REFUND_ISSUED, bidder=identity, amount=amount, reason=reason)
        return amount

    # =========================================================================
    # Round Settlement
    # =========================================================================

    def settle_round(
        self,
        state: AuctionState,
        rnd: Round,
        winner: Optional[str],
        winning_value: int,
        emit: Emit,
    ) -> SettlementReport:
        """
        Settle a decrypted round.

        Args:
            state: Engine state
            rnd: The round being settled
            winner: Selected winner, or None for an empty round
            winning_value: Decrypted maximum
            emit: Event emitter

        Returns:
            SettlementReport
        """
        report = SettlementReport(winner=winner, winning_value=winning_value if winner else 0)

        for bidder in rnd.bidders:
            if bidder != winner:
                self._refund(state, bidder, "refund", report, emit)

        if winner is not None:
            record = state.records[winner]
            deposit = record.deposit
            rnd.winner = winner
            rnd.winning_value = winning_value
            rnd.lead_deposit = deposit

            if deposit > 0:
                payment = min(winning_value, deposit)
                record.deposit = 0
                self._pay(state, state.admin.beneficiary, payment, "payment", report)
                report.payment = payment

                excess = deposit - payment
                if excess > 0:
                    self._pay(state, winner, excess, "excess", report)
                    emit(EventKind.REFUND_ISSUED, bidder=winner, amount=excess, reason="excess")

        logger.info(
            f"Round {rnd.round_id} settled: winner={winner}, payment={report.payment}, "
            f"refunded={report.refunded}"
        )
        return report

    def refund_all(self, state: AuctionState, bidders: List[str], reason: str,
                   emit: Emit) -> SettlementReport:
        """Refund every listed bidder's full deposit."""
        report = SettlementReport()
        for bidder in bidders:
            self._refund(state, bidder, reason, report, emit)
        return report

    def refund_one(self, state: AuctionState, identity: str, reason: str,
                   emit: Emit) -> SettlementReport:
        """Refund a single identity's deposit (no-op if nothing is held)."""
        report = SettlementReport()
        self._refund(state, identity, reason, report, emit)
        return report

    # =========================================================================
    # Withdrawals (pull mode)
    # =========================================================================

    def withdraw(self, state: AuctionState, identity: str, emit: Emit) -> int:
        """
        Transfer an identity's credited balance out.

        Returns:
            Amount withdrawn

        Raises:
            InvalidArgument: not in pull mode
            InsufficientDeposit: nothing credited
            TransferFailure: recipient rejected the funds
        """
        if self.mode != SettlementMode.PULL:
            raise InvalidArgument("Withdrawals are only available in pull settlement mode")

        amount = state.credits.get(identity, 0)
        if amount == 0:
            raise InsufficientDeposit(f"Nothing to withdraw for {identity}")

        state.credits[identity] = 0
        self._transfer(state, identity, amount)
        emit(EventKind.WITHDRAWAL, recipient=identity, amount=amount)
        return amount

    # =========================================================================
    # Funds Checkpointing
    # =========================================================================

    def checkpoint(self) -> Optional[Any]:
        """Snapshot the sink if it supports reverting."""
        return self.funds.checkpoint() if self.revertible else None

    def revert(self, token: Optional[Any]) -> None:
        if token is not None and self.revertible:
            self.funds.revert(copy.deepcopy(token))
