"""
Pause gate with an optional delegated pause authority.

The delegated capability is injected at construction. When none is given,
NullPauser stands in so the guard never has to branch on its presence.
Calls to the delegate are queued during an operation and made only after
the operation succeeds.
"""

from typing import Callable, List, Optional, Protocol

from sealbid.core.auction.models import AuctionState
from sealbid.core.errors import NotPaused, PausedState


class PauseCapability(Protocol):
    """External pause authority."""

    def pause(self) -> None:
        ...

    def unpause(self) -> None:
        ...

    def is_paused(self) -> bool:
        ...


class NullPauser:
    """Pause capability that does nothing and is never paused."""

    def pause(self) -> None:
        pass

    def unpause(self) -> None:
        pass

    def is_paused(self) -> bool:
        return False


class PauseGuard:
    """
    System-wide gate.

    The engine is paused if its own flag is set or the delegate reports
    paused. Pausing and unpausing are forwarded to the delegate by
    commit().
    """

    def __init__(self, delegate: Optional[PauseCapability] = None):
        self.delegate = delegate if delegate is not None else NullPauser()
        self._queued: List[Callable[[], None]] = []

    def is_paused(self, state: AuctionState) -> bool:
        return state.admin.paused or self.delegate.is_paused()

    def require_running(self, state: AuctionState) -> None:
        if self.is_paused(state):
            raise PausedState("Auction is paused")

    def pause(self, state: AuctionState) -> None:
        if self.is_paused(state):
            raise PausedState("Auction is already paused")
        state.admin.paused = True
        self._queued.append(self.delegate.pause)

    def force_pause(self, state: AuctionState) -> bool:
        """Pause regardless of current state. Returns True if it was running."""
        was_running = not self.is_paused(state)
        state.admin.paused = True
        if was_running:
            self._queued.append(self.delegate.pause)
        return was_running

    def unpause(self, state: AuctionState) -> None:
        if not self.is_paused(state):
            raise NotPaused("Auction is not paused")
        state.admin.paused = False
        if self.delegate.is_paused():
            self._queued.append(self.delegate.unpause)

    def commit(self) -> None:
        """Forward the queued pause changes to the delegate."""
        queued, self._queued = self._queued, []
        for call in queued:
            call()

    def discard(self) -> None:
        self._queued = []
