"""
Winner selection over decrypted bids.

Total order among bidders whose value equals the decrypted maximum:
1. Greater deposit wins
2. Equal deposit: earlier registration wins

The scan replaces the current winner only on a strictly greater deposit,
which gives rule 2 for free.
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from sealbid.utils.logger import get_logger

logger = get_logger("tiebreak")


@dataclass(frozen=True)
class DecryptedRound:
    """Cleartexts aligned with the decryption handle order."""
    max_value: int
    bid_values: List[int]

    @classmethod
    def from_values(cls, values: Sequence[int]) -> "DecryptedRound":
        """Split [max, bid_1, ..., bid_N]; the count is checked when decoding."""
        return cls(max_value=values[0], bid_values=list(values[1:]))


def select_winner(
    bidders: Sequence[str],
    bid_values: Sequence[int],
    deposits: Mapping[str, int],
    max_value: int,
) -> Tuple[Optional[str], int]:
    """
    Select the winning bidder.

    Args:
        bidders: Identities in registration order
        bid_values: Decrypted bids aligned with `bidders`
        deposits: Identity -> current deposit
        max_value: Decrypted running maximum

    Returns:
        Tuple of (winner, winner_index)
        Returns (None, -1) if no bidder matches the maximum
    """
    winner: Optional[str] = None
    winner_idx = -1
    best_deposit = -1

    for i, (bidder, value) in enumerate(zip(bidders, bid_values)):
        if value != max_value:
            continue
        deposit = deposits.get(bidder, 0)
        if deposit > best_deposit:
            winner = bidder
            winner_idx = i
            best_deposit = deposit

    if winner is None:
        logger.debug("No bidder matched the decrypted maximum")
    else:
        logger.debug(f"Selected winner {winner} at index {winner_idx} with deposit {best_deposit}")
    return winner, winner_idx
