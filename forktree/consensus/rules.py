"""
Chain Admission Rules
=====================

Constants and outcome codes shared by the chain-state manager and its
collaborators.

Cut-off age
-----------
The node keeps every branch it has accepted, but it only lets a new block
attach where the resulting height is within ``CUT_OFF_AGE`` of the best known
height. With the best tip at height 15 a block may attach at height 6 or
above, never at height 5 or below. This fixed sliding window is the only
admission control over competing forks: there is no weight or score
comparison.

Genesis is height 1, so a block extending genesis (height 2) is admissible
while the best height is at most ``CUT_OFF_AGE + 1``.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Consensus constants
# ---------------------------------------------------------------------------

CUT_OFF_AGE = 10
"""Maximum number of blocks a new block's height may trail the best tip's
height and still be admitted (exclusive: trailing by exactly CUT_OFF_AGE is
rejected)."""

COINBASE_VALUE = 25
"""Value of the single reward output of a coinbase transaction."""


# ---------------------------------------------------------------------------
# Admission outcomes
# ---------------------------------------------------------------------------

class BlockStatus(enum.Enum):
    """
    Outcome of submitting a block to the chain-state manager.

    Every rejection is an ordinary outcome of feeding untrusted data to the
    node. None of them is raised as an exception.
    """

    ACCEPTED = "accepted"
    REJECTED_NO_HASH = "rejected: block has no hash"
    REJECTED_GENESIS_RESUBMIT = "rejected: block declares no parent"
    REJECTED_UNKNOWN_PARENT = "rejected: parent is not known"
    REJECTED_DUPLICATE = "rejected: block is already in the tree"
    REJECTED_TOO_OLD = "rejected: height is outside the cut-off window"
    REJECTED_INVALID_TRANSACTIONS = "rejected: transactions are not jointly valid"

    @property
    def accepted(self) -> bool:
        return self is BlockStatus.ACCEPTED


def is_within_cutoff(candidate_height: int, best_height: int) -> bool:
    """
    Check the sliding admission window.

    Args:
        candidate_height: Height the new block would have.
        best_height: Height of the current best tip.

    Returns:
        True if ``candidate_height > best_height - CUT_OFF_AGE``.
    """
    return candidate_height > best_height - CUT_OFF_AGE


def can_receive_children(height: int, best_height: int) -> bool:
    """True if a node at *height* may still be extended by a new block."""
    return is_within_cutoff(height + 1, best_height)
