"""
Block Templates
===============

A miner extends the best tip. To do that it needs:

1. The best tip's hash, to name as the parent.
2. The best tip's UTXO pool, to decide which pending transactions can be
   included.
3. The pending pool itself.

``create_block_template`` combines them: it runs the pending transactions
through a ``TxHandler`` seeded with the best tip's snapshot, keeps the
maximal valid subset, and returns a finalized block with a coinbase paying the
miner. Since the selection was made against the very state the block will be
validated against, the template is accepted by ``Blockchain.add_block`` as
long as the best tip has not moved in the meantime.

There is no proof-of-work search: the block is ready to submit as returned.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from forktree.consensus.rules import COINBASE_VALUE
from forktree.consensus.validation import TxHandler
from forktree.core.block import Block

if TYPE_CHECKING:
    from forktree.core.blockchain import Blockchain

logger = logging.getLogger(__name__)


def create_block_template(
    blockchain: "Blockchain",
    miner_pubkey: str,
    extra_nonce: int = 0,
    reward: int = COINBASE_VALUE,
) -> Block:
    """
    Build a finalized block on top of the current best tip.

    Args:
        blockchain: The chain-state manager to read the best tip and the
            pending pool from. It is not modified.
        miner_pubkey: Hex compressed public key receiving the reward.
        extra_nonce: Distinguishes competing templates by the same miner.
        reward: Value of the coinbase output.

    Returns:
        A finalized Block carrying every pending transaction that is valid
        on the best tip, in acceptance order.
    """
    parent_hash = blockchain.get_best_tip_hash()
    candidates = blockchain.get_pending_pool().get_transactions()

    handler = TxHandler(blockchain.get_best_tip_utxo_snapshot())
    selected = handler.handle_txs(candidates)

    block = Block.create(parent_hash, miner_pubkey, extra_nonce=extra_nonce, reward=reward)
    for tx in selected:
        block.add_transaction(tx)
    block.finalize()

    logger.info(
        "Built block template %s on %s with %d of %d pending transactions",
        block.get_hash()[:16], parent_hash[:16], len(selected), len(candidates),
    )
    return block
