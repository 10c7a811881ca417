"""
Chain-State Management
======================

This module implements ``Blockchain``, the node's view of the block *tree*.
Every accepted block becomes a ``ChainNode`` that carries:

- its height (genesis is 1, every other node is its parent's height + 1),
- the UTXO pool that results from applying the block and all its ancestors,
  i.e. the state a miner starts from to extend that branch.

Because each node owns a complete pool, every branch tip has a consistent
ledger at all times. Admitting a block on any branch costs one pool copy and
one validation pass; nothing is ever replayed from genesis, and switching the
best tip is just moving a pointer.

Admitting a block (``submit_block``)
------------------------------------
1. The block must carry a hash and name a parent.
2. The parent must already be in the tree. Orphans are not buffered.
3. The block must not already be in the tree.
4. The resulting height must lie inside the cut-off window,
   ``height > best_height - CUT_OFF_AGE``.
5. Every non-coinbase transaction must be accepted by a ``TxHandler`` running
   on a copy of the parent's pool. Partial validity rejects the whole block.
6. The coinbase outputs are added unconditionally.
7. The node is linked under its parent and indexed by hash.
8. The best tip moves only to a strictly taller node, so among equal
   heights the first accepted wins.

Tree layout
-----------
Nodes live in an arena keyed by small integer ids handed out in acceptance
order. A hash index maps block hashes to ids, and a separate multimap records
the children of each id. Nodes own no references to each other, so evicting a
node is a matter of deleting dictionary entries.

Retention
---------
By default every node is kept forever. With ``prune_stale_nodes=True`` the
manager evicts nodes that can no longer receive a child (their height is below
``best_height - CUT_OFF_AGE``) after each best-tip change. A pruned hash looks
unknown to later submissions.

Pending pool
------------
``add_transaction`` only stores transactions. With
``prune_pool_on_accept=True`` the pool also drops the transactions of each
accepted block and any pending transaction that conflicts with them. This
happens for blocks on side branches too: if such a branch never overtakes
the best chain, the dropped transactions are not restored and must be
resubmitted by the caller.

The manager performs no locking: callers serialize mutating calls.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from forktree.consensus.rules import (
    CUT_OFF_AGE,
    BlockStatus,
    can_receive_children,
    is_within_cutoff,
)
from forktree.consensus.validation import TxHandler
from forktree.core.mempool import TransactionPool
from forktree.core.utxo import UTXOPool

if TYPE_CHECKING:
    from forktree.core.block import Block
    from forktree.core.transaction import Transaction

logger = logging.getLogger(__name__)


class InvalidGenesisError(ValueError):
    """Raised when the block given to the constructor cannot be a genesis block."""


class ChainInvariantError(AssertionError):
    """Raised when the tree is about to be corrupted by a broken precondition."""


class ChainNode:
    """
    One accepted block as positioned in the tree.

    The block and parent hashes are recorded at admission, so the tree stays
    consistent even if the caller later mutates the block.

    Attributes:
        node_id: Arena index of this node.
        block: The accepted block.
        block_hash: Hash of the block when it was accepted.
        parent_hash: Hash of the parent block, None for genesis.
        parent_id: Arena index of the parent, None for genesis.
        height: 1 for genesis, otherwise parent height + 1.
        utxo_pool: Ledger state after this block.
    """

    __slots__ = ('node_id', 'block', 'block_hash', 'parent_hash', 'parent_id', 'height', 'utxo_pool')

    def __init__(
        self,
        node_id: int,
        block: "Block",
        parent_id: Optional[int],
        height: int,
        utxo_pool: UTXOPool,
    ) -> None:
        self.node_id = node_id
        self.block = block
        self.block_hash = block.get_hash()
        self.parent_hash = block.get_previous_hash()
        self.parent_id = parent_id
        self.height = height
        self.utxo_pool = utxo_pool

    def __repr__(self) -> str:
        return f"ChainNode(id={self.node_id}, height={self.height}, hash={self.block_hash[:16]}...)"


class Blockchain:
    """
    Fork-aware chain-state manager.

    Attributes:
        pending_pool: Transactions not yet included in an accepted block.
        prune_pool_on_accept: Drop confirmed and conflicting transactions
            from the pending pool when a block is accepted, on any
            branch. Side-branch pruning is not undone if the branch never
            becomes the best chain.
        prune_stale_nodes: Evict nodes that can no longer be extended.
    """

    def __init__(
        self,
        genesis_block: "Block",
        prune_pool_on_accept: bool = False,
        prune_stale_nodes: bool = False,
    ) -> None:
        """
        Create a tree holding only *genesis_block*.

        The genesis block is trusted: its transactions are not validated,
        only its coinbase outputs are added to the initial pool.

        Raises:
            InvalidGenesisError: If the block names a parent or has no hash.
        """
        if genesis_block.get_previous_hash() is not None:
            raise InvalidGenesisError("Genesis block must not declare a parent hash")
        if genesis_block.get_hash() is None:
            raise InvalidGenesisError("Genesis block has no hash; call finalize() first")

        self.pending_pool = TransactionPool()
        self.prune_pool_on_accept = prune_pool_on_accept
        self.prune_stale_nodes = prune_stale_nodes

        self._nodes: dict[int, ChainNode] = {}
        self._index: dict[str, int] = {}
        self._children: dict[int, set[int]] = {}
        self._next_id = 0

        utxo_pool = UTXOPool()
        utxo_pool.add_transaction_outputs(genesis_block.get_coinbase())
        self._best_tip = self._create_node(genesis_block, utxo_pool, None)

        logger.info("Initialized chain with genesis block %s", genesis_block.get_hash()[:16])

    # ------------------------------------------------------------------
    # Tip queries
    # ------------------------------------------------------------------

    def get_best_tip_block(self) -> "Block":
        """Return the block at the tip of the tallest branch."""
        return self._best_tip.block

    def get_best_tip_hash(self) -> str:
        """Return the best tip's hash as recorded when it was accepted."""
        return self._best_tip.block_hash

    def get_best_tip_utxo_snapshot(self) -> UTXOPool:
        """
        Return an independent copy of the best tip's UTXO pool.

        This is the state a miner starts from to build the next block.
        """
        return self._best_tip.utxo_pool.copy()

    def get_pending_pool(self) -> TransactionPool:
        """Return the live pending-transaction pool."""
        return self.pending_pool

    @property
    def best_height(self) -> int:
        return self._best_tip.height

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_transaction(self, tx: "Transaction") -> None:
        """Store *tx* in the pending pool. No validation is performed."""
        self.pending_pool.add_transaction(tx)

    def add_block(self, block: "Block") -> bool:
        """
        Admit *block* if it is valid.

        Returns:
            True if the block was added to the tree.
        """
        return self.submit_block(block).accepted

    def submit_block(self, block: "Block") -> BlockStatus:
        """
        Admit *block* and report why it was or was not added.

        Returns:
            ``BlockStatus.ACCEPTED`` or the first rejection that applies.
        """
        block_hash = block.get_hash()
        if block_hash is None:
            logger.warning("Rejected block without a hash")
            return BlockStatus.REJECTED_NO_HASH

        parent_hash = block.get_previous_hash()
        if parent_hash is None:
            logger.warning("Rejected block %s: declares no parent", block_hash[:16])
            return BlockStatus.REJECTED_GENESIS_RESUBMIT

        parent = self._lookup(parent_hash)
        if parent is None:
            logger.warning(
                "Rejected block %s: unknown parent %s", block_hash[:16], parent_hash[:16],
            )
            return BlockStatus.REJECTED_UNKNOWN_PARENT

        if block_hash in self._index:
            logger.warning("Rejected block %s: already in the tree", block_hash[:16])
            return BlockStatus.REJECTED_DUPLICATE

        candidate_height = parent.height + 1
        if not is_within_cutoff(candidate_height, self._best_tip.height):
            logger.warning(
                "Rejected block %s: height %d is too far behind best height %d",
                block_hash[:16], candidate_height, self._best_tip.height,
            )
            return BlockStatus.REJECTED_TOO_OLD

        block_txs = block.get_transactions()
        handler = TxHandler(parent.utxo_pool)
        valid_txs = handler.handle_txs(block_txs)
        if len(valid_txs) != len(block_txs):
            logger.warning(
                "Rejected block %s: only %d of %d transactions are valid",
                block_hash[:16], len(valid_txs), len(block_txs),
            )
            return BlockStatus.REJECTED_INVALID_TRANSACTIONS

        utxo_pool = handler.get_utxo_pool()
        utxo_pool.add_transaction_outputs(block.get_coinbase())
        node = self._create_node(block, utxo_pool, parent_hash)

        logger.info(
            "Accepted block %s at height %d (%d txs)",
            block_hash[:16], node.height, len(block_txs),
        )

        if node.height > self._best_tip.height:
            self._best_tip = node
            logger.info("New best tip %s at height %d", block_hash[:16], node.height)
            if self.prune_stale_nodes:
                self.prune_stale()

        if self.prune_pool_on_accept:
            confirmed = self.pending_pool.remove_confirmed(block)
            conflicting = self.pending_pool.remove_conflicting(block)
            logger.debug(
                "Pruned %d confirmed and %d conflicting transactions from pending pool",
                confirmed, conflicting,
            )

        return BlockStatus.ACCEPTED

    # ------------------------------------------------------------------
    # Tree bookkeeping
    # ------------------------------------------------------------------

    def _create_node(
        self,
        block: "Block",
        utxo_pool: UTXOPool,
        parent_hash: Optional[str],
    ) -> ChainNode:
        """
        Build a node for *block*, link it under its parent and index it.

        Raises:
            ChainInvariantError: If *parent_hash* is given but not indexed.
        """
        if parent_hash is None:
            parent_id = None
            height = 1
        else:
            parent = self._lookup(parent_hash)
            if parent is None:
                raise ChainInvariantError(
                    f"Parent {parent_hash[:16]} of block {block.get_hash()[:16]} is not in the tree"
                )
            parent_id = parent.node_id
            height = parent.height + 1

        node = ChainNode(self._next_id, block, parent_id, height, utxo_pool)
        self._next_id += 1

        self._nodes[node.node_id] = node
        self._index[node.block_hash] = node.node_id
        self._children[node.node_id] = set()
        if parent_id is not None:
            self._children[parent_id].add(node.node_id)

        logger.debug("Indexed node %d for block %s", node.node_id, node.block_hash[:16])
        return node

    def _lookup(self, block_hash: str) -> Optional[ChainNode]:
        node_id = self._index.get(block_hash)
        if node_id is None:
            return None
        return self._nodes[node_id]

    def prune_stale(self) -> int:
        """
        Evict every node that can no longer receive a child.

        A node at height ``h`` is stale once ``h + 1`` falls outside the
        cut-off window of the best tip. Stale nodes can neither be extended
        nor become the best tip, and no retained node reads their pools.

        Returns:
            The number of nodes evicted.
        """
        best_height = self._best_tip.height
        stale = [
            node for node in self._nodes.values()
            if not can_receive_children(node.height, best_height)
        ]
        for node in stale:
            del self._nodes[node.node_id]
            del self._index[node.block_hash]
            del self._children[node.node_id]
        # A parent is never taller than its child, so it is evicted in the
        # same pass. Retained nodes keep a dangling parent_id.

        if stale:
            logger.info(
                "Evicted %d stale nodes below height %d",
                len(stale), best_height - CUT_OFF_AGE,
            )
        return len(stale)

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def get_block(self, block_hash: str) -> Optional["Block"]:
        node = self._lookup(block_hash)
        return node.block if node is not None else None

    def get_height(self, block_hash: str) -> Optional[int]:
        node = self._lookup(block_hash)
        return node.height if node is not None else None

    def get_utxo_snapshot(self, block_hash: str) -> Optional[UTXOPool]:
        """Return an independent copy of the pool after *block_hash*, if retained."""
        node = self._lookup(block_hash)
        return node.utxo_pool.copy() if node is not None else None

    def get_children(self, block_hash: str) -> list[str]:
        """
        Return the hashes of the retained children of *block_hash*.

        Children are listed in acceptance order. An unknown hash has none.
        """
        node_id = self._index.get(block_hash)
        if node_id is None:
            return []
        return [self._nodes[child_id].block_hash for child_id in sorted(self._children[node_id])]

    def get_parent_hash(self, block_hash: str) -> Optional[str]:
        node = self._lookup(block_hash)
        return node.parent_hash if node is not None else None

    def get_roots(self) -> list[str]:
        """
        Return the hashes of retained nodes whose parent is not retained.

        Without pruning this is just the genesis hash.
        """
        return [
            node.block_hash for node_id, node in sorted(self._nodes.items())
            if node.parent_id is None or node.parent_id not in self._nodes
        ]

    def get_tips(self) -> list[str]:
        """Return the hashes of retained nodes with no children."""
        return [
            self._nodes[node_id].block_hash
            for node_id, children in sorted(self._children.items())
            if not children
        ]

    def contains(self, block_hash: str) -> bool:
        return block_hash in self._index

    def __contains__(self, block_hash: str) -> bool:
        return self.contains(block_hash)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return (
            f"Blockchain(nodes={len(self._nodes)}, best_height={self._best_tip.height}, "
            f"pending={self.pending_pool.size})"
        )
