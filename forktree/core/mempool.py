"""
Pending Transaction Pool
========================

The pool holds transactions that have been announced to the node but are not
yet part of any accepted block. It is shared by every branch of the tree:
whether a pending transaction is spendable depends on which tip a miner
builds on, so the pool does no validation of its own. Validation happens
only when a block carrying the transaction is admitted.

Transactions are kept in arrival order, keyed by txid. Adding a transaction
whose txid is already present replaces it in place.

By default nothing ever leaves the pool implicitly. The chain-state manager
can be configured to call ``remove_confirmed`` and ``remove_conflicting``
when it accepts a block.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from forktree.core.utxo import UTXO

if TYPE_CHECKING:
    from forktree.core.block import Block
    from forktree.core.transaction import Transaction

logger = logging.getLogger(__name__)


class TransactionPool:
    """
    Collection of unconfirmed transactions.

    Attributes:
        transactions: Mapping from txid to Transaction, in arrival order.
    """

    def __init__(self) -> None:
        self.transactions: dict[str, Transaction] = {}

    def add_transaction(self, tx: "Transaction") -> None:
        """Insert *tx* unconditionally."""
        self.transactions[tx.txid] = tx
        logger.debug("Added transaction %s to pending pool", tx.txid[:16])

    def remove_transaction(self, txid: str) -> "Transaction | None":
        """
        Remove a transaction by txid.

        Returns:
            The removed Transaction, or None if not found.
        """
        tx = self.transactions.pop(txid, None)
        if tx is not None:
            logger.debug("Removed transaction %s from pending pool", txid[:16])
        return tx

    def get_transaction(self, txid: str) -> "Transaction | None":
        return self.transactions.get(txid)

    def get_transactions(self) -> list["Transaction"]:
        """Return all pending transactions in arrival order."""
        return list(self.transactions.values())

    def remove_confirmed(self, block: "Block") -> int:
        """
        Remove every transaction of *block* from the pool.

        Returns:
            The number of transactions removed.
        """
        removed_count = 0
        for tx in block.transactions:
            if self.remove_transaction(tx.txid) is not None:
                removed_count += 1
        return removed_count

    def remove_conflicting(self, block: "Block") -> int:
        """
        Remove pool transactions that spend an output *block* already spent.

        Returns:
            The number of transactions removed.
        """
        spent: set[UTXO] = {
            UTXO(txin.previous_txid, txin.output_index)
            for tx in block.transactions
            for txin in tx.inputs
        }
        conflicting = [
            txid for txid, tx in self.transactions.items()
            if any(UTXO(txin.previous_txid, txin.output_index) in spent for txin in tx.inputs)
        ]
        for txid in conflicting:
            self.remove_transaction(txid)
        return len(conflicting)

    @property
    def size(self) -> int:
        """Number of pending transactions."""
        return len(self.transactions)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, txid: str) -> bool:
        return txid in self.transactions

    def to_dict(self) -> dict:
        return {
            "transactions": {txid: tx.to_dict() for txid, tx in self.transactions.items()},
        }

    def __repr__(self) -> str:
        return f"TransactionPool(size={self.size})"
