"""
Unspent Transaction Output (UTXO) pool.

Each node of the block tree carries its own ``UTXOPool``: the set of outputs
that are spendable by a block extending that node. Pools are never shared
between nodes. A child's pool starts as an independent copy of its parent's,
which is what lets every branch tip hold a consistent ledger without
replaying history from genesis.

This module provides:

- **UTXO**: an output reference, ``(txid, index)``. Hashable and ordered so it
  can key a dictionary and be sorted for display.

- **UTXOPool**: a mapping from UTXO to the ``TransactionOutput`` it names,
  with add/remove/lookup and an independent ``copy()``.
"""

from __future__ import annotations

import copy
import functools
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from forktree.core.transaction import Transaction, TransactionOutput


# ---------------------------------------------------------------------------
# UTXO
# ---------------------------------------------------------------------------

@functools.total_ordering
class UTXO:
    """
    Reference to one output of one transaction.

    Attributes:
        txid: Hex id of the transaction that created the output.
        index: Position of the output in that transaction.
    """

    __slots__ = ('txid', 'index')

    def __init__(self, txid: str, index: int):
        self.txid = txid
        self.index = index

    def __eq__(self, other) -> bool:
        if not isinstance(other, UTXO):
            return NotImplemented
        return self.txid == other.txid and self.index == other.index

    def __lt__(self, other) -> bool:
        if not isinstance(other, UTXO):
            return NotImplemented
        return (self.txid, self.index) < (other.txid, other.index)

    def __hash__(self) -> int:
        return hash((self.txid, self.index))

    def __repr__(self) -> str:
        return f"UTXO({self.txid[:16]}...:{self.index})"


# ---------------------------------------------------------------------------
# UTXOPool
# ---------------------------------------------------------------------------

class UTXOPool:
    """
    In-memory set of unspent outputs for one ledger state.

    Attributes:
        _utxos: Internal dictionary mapping UTXO to TransactionOutput.
    """

    def __init__(self, other: Optional[UTXOPool] = None):
        """
        Initialize an empty pool, or an independent copy of *other*.
        """
        self._utxos: dict[UTXO, TransactionOutput] = {}
        if other is not None:
            self._utxos = copy.deepcopy(other._utxos)

    def add_utxo(self, utxo: UTXO, output: "TransactionOutput") -> None:
        """
        Add (or replace) the output named by *utxo*.
        """
        self._utxos[utxo] = output

    def remove_utxo(self, utxo: UTXO) -> "TransactionOutput":
        """
        Remove and return the output named by *utxo*.

        Raises:
            KeyError: If the UTXO is not in the pool.
        """
        if utxo not in self._utxos:
            raise KeyError(f"UTXO not found: {utxo.txid}:{utxo.index}")
        return self._utxos.pop(utxo)

    def get_output(self, utxo: UTXO) -> Optional["TransactionOutput"]:
        """Look up an output without removing it. None if absent."""
        return self._utxos.get(utxo)

    def contains(self, utxo: UTXO) -> bool:
        return utxo in self._utxos

    def add_transaction_outputs(self, tx: "Transaction") -> int:
        """
        Add every output of *tx* to the pool.

        This is how coinbase rewards are folded into a block's state.

        Returns:
            The number of outputs added.
        """
        txid = tx.txid
        for index, output in enumerate(tx.outputs):
            self._utxos[UTXO(txid, index)] = output
        return len(tx.outputs)

    def get_all_utxos(self) -> list[UTXO]:
        """Return every UTXO in the pool, sorted."""
        return sorted(self._utxos)

    def get_utxos_for_pubkey(self, pubkey: str) -> list[tuple[UTXO, "TransactionOutput"]]:
        """
        Find all outputs locked to *pubkey*.

        Returns:
            A list of (UTXO, TransactionOutput) tuples, sorted by UTXO.
        """
        return sorted(
            ((utxo, output) for utxo, output in self._utxos.items() if output.pubkey == pubkey),
            key=lambda item: item[0],
        )

    def get_balance(self, pubkey: str) -> int:
        """Sum the values of all outputs locked to *pubkey*."""
        return sum(output.value for _, output in self.get_utxos_for_pubkey(pubkey))

    def size(self) -> int:
        return len(self._utxos)

    def copy(self) -> UTXOPool:
        """
        Create an independent copy of this pool.

        Mutating the copy (or the outputs it holds) never affects the
        original.
        """
        return UTXOPool(self)

    def __contains__(self, utxo: UTXO) -> bool:
        return self.contains(utxo)

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"UTXOPool(size={self.size()})"
