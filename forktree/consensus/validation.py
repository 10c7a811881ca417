"""
Transaction Validation
======================

This module decides whether a set of transactions can be applied, together,
to a given ledger state. The chain-state manager uses it to admit blocks: a
block is valid only if every one of its non-coinbase transactions is accepted
against a copy of the parent's UTXO pool.

A transaction is valid against a pool when:

1. Every input references an output present in the pool.
2. No output is claimed more than once by the transaction.
3. Every input carries a signature that verifies, under the public key of
   the referenced output, over ``tx.get_raw_data_to_sign(index)``.
4. No output value is negative.
5. The sum of input values is at least the sum of output values.

A coinbase transaction can never be valid here: its null input references no
pool entry.

``TxHandler.handle_txs`` goes further and picks a maximal mutually valid
subset of an unordered candidate list. Transactions may spend outputs created
by other candidates, and two candidates may conflict over the same output; the
handler sweeps the candidates repeatedly, applying each valid one to its pool,
until a full sweep accepts nothing new. The first valid claimant of an output
in submission order wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from forktree.core.utxo import UTXO, UTXOPool
from forktree.crypto.keys import PublicKey

if TYPE_CHECKING:
    from forktree.core.transaction import Transaction

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """
    Raised when a transaction violates a validity rule.

    The message names the rule and the offending input or output.
    """
    pass


# ---------------------------------------------------------------------------
# Individual transaction validation
# ---------------------------------------------------------------------------

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_encoding(tx: "Transaction") -> None:
    """
    Reject fields that cannot be serialized, so that txids and signing data
    can be computed for everything that reaches the value rules.
    """
    for i, txin in enumerate(tx.inputs):
        if not isinstance(txin.previous_txid, str) or len(txin.previous_txid) != 64:
            raise ValidationError(f"Input {i} has a malformed previous txid")
        try:
            bytes.fromhex(txin.previous_txid)
        except ValueError as e:
            raise ValidationError(f"Input {i} has a malformed previous txid") from e
        if not _is_int(txin.output_index) or not 0 <= txin.output_index <= 0xffffffff:
            raise ValidationError(f"Input {i} has a malformed output index")
        if txin.signature is not None and not isinstance(txin.signature, bytes):
            raise ValidationError(f"Input {i} has a non-bytes signature")

    for i, txout in enumerate(tx.outputs):
        if not _is_int(txout.value) or not -2 ** 63 <= txout.value < 2 ** 63:
            raise ValidationError(f"Output {i} has a malformed value")
        try:
            bytes.fromhex(txout.pubkey)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Output {i} has a malformed public key") from e


def validate_transaction(tx: "Transaction", utxo_pool: UTXOPool) -> bool:
    """
    Validate *tx* against *utxo_pool*.

    Args:
        tx: The transaction to validate.
        utxo_pool: The ledger state the transaction would be applied to.

    Returns:
        True if the transaction is valid.

    Raises:
        ValidationError: If the transaction violates any rule.
    """
    _check_encoding(tx)

    claimed: set[UTXO] = set()
    total_input_value = 0

    for i, txin in enumerate(tx.inputs):
        utxo = UTXO(txin.previous_txid, txin.output_index)

        # 1. Referenced output must be unspent in this state
        output = utxo_pool.get_output(utxo)
        if output is None:
            raise ValidationError(
                f"Input {i} references unknown or spent output "
                f"{txin.previous_txid[:16]}:{txin.output_index}"
            )

        # 2. Each output may be claimed once
        if utxo in claimed:
            raise ValidationError(
                f"Input {i} claims output {txin.previous_txid[:16]}:"
                f"{txin.output_index} a second time"
            )
        claimed.add(utxo)

        # 3. Signature by the owner of the referenced output
        if not txin.signature:
            raise ValidationError(f"Input {i} is not signed")
        try:
            owner = PublicKey.from_hex(output.pubkey)
        except ValueError as e:
            raise ValidationError(f"Input {i} spends an output with a malformed key: {e}") from e
        if not owner.verify(tx.get_raw_data_to_sign(i), txin.signature):
            raise ValidationError(f"Invalid signature for input {i}")

        total_input_value += output.value

    # 4. No negative outputs
    for i, txout in enumerate(tx.outputs):
        if txout.value < 0:
            raise ValidationError(f"Output {i} has negative value: {txout.value}")

    # 5. Conservation of value
    total_output_value = tx.total_output_value()
    if total_output_value > total_input_value:
        raise ValidationError(
            f"Output value ({total_output_value}) exceeds input value ({total_input_value})"
        )

    return True


def apply_transaction(tx: "Transaction", utxo_pool: UTXOPool) -> None:
    """
    Apply a validated transaction to *utxo_pool* in place.

    Removes every output the transaction spends and adds every output it
    creates.
    """
    for txin in tx.inputs:
        utxo_pool.remove_utxo(UTXO(txin.previous_txid, txin.output_index))
    utxo_pool.add_transaction_outputs(tx)


# ---------------------------------------------------------------------------
# Transaction-set handling
# ---------------------------------------------------------------------------

class TxHandler:
    """
    Selects and applies a mutually valid subset of transactions.

    The handler owns an independent copy of the pool it is created with, so
    the caller's pool is never modified.

    Attributes:
        _utxo_pool: The ledger state, updated as transactions are accepted.
    """

    def __init__(self, utxo_pool: UTXOPool) -> None:
        self._utxo_pool = utxo_pool.copy()

    def is_valid_tx(self, tx: "Transaction") -> bool:
        """
        Check *tx* against the handler's current pool without applying it.
        """
        try:
            return validate_transaction(tx, self._utxo_pool)
        except ValidationError as e:
            logger.debug("Transaction rejected: %s", e)
            return False

    def handle_txs(self, possible_txs: list) -> list:
        """
        Accept a maximal mutually valid subset of *possible_txs*.

        Each accepted transaction is applied to the handler's pool before the
        next candidate is checked, so later candidates can spend its outputs
        and cannot double-spend its inputs.

        Args:
            possible_txs: Candidate transactions, in any order.

        Returns:
            The accepted transactions, in acceptance order.
        """
        accepted = []
        pending = list(possible_txs)

        progress = True
        while pending and progress:
            progress = False
            remaining = []
            for tx in pending:
                if self.is_valid_tx(tx):
                    apply_transaction(tx, self._utxo_pool)
                    accepted.append(tx)
                    progress = True
                else:
                    remaining.append(tx)
            pending = remaining

        if pending:
            logger.debug(
                "Accepted %d of %d transactions; %d left out",
                len(accepted), len(possible_txs), len(pending),
            )
        return accepted

    def get_utxo_pool(self) -> UTXOPool:
        """Return the handler's pool (the state after accepted transactions)."""
        return self._utxo_pool


def handle_transactions(utxo_pool: UTXOPool, possible_txs: list) -> tuple:
    """
    Functional form of ``TxHandler.handle_txs``.

    Args:
        utxo_pool: Starting ledger state (left unmodified).
        possible_txs: Candidate transactions.

    Returns:
        A tuple of (accepted transactions, resulting UTXOPool).
    """
    handler = TxHandler(utxo_pool)
    accepted = handler.handle_txs(possible_txs)
    return accepted, handler.get_utxo_pool()
