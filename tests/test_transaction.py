"""
Tests for Transaction
=====================

Tests cover:
- txid computation and caching
- Signing data coverage
- Coinbase construction and detection
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from forktree.consensus.rules import COINBASE_VALUE
from forktree.core.transaction import (
    NULL_TXID,
    Transaction,
    TransactionInput,
    TransactionOutput,
)
from forktree.crypto.keys import PrivateKey


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def alice():
    return PrivateKey(b"\x01" * 32)


@pytest.fixture
def bob():
    return PrivateKey(b"\x02" * 32)


@pytest.fixture
def unsigned_tx(bob):
    """A one-input, two-output transaction, unsigned."""
    tx = Transaction()
    tx.add_input("ab" * 32, 0)
    tx.add_output(10, bob.public_key.to_hex())
    tx.add_output(5, bob.public_key.to_hex())
    return tx


# ---------------------------------------------------------------------------
# txid Tests
# ---------------------------------------------------------------------------

class TestTxid:
    """Tests for transaction ids."""

    def test_txid_is_64_hex(self, unsigned_tx):
        """txid is a 64-character lowercase hex string."""
        assert len(unsigned_tx.txid) == 64
        assert all(c in "0123456789abcdef" for c in unsigned_tx.txid)

    def test_identical_transactions_share_txid(self, bob):
        """Two transactions with identical content have the same txid."""
        tx1 = Transaction(outputs=[TransactionOutput(3, bob.public_key.to_hex())])
        tx2 = Transaction(outputs=[TransactionOutput(3, bob.public_key.to_hex())])
        assert tx1.txid == tx2.txid
        assert tx1 == tx2

    def test_add_output_changes_txid(self, unsigned_tx, bob):
        """Mutating helpers reset the cached txid."""
        before = unsigned_tx.txid
        unsigned_tx.add_output(1, bob.public_key.to_hex())
        assert unsigned_tx.txid != before

    def test_signing_changes_txid(self, unsigned_tx, alice):
        """Signatures are part of the txid."""
        before = unsigned_tx.txid
        unsigned_tx.sign_input(0, alice)
        assert unsigned_tx.txid != before

    def test_invalidate_after_direct_mutation(self, unsigned_tx):
        """invalidate() picks up changes made directly to the lists."""
        before = unsigned_tx.txid
        unsigned_tx.outputs[0].value = 11
        assert unsigned_tx.txid == before
        unsigned_tx.invalidate()
        assert unsigned_tx.txid != before

    def test_negative_value_serializes(self, bob):
        """Negative values can still be hashed so validation can reject them."""
        tx = Transaction(outputs=[TransactionOutput(-1, bob.public_key.to_hex())])
        assert len(tx.txid) == 64


# ---------------------------------------------------------------------------
# Signing Tests
# ---------------------------------------------------------------------------

class TestSigning:
    """Tests for the data each input signs."""

    def test_raw_data_excludes_signatures(self, unsigned_tx, alice):
        """Signing does not change the data to sign."""
        before = unsigned_tx.get_raw_data_to_sign(0)
        unsigned_tx.sign_input(0, alice)
        assert unsigned_tx.get_raw_data_to_sign(0) == before

    def test_raw_data_covers_outputs(self, unsigned_tx, bob):
        """Changing an output changes the data to sign."""
        before = unsigned_tx.get_raw_data_to_sign(0)
        unsigned_tx.add_output(1, bob.public_key.to_hex())
        assert unsigned_tx.get_raw_data_to_sign(0) != before

    def test_raw_data_differs_per_input(self, unsigned_tx):
        """Each input signs its own outpoint."""
        unsigned_tx.add_input("cd" * 32, 1)
        assert unsigned_tx.get_raw_data_to_sign(0) != unsigned_tx.get_raw_data_to_sign(1)

    def test_signature_verifies(self, unsigned_tx, alice):
        """The stored signature verifies over the signing data."""
        signature = unsigned_tx.sign_input(0, alice)
        assert unsigned_tx.inputs[0].signature == signature
        assert alice.public_key.verify(unsigned_tx.get_raw_data_to_sign(0), signature)

    def test_bad_index(self, unsigned_tx):
        """Asking for a missing input raises IndexError."""
        with pytest.raises(IndexError):
            unsigned_tx.get_raw_data_to_sign(5)


# ---------------------------------------------------------------------------
# Coinbase Tests
# ---------------------------------------------------------------------------

class TestCoinbase:
    """Tests for coinbase transactions."""

    def test_create_coinbase(self, alice):
        """A coinbase pays COINBASE_VALUE to the given key by default."""
        coinbase = Transaction.create_coinbase(alice.public_key.to_hex())
        assert coinbase.is_coinbase()
        assert coinbase.outputs[0].value == COINBASE_VALUE
        assert coinbase.outputs[0].pubkey == alice.public_key.to_hex()

    def test_script_distinguishes_coinbases(self, alice):
        """Different scripts give different coinbase txids."""
        pubkey = alice.public_key.to_hex()
        assert (
            Transaction.create_coinbase(pubkey, script=b"a").txid
            != Transaction.create_coinbase(pubkey, script=b"b").txid
        )

    def test_ordinary_transaction_is_not_coinbase(self, unsigned_tx):
        assert unsigned_tx.is_coinbase() is False

    def test_null_input_with_other_index_is_not_coinbase(self):
        """Only the (null txid, 0xffffffff) input marks a coinbase."""
        tx = Transaction(inputs=[TransactionInput(NULL_TXID, 0)])
        assert tx.is_coinbase() is False

    def test_output_address(self, alice):
        """get_address matches the key's own address."""
        output = TransactionOutput(1, alice.public_key.to_hex())
        assert output.get_address() == alice.public_key.to_address()
