"""
Tests for Block
===============

Tests cover:
- Hash lifecycle (None until finalize, reset on mutation)
- Coinbase construction by Block.create
- Accessors used by the chain-state manager
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from forktree.consensus.rules import COINBASE_VALUE
from forktree.core.block import Block
from forktree.core.transaction import Transaction, TransactionOutput
from forktree.crypto.keys import PrivateKey


MINER = PrivateKey(b"\x05" * 32).public_key.to_hex()
PARENT = "11" * 32


@pytest.fixture
def block():
    """An unfinalized block extending PARENT."""
    return Block.create(PARENT, MINER)


class TestBlockHash:
    """Tests for the block hash lifecycle."""

    def test_hash_none_until_finalized(self, block):
        assert block.get_hash() is None

    def test_finalize_sets_hash(self, block):
        """finalize returns and stores a 64-character hash."""
        block_hash = block.finalize()
        assert block.get_hash() == block_hash
        assert len(block_hash) == 64

    def test_add_transaction_resets_hash(self, block):
        """Adding a transaction invalidates the hash."""
        block.finalize()
        block.add_transaction(Transaction(outputs=[TransactionOutput(1, MINER)]))
        assert block.get_hash() is None

    def test_transactions_change_hash(self, block):
        """The hash commits to the transaction list."""
        empty_hash = block.finalize()
        block.add_transaction(Transaction(outputs=[TransactionOutput(1, MINER)]))
        assert block.finalize() != empty_hash

    def test_parent_changes_hash(self):
        """The same miner on different parents yields different blocks."""
        assert Block.create(PARENT, MINER).finalize() != Block.create("22" * 32, MINER).finalize()

    def test_extra_nonce_changes_hash(self):
        """Sibling candidates by one miner differ by extra nonce."""
        assert (
            Block.create(PARENT, MINER, extra_nonce=0).finalize()
            != Block.create(PARENT, MINER, extra_nonce=1).finalize()
        )

    def test_genesis_hashes(self):
        """A block without a parent can still be finalized."""
        genesis = Block.create(None, MINER)
        assert genesis.get_previous_hash() is None
        assert len(genesis.finalize()) == 64


class TestBlockContent:
    """Tests for block accessors."""

    def test_coinbase(self, block):
        """Block.create pays the reward to the miner."""
        coinbase = block.get_coinbase()
        assert coinbase.is_coinbase()
        assert coinbase.outputs[0].value == COINBASE_VALUE
        assert coinbase.outputs[0].pubkey == MINER

    def test_coinbase_differs_across_parents(self):
        """Coinbase txids are unique per parent so pools never merge them."""
        assert (
            Block.create(PARENT, MINER).get_coinbase().txid
            != Block.create("22" * 32, MINER).get_coinbase().txid
        )

    def test_get_transactions_is_a_copy(self, block):
        """Mutating the returned list does not change the block."""
        block.get_transactions().append(object())
        assert block.transactions == []

    def test_equality_by_hash(self):
        """Finalized blocks with the same content are equal."""
        a = Block.create(PARENT, MINER)
        b = Block.create(PARENT, MINER)
        a.finalize()
        b.finalize()
        assert a == b

    def test_to_dict(self, block):
        block.finalize()
        data = block.to_dict()
        assert data["hash"] == block.get_hash()
        assert data["previous_hash"] == PARENT
        assert data["transactions"] == []
