"""
Tests for ChainVisualizer
=========================

Output is captured with a rich Console writing to a StringIO.
"""

import io
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from rich.console import Console

from forktree.core.block import Block
from forktree.core.blockchain import Blockchain
from forktree.core.transaction import Transaction
from forktree.crypto.keys import PrivateKey
from forktree.utils.visualizer import ChainVisualizer


MINER = PrivateKey(b"\x03" * 32).public_key.to_hex()


@pytest.fixture
def chain():
    genesis = Block.create(None, MINER)
    genesis.finalize()
    return Blockchain(genesis)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def visualizer(chain, output):
    return ChainVisualizer(chain, console=Console(file=output, width=120))


def mine(parent, nonce):
    block = Block.create(parent.get_hash(), MINER, extra_nonce=nonce)
    block.finalize()
    return block


class TestChainVisualizer:
    """Tests for the rich views."""

    def test_fork_tree(self, chain, visualizer, output):
        """Both branches appear and the best tip is marked."""
        genesis = chain.get_best_tip_block()
        b1 = mine(genesis, 1)
        b2 = mine(genesis, 2)
        chain.add_block(b1)
        chain.add_block(b2)
        visualizer.print_fork_tree()
        text = output.getvalue()
        assert "Fork Tree" in text
        assert b1.get_hash()[:16] in text
        assert b2.get_hash()[:16] in text
        assert "BEST TIP" in text
        assert "(tip)" in text

    def test_chain_info(self, visualizer, output):
        visualizer.print_chain_info()
        text = output.getvalue()
        assert "Chain Info" in text
        assert "Best Height:" in text
        assert "UTXO Count:" in text

    def test_empty_mempool(self, visualizer, output):
        visualizer.print_mempool()
        assert "Pending pool is empty." in output.getvalue()

    def test_mempool_table(self, chain, visualizer, output):
        tx = Transaction()
        tx.add_input("cd" * 32, 0)
        tx.add_output(7, MINER)
        chain.add_transaction(tx)
        visualizer.print_mempool()
        text = output.getvalue()
        assert "Pending Transactions (1)" in text
        assert tx.txid[:16] in text

    def test_long_chain(self, chain, visualizer, output):
        """A chain deeper than the recursion limit still renders."""
        parent = chain.get_best_tip_block()
        for _ in range(1200):
            parent = mine(parent, 0)
            assert chain.add_block(parent)
        visualizer.print_fork_tree()
        text = output.getvalue()
        assert parent.get_hash()[:16] in text
        assert "H1201" in text
        assert "BEST TIP" in text

    def test_fork_after_run(self, chain, visualizer, output):
        """Both branches of a fork below a linear run are shown."""
        parent = chain.get_best_tip_block()
        for _ in range(3):
            parent = mine(parent, 0)
            chain.add_block(parent)
        left = mine(parent, 1)
        right = mine(parent, 2)
        chain.add_block(left)
        chain.add_block(right)
        visualizer.print_fork_tree()
        text = output.getvalue()
        assert left.get_hash()[:16] in text
        assert right.get_hash()[:16] in text
        assert "(tip)" in text
