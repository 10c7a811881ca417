"""
Block data structure.

A block names the block it extends (``previous_hash``, None only for a
genesis block), carries one coinbase transaction that pays the miner, and an
ordered list of ordinary transactions.

The block hash is the double SHA-256 of the previous hash, the coinbase and
every transaction. It is not computed implicitly: ``hash`` stays None until
``finalize()`` is called, and any change to the transaction list resets it.
A block that is submitted without a hash is malformed and is rejected by the
chain-state manager.

Proof-of-work is out of scope: there is no header, nonce or target.
"""

from __future__ import annotations

from typing import Optional

from forktree.consensus.rules import COINBASE_VALUE
from forktree.core.transaction import Transaction
from forktree.crypto.hash import hash256
from forktree.utils.encoding import encode_bytes, encode_varint, int_to_little_endian


class Block:
    """
    A block of the tree.

    Attributes:
        previous_hash: Hex hash of the parent block, or None for genesis.
        coinbase: The reward transaction.
        transactions: Ordinary transactions, in block order.
        hash: Hex block hash, or None until ``finalize()``.
    """

    def __init__(
        self,
        previous_hash: Optional[str],
        coinbase: Transaction,
        transactions: Optional[list] = None,
    ):
        self.previous_hash = previous_hash
        self.coinbase = coinbase
        self.transactions = transactions if transactions is not None else []
        self.hash: Optional[str] = None

    @classmethod
    def create(
        cls,
        previous_hash: Optional[str],
        miner_pubkey: str,
        extra_nonce: int = 0,
        reward: int = COINBASE_VALUE,
    ) -> Block:
        """
        Create an empty, unfinalized block with a fresh coinbase.

        The coinbase script embeds the previous hash and *extra_nonce*, so two
        blocks by the same miner get distinct coinbase txids whenever they
        extend different parents or use different extra nonces.

        Args:
            previous_hash: Hash of the block to extend (None for genesis).
            miner_pubkey: Hex compressed public key receiving the reward.
            extra_nonce: Distinguishes sibling candidates by the same miner.
            reward: Value of the coinbase output.
        """
        script = bytes.fromhex(previous_hash) if previous_hash else b''
        script += int_to_little_endian(extra_nonce, 8)
        coinbase = Transaction.create_coinbase(miner_pubkey, value=reward, script=script)
        return cls(previous_hash, coinbase)

    def add_transaction(self, tx: Transaction) -> None:
        """
        Append a transaction. Resets the block hash.
        """
        self.transactions.append(tx)
        self.hash = None

    def serialize(self) -> bytes:
        """
        Serialize the block content that the hash commits to.

        Format:
            - previous_hash: varint length + raw bytes (empty for genesis)
            - coinbase: serialized transaction
            - tx_count: varint, then each transaction
        """
        previous = bytes.fromhex(self.previous_hash) if self.previous_hash else b''
        result = encode_bytes(previous)
        result += self.coinbase.serialize()
        result += encode_varint(len(self.transactions))
        for tx in self.transactions:
            result += tx.serialize()
        return result

    def finalize(self) -> str:
        """Compute, store and return the block hash."""
        self.hash = hash256(self.serialize())
        return self.hash

    def get_hash(self) -> Optional[str]:
        return self.hash

    def get_previous_hash(self) -> Optional[str]:
        return self.previous_hash

    def get_coinbase(self) -> Transaction:
        return self.coinbase

    def get_transactions(self) -> list:
        return list(self.transactions)

    def to_dict(self) -> dict:
        return {
            'hash': self.hash,
            'previous_hash': self.previous_hash,
            'coinbase': self.coinbase.to_dict(),
            'transactions': [tx.to_dict() for tx in self.transactions],
        }

    def __repr__(self) -> str:
        shown = self.hash[:16] + '...' if self.hash else None
        return f"Block(hash={shown!r}, txs={len(self.transactions)})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Block):
            return NotImplemented
        if self.hash is None or other.hash is None:
            return self is other
        return self.hash == other.hash

    def __hash__(self) -> int:
        return id(self) if self.hash is None else hash(self.hash)
