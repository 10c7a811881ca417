"""
Transaction data structures.

- **TransactionOutput**: a value locked to the compressed public key of its
  recipient. Spending it requires a signature by the matching private key.

- **TransactionInput**: a reference to a previous output (txid and index)
  plus the signature that authorizes spending it.

- **Transaction**: an ordered list of inputs and outputs. The transaction ID
  (txid) is the double SHA-256 of the full serialization, signatures
  included. Each input signs ``get_raw_data_to_sign(index)``, which covers the
  outpoint that input spends and every output, but no signatures.

A coinbase transaction has a single input referencing the null txid with
index ``0xffffffff``; its "signature" slot carries an arbitrary script that
keeps coinbase txids distinct across blocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from forktree.consensus.rules import COINBASE_VALUE
from forktree.crypto.hash import hash256
from forktree.crypto.keys import PublicKey
from forktree.utils.encoding import (
    encode_bytes,
    encode_varint,
    int_to_little_endian,
)

if TYPE_CHECKING:
    from forktree.crypto.keys import PrivateKey


NULL_TXID = "0" * 64
COINBASE_OUTPUT_INDEX = 0xffffffff


# ---------------------------------------------------------------------------
# TransactionOutput
# ---------------------------------------------------------------------------

class TransactionOutput:
    """
    A transaction output assigns a value to a public key.

    Attributes:
        value: Amount in base units. Validation rejects negative values, but
            construction does not.
        pubkey: Hex-encoded compressed public key of the recipient.
    """

    def __init__(self, value: int, pubkey: str):
        self.value = value
        self.pubkey = pubkey

    def serialize(self) -> bytes:
        """
        Serialize this output.

        Format:
            - value: 8 bytes, little-endian, two's complement
            - pubkey: varint length + raw bytes
        """
        return (
            int_to_little_endian(self.value, 8, signed=True)
            + encode_bytes(bytes.fromhex(self.pubkey))
        )

    def get_address(self) -> str:
        """Return the display address of the recipient's public key."""
        return PublicKey.from_hex(self.pubkey).to_address()

    def to_dict(self) -> dict:
        return {
            'value': self.value,
            'pubkey': self.pubkey,
        }

    def __repr__(self) -> str:
        return (
            f"TransactionOutput(value={self.value}, "
            f"pubkey='{self.pubkey[:16]}...')"
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, TransactionOutput):
            return NotImplemented
        return self.value == other.value and self.pubkey == other.pubkey


# ---------------------------------------------------------------------------
# TransactionInput
# ---------------------------------------------------------------------------

class TransactionInput:
    """
    A reference to a previous output and the signature authorizing its spend.

    Attributes:
        previous_txid: Hex-encoded id of the transaction that created the
            output being spent.
        output_index: Index of the output in that transaction.
        signature: DER-encoded signature, or None while unsigned.
    """

    def __init__(
        self,
        previous_txid: str,
        output_index: int,
        signature: Optional[bytes] = None,
    ):
        self.previous_txid = previous_txid
        self.output_index = output_index
        self.signature = signature

    def serialize_outpoint(self) -> bytes:
        """
        Serialize the referenced outpoint.

        Format:
            - previous_txid: 32 bytes
            - output_index: 4 bytes, little-endian
        """
        return (
            bytes.fromhex(self.previous_txid)
            + int_to_little_endian(self.output_index, 4)
        )

    def serialize(self) -> bytes:
        """Serialize the outpoint followed by the length-prefixed signature."""
        return self.serialize_outpoint() + encode_bytes(self.signature or b'')

    def is_coinbase(self) -> bool:
        """True if this input is the null input of a coinbase transaction."""
        return (
            self.previous_txid == NULL_TXID
            and self.output_index == COINBASE_OUTPUT_INDEX
        )

    def to_dict(self) -> dict:
        return {
            'previous_txid': self.previous_txid,
            'output_index': self.output_index,
            'signature': self.signature.hex() if self.signature else None,
        }

    def __repr__(self) -> str:
        return (
            f"TransactionInput(prev='{self.previous_txid[:16]}...', "
            f"index={self.output_index})"
        )


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class Transaction:
    """
    A transaction consuming existing outputs and creating new ones.

    The txid is computed lazily and cached; every mutating helper on this
    class resets the cache. Callers that mutate ``inputs`` or ``outputs``
    directly must call ``invalidate()`` themselves.

    Attributes:
        inputs: List of TransactionInput objects.
        outputs: List of TransactionOutput objects.
    """

    def __init__(
        self,
        inputs: Optional[list] = None,
        outputs: Optional[list] = None,
    ):
        self.inputs = inputs if inputs is not None else []
        self.outputs = outputs if outputs is not None else []
        self._txid: Optional[str] = None

    @property
    def txid(self) -> str:
        """64-character hex double SHA-256 of the serialized transaction."""
        if self._txid is None:
            self._txid = hash256(self.serialize())
        return self._txid

    def invalidate(self) -> None:
        """Drop the cached txid after an in-place mutation."""
        self._txid = None

    def add_input(self, previous_txid: str, output_index: int) -> TransactionInput:
        txin = TransactionInput(previous_txid, output_index)
        self.inputs.append(txin)
        self.invalidate()
        return txin

    def add_output(self, value: int, pubkey: str) -> TransactionOutput:
        txout = TransactionOutput(value, pubkey)
        self.outputs.append(txout)
        self.invalidate()
        return txout

    def serialize(self) -> bytes:
        """
        Serialize this transaction.

        Format:
            - input_count: varint, then each input
            - output_count: varint, then each output
        """
        result = encode_varint(len(self.inputs))
        for txin in self.inputs:
            result += txin.serialize()

        result += encode_varint(len(self.outputs))
        for txout in self.outputs:
            result += txout.serialize()
        return result

    def get_raw_data_to_sign(self, index: int) -> bytes:
        """
        Return the bytes the signature of input *index* must cover.

        The outpoint of that input followed by every output. Signatures are
        excluded so each input can be signed independently.

        Raises:
            IndexError: If *index* is not a valid input index.
        """
        result = self.inputs[index].serialize_outpoint()
        for txout in self.outputs:
            result += txout.serialize()
        return result

    def sign_input(self, index: int, private_key: "PrivateKey") -> bytes:
        """
        Sign input *index* with *private_key* and store the signature.

        Returns:
            The DER-encoded signature.
        """
        signature = private_key.sign(self.get_raw_data_to_sign(index))
        self.inputs[index].signature = signature
        self.invalidate()
        return signature

    def is_coinbase(self) -> bool:
        """A coinbase has exactly one input and that input is the null input."""
        return len(self.inputs) == 1 and self.inputs[0].is_coinbase()

    def total_output_value(self) -> int:
        return sum(txout.value for txout in self.outputs)

    def to_dict(self) -> dict:
        return {
            'txid': self.txid,
            'inputs': [txin.to_dict() for txin in self.inputs],
            'outputs': [txout.to_dict() for txout in self.outputs],
        }

    @staticmethod
    def create_coinbase(
        pubkey: str,
        value: int = COINBASE_VALUE,
        script: bytes = b'',
    ) -> Transaction:
        """
        Create a coinbase transaction paying *value* to *pubkey*.

        Args:
            pubkey: Hex-encoded compressed public key of the miner.
            value: Reward amount.
            script: Arbitrary bytes stored in the null input. Two coinbases
                to the same key with the same script share a txid.

        Returns:
            A new coinbase Transaction.
        """
        coinbase_input = TransactionInput(
            previous_txid=NULL_TXID,
            output_index=COINBASE_OUTPUT_INDEX,
            signature=script,
        )
        return Transaction(
            inputs=[coinbase_input],
            outputs=[TransactionOutput(value=value, pubkey=pubkey)],
        )

    def __repr__(self) -> str:
        return (
            f"Transaction(txid='{self.txid[:16]}...', "
            f"inputs={len(self.inputs)}, outputs={len(self.outputs)})"
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.txid == other.txid

    def __hash__(self) -> int:
        return hash(self.txid)
