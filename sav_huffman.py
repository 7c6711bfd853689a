#!/usr/bin/env python3
"""
Huffman Decoder for Borderlands 2 Save Payloads
===============================================

The innermost block of a Borderlands 2 save is Huffman coded with the tree
stored in-band, ahead of the coded symbols.

Tree Encoding (pre-order, MSB-first bit stream):
-----------------------------------------------
- Bit 1: leaf. The next 8 bits are the symbol byte (MSB first).
- Bit 0: internal node. The left subtree follows, then the right subtree.

Nodes are stored in a flat arena indexed by a counter that increases once
per node visited (pre-order), so the root is always node 0. A byte alphabet
never needs more than 2 * 256 - 1 = 511 nodes.

Symbol Stream:
-------------
Starts at the first bit after the tree. For every output byte, walk from
the root: bit 0 goes to the left child, bit 1 to the right child, until a
leaf is reached. There is no padding between symbols; trailing bits after
the last symbol are ignored.

Edge Cases:
----------
- Single-leaf tree: every symbol costs zero bits, the output is the leaf
  symbol repeated.
- Running out of bits, more than 511 nodes or nesting deeper than 256
  levels raises HuffmanDecodeError.
- An output size above MAX_OUTPUT_SIZE, or more symbols requested than bits
  left for a multi-leaf tree, is refused before the output is allocated.
"""

from dataclasses import dataclass
from typing import List, Optional

from sav_bitstream import BitReader
from sav_errors import HuffmanDecodeError

MAX_TREE_NODES = 2 * 256 - 1
MAX_TREE_DEPTH = 256
MAX_OUTPUT_SIZE = 64 * 1024 * 1024

LEAF_MARKER = 1


@dataclass
class HuffmanNode:
    """Arena slot: a leaf holds a symbol, an internal node two child indices"""
    is_leaf: bool
    symbol: int = 0
    left: int = -1
    right: int = -1


class HuffmanTree:
    """
    Arena-backed Huffman tree.

    Children are referenced by index into `nodes`; every index is checked
    against the arena bounds when the tree is built.
    """

    def __init__(self, capacity: int = MAX_TREE_NODES):
        self.capacity = capacity
        self.nodes: List[HuffmanNode] = []

    def __len__(self):
        return len(self.nodes)

    @property
    def root(self) -> HuffmanNode:
        return self.nodes[0]

    def _reserve(self, bits: BitReader) -> int:
        index = len(self.nodes)
        if index >= self.capacity:
            raise HuffmanDecodeError(
                f"Huffman tree exceeds {self.capacity} nodes", bit_offset=bits.bit_offset)
        # Placeholder keeps pre-order numbering while children are read
        self.nodes.append(HuffmanNode(is_leaf=True))
        return index

    def _read_node(self, bits: BitReader, depth: int) -> int:
        if depth > MAX_TREE_DEPTH:
            raise HuffmanDecodeError(
                f"Huffman tree deeper than {MAX_TREE_DEPTH} levels", bit_offset=bits.bit_offset)

        current = self._reserve(bits)
        try:
            is_leaf = bits.read_bit() == LEAF_MARKER
            if is_leaf:
                self.nodes[current] = HuffmanNode(is_leaf=True, symbol=bits.read_byte())
                return current
        except EOFError as e:
            raise HuffmanDecodeError(
                f"Bit stream exhausted while reading Huffman tree: {e}",
                bit_offset=bits.bit_offset) from e

        left = self._read_node(bits, depth + 1)
        right = self._read_node(bits, depth + 1)
        self.nodes[current] = HuffmanNode(is_leaf=False, left=left, right=right)
        return current

    @classmethod
    def read(cls, bits: BitReader, capacity: int = MAX_TREE_NODES) -> "HuffmanTree":
        """
        Deserialize a tree from the bit stream, leaving the cursor on the
        first bit after it.

        Args:
            bits: Reader positioned at the start of the tree
            capacity: Maximum number of arena slots

        Returns:
            HuffmanTree with root at index 0

        Raises:
            HuffmanDecodeError: Truncated stream or oversized tree
        """
        tree = cls(capacity)
        tree._read_node(bits, depth=1)
        return tree

    def decode_symbols(self, bits: BitReader, count: int) -> bytes:
        """
        Decode `count` symbols starting at the reader's current position.

        Raises:
            HuffmanDecodeError: Bit stream ends before `count` symbols
        """
        nodes = self.nodes
        root = nodes[0]
        if root.is_leaf:
            return bytes([root.symbol]) * count

        # Every symbol of a multi-leaf tree costs at least one bit
        if count > bits.remaining:
            raise HuffmanDecodeError(
                f"Bit stream holds {bits.remaining} bits, too few for {count} symbols",
                bit_offset=bits.bit_offset)

        # Flatten the arena for the hot loop
        is_leaf = [node.is_leaf for node in nodes]
        symbol = [node.symbol for node in nodes]
        children = [(node.left, node.right) for node in nodes]

        data = bits.data
        bit_length = bits.bit_length
        pos = bits.bit_offset
        output = bytearray(count)

        for o in range(count):
            index = 0
            while not is_leaf[index]:
                if pos >= bit_length:
                    bits.bit_offset = pos
                    raise HuffmanDecodeError(
                        f"Bit stream exhausted after {o} of {count} symbols", bit_offset=pos)
                bit = (data[pos >> 3] >> (7 - (pos & 7))) & 1
                pos += 1
                index = children[index][bit]
            output[o] = symbol[index]

        bits.bit_offset = pos
        return bytes(output)


def decode(compressed: bytes, output_size: int, path: Optional[str] = None,
           max_output_size: int = MAX_OUTPUT_SIZE) -> bytes:
    """
    Decode a Huffman block: in-band tree followed by coded symbols.

    Pure function: the same input always yields the same bytes or the same
    failure.

    Args:
        compressed: Huffman coded block, starting at bit offset 0
        output_size: Exact number of bytes to produce
        path: Save path, only used to annotate errors
        max_output_size: Largest output_size accepted

    Returns:
        Exactly `output_size` decoded bytes

    Raises:
        HuffmanDecodeError: Invalid tree or not enough bits
    """
    if output_size < 0:
        raise HuffmanDecodeError(f"Negative output size: {output_size}", path=path)
    if output_size > max_output_size:
        raise HuffmanDecodeError(
            f"Output size {output_size} exceeds the {max_output_size}-byte limit", path=path)

    bits = BitReader(compressed)
    try:
        tree = HuffmanTree.read(bits)
        return tree.decode_symbols(bits, output_size)
    except HuffmanDecodeError as e:
        e.path = path
        raise
