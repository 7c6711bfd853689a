"""Tests for the in-band Huffman tree codec."""

import pytest

from sav_bitstream import BitReader
from sav_errors import HuffmanDecodeError
from sav_huffman import MAX_TREE_NODES, HuffmanTree, decode
from save_builder import huffman_encode, pack_bits, tree_bits

AB_TREE = (0x41, 0x42)


class TestTreeRead:

    def test_single_leaf(self) -> None:
        bits = BitReader(pack_bits(tree_bits(0x41)))
        tree = HuffmanTree.read(bits)
        assert len(tree) == 1
        assert tree.root.is_leaf
        assert tree.root.symbol == 0x41
        assert bits.bit_offset == 9

    def test_preorder_indices(self) -> None:
        # root(0) -> left leaf A(1), right internal(2) -> B(3), C(4)
        bits = BitReader(pack_bits(tree_bits((0x41, (0x42, 0x43)))))
        tree = HuffmanTree.read(bits)
        assert len(tree) == 5
        assert (tree.nodes[0].left, tree.nodes[0].right) == (1, 2)
        assert tree.nodes[1].symbol == 0x41
        assert (tree.nodes[2].left, tree.nodes[2].right) == (3, 4)
        assert [tree.nodes[i].symbol for i in (3, 4)] == [0x42, 0x43]
        assert bits.bit_offset == 1 + 9 + 1 + 9 + 9

    def test_full_byte_alphabet_uses_511_nodes(self) -> None:
        data = bytes(range(256)) * 2
        bits = BitReader(huffman_encode(data))
        tree = HuffmanTree.read(bits)
        assert len(tree) == MAX_TREE_NODES

    def test_capacity_exceeded(self) -> None:
        bits = BitReader(pack_bits(tree_bits((0x41, (0x42, 0x43)))))
        with pytest.raises(HuffmanDecodeError, match="exceeds 3 nodes"):
            HuffmanTree.read(bits, capacity=3)

    def test_depth_bound(self) -> None:
        # A chain of internal-node markers nests one level per bit
        with pytest.raises(HuffmanDecodeError, match="deeper than 256"):
            HuffmanTree.read(BitReader(b"\x00" * 40))

    def test_truncated_tree(self) -> None:
        with pytest.raises(HuffmanDecodeError) as info:
            HuffmanTree.read(BitReader(b"\x00"))
        assert info.value.bit_offset == 8

    def test_truncated_leaf_symbol(self) -> None:
        # Leaf marker followed by only 7 bits
        with pytest.raises(HuffmanDecodeError):
            HuffmanTree.read(BitReader(b"\xff"))


class TestDecode:

    def test_single_symbol_repeats_without_payload_bits(self) -> None:
        block = pack_bits(tree_bits(0x41))
        assert len(block) == 2
        assert decode(block, 7) == b"A" * 7
        assert decode(block, 0) == b""

    def test_two_symbols(self) -> None:
        block = pack_bits(tree_bits(AB_TREE) + "0110")
        assert decode(block, 4) == b"ABBA"

    def test_symbols_cross_byte_boundaries(self) -> None:
        data = b"the quick brown fox jumps over the lazy dog" * 3
        assert decode(huffman_encode(data), len(data)) == data

    def test_full_alphabet_round_trip(self) -> None:
        data = bytes(range(256)) + bytes(range(0, 256, 3)) * 4
        assert decode(huffman_encode(data), len(data)) == data

    def test_trailing_bytes_ignored(self) -> None:
        data = b"WillowTwoPlayerSaveGame"
        block = huffman_encode(data) + b"\xd4\x93\x9f\x1a"
        assert decode(block, len(data)) == data

    def test_symbol_stream_exhausted(self) -> None:
        # 29 tree bits, then "11" (C) and one padding bit (A); the third
        # symbol finds no bits left
        block = pack_bits(tree_bits((0x41, (0x42, 0x43))) + "11")
        with pytest.raises(HuffmanDecodeError, match="after 2 of 3 symbols") as info:
            decode(block, 3)
        assert info.value.bit_offset == 32

    def test_more_symbols_than_bits(self) -> None:
        # 19 tree bits leave 5 bits, never enough for 8 symbols
        block = pack_bits(tree_bits(AB_TREE) + "0110")
        with pytest.raises(HuffmanDecodeError, match="too few for 8 symbols") as info:
            decode(block, 8)
        assert info.value.bit_offset == 19

    def test_huge_count_refused_before_allocating(self) -> None:
        block = pack_bits(tree_bits(AB_TREE) + "0110")
        with pytest.raises(HuffmanDecodeError, match="too few"):
            decode(block, 0x7FFFFFFF, max_output_size=0x7FFFFFFF)

    def test_output_size_limit(self) -> None:
        # Single-leaf tree: 1 01000001 -> 'A', no payload bits needed
        block = bytes([0b10100000, 0b10000000])
        with pytest.raises(HuffmanDecodeError, match="exceeds") as info:
            decode(block, 0x7FFFFFFF, path="Save0001.sav")
        assert info.value.path == "Save0001.sav"
        assert decode(block, 4, max_output_size=4) == b"AAAA"
        with pytest.raises(HuffmanDecodeError):
            decode(block, 5, max_output_size=4)

    def test_empty_input(self) -> None:
        with pytest.raises(HuffmanDecodeError):
            decode(b"", 1)

    def test_negative_output_size(self) -> None:
        with pytest.raises(HuffmanDecodeError):
            decode(pack_bits(tree_bits(0x41)), -1)

    def test_error_carries_path(self) -> None:
        with pytest.raises(HuffmanDecodeError) as info:
            decode(b"", 1, path="Save0001.sav")
        assert info.value.path == "Save0001.sav"

    def test_deterministic(self) -> None:
        data = b"\x00\x01\x01\x02\x02\x02\x03\x03\x03\x03"
        block = huffman_encode(data)
        assert decode(block, len(data)) == decode(block, len(data)) == data

        broken = block[:2]
        failures = []
        for _ in range(2):
            with pytest.raises(HuffmanDecodeError) as info:
                decode(broken, len(data))
            failures.append((str(info.value), info.value.bit_offset))
        assert failures[0] == failures[1]
