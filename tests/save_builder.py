"""Builders for synthetic Borderlands 2 saves used as test fixtures.

The library only decodes; these helpers do the inverse of every layer so
tests can produce intact and deliberately damaged files.
"""

import binascii
import collections
import hashlib
import struct

import lzo

from willow_save import WillowTwoPlayerSaveGame

MAGIC = b"WSG"
TRAILER = b"\xd4\x93\x9f\x1a"


# ---------------------------------------------------------------------------
# Huffman
# ---------------------------------------------------------------------------


def build_tree(data: bytes):
    """Nested (left, right) tuples with byte values at the leaves"""
    if not data:
        return 0
    counts = collections.Counter(data)
    while len(counts) > 1:
        (left, lfreq), (right, rfreq) = counts.most_common()[-2:]
        del counts[left], counts[right]
        counts[(left, right)] = lfreq + rfreq
    [head] = counts
    return head


def tree_bits(tree) -> str:
    """Serialize a tuple tree as the pre-order bit string"""
    if isinstance(tree, tuple):
        return "0" + tree_bits(tree[0]) + tree_bits(tree[1])
    return "1" + format(tree, "08b")


def code_table(tree, prefix: str = "") -> dict:
    if isinstance(tree, tuple):
        table = code_table(tree[0], prefix + "0")
        table.update(code_table(tree[1], prefix + "1"))
        return table
    return {tree: prefix}


def pack_bits(bits: str) -> bytes:
    """MSB-first packing, zero padded to a whole byte"""
    spare = len(bits) % 8
    if spare:
        bits += "0" * (8 - spare)
    return int(bits, 2).to_bytes(len(bits) // 8, "big")


def huffman_encode(data: bytes, tree=None) -> bytes:
    if tree is None:
        tree = build_tree(data)
    codes = code_table(tree)
    return pack_bits(tree_bits(tree) + "".join(codes[b] for b in data))


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


def build_inner(payload: bytes, version: int = 2, magic: bytes = MAGIC,
                trailer: bytes = TRAILER, total_size: int = None,
                uncompressed_size: int = None, coded: bytes = None) -> bytes:
    endian = "<" if version == 2 else ">"
    if coded is None:
        coded = huffman_encode(payload) + trailer
    if total_size is None:
        total_size = 3 + 4 + 4 + 4 + len(coded)
    if uncompressed_size is None:
        uncompressed_size = len(payload)
    return b"".join([
        struct.pack(">I", total_size),
        magic,
        struct.pack("<I", version),
        struct.pack(endian + "I", binascii.crc32(payload)),
        struct.pack(endian + "i", uncompressed_size),
        coded,
    ])


def build_body(inner: bytes, declared_size: int = None) -> bytes:
    if declared_size is None:
        declared_size = len(inner)
    return struct.pack(">I", declared_size) + lzo.compress(inner, 1, False)


def seal(body: bytes) -> bytes:
    """Prefix the SHA-1 digest envelope"""
    return hashlib.sha1(body).digest() + body


def build_save(payload: bytes, version: int = 2) -> bytes:
    return seal(build_body(build_inner(payload, version=version)))


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


def sample_record():
    record = WillowTwoPlayerSaveGame(
        player_class="GD_Tulip_Mechromancer.Character.CharClass_Mechromancer",
        exp_level=31,
        exp_points=482113,
        general_skill_points=2,
        currency_on_hand=[1534201, 87, 0, 0, 12],
        playthroughs_completed=1,
        fast_travel_stations_visited=["Sanctuary", "ThreeHornsDivide", "Fridge"],
        last_visited_teleporter="Sanctuary",
        last_saved_date="20191101143000",
        stats_data=bytes(range(256)),
    )
    record.ui_preferences.character_name = "Gaige"
    record.ui_preferences.primary_color.red = 200
    record.ui_preferences.primary_color.alpha = 255
    record.inventory_slot_data.inventory_slot_max = 39
    record.inventory_slot_data.weapon_ready_max = 4
    record.packed_weapon_data.add(inventory_serial_number=b"\x07\x11\x2a\x9c\x40", quick_slot=1, mark=1)
    record.packed_item_data.add(inventory_serial_number=b"\x07\x05\x0d", quantity=1, equipped=1, mark=1)
    record.bank_slots.add(inventory_serial_number=b"\x07\x42")
    return record
