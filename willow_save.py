#!/usr/bin/env python3
"""
WillowTwoPlayerSaveGame Payload Codec
=====================================

The fully decoded Borderlands 2 payload is a protocol buffer message
(WillowTwoPlayerSaveGame). This module declares the schema with
descriptor_pb2, builds message classes from a private descriptor pool and
wraps parsing / JSON output behind WillowSaveCodec.

Field numbers follow the order the game serializes them in. Sub-messages
that are not modelled here are kept as opaque `bytes` fields so nothing in
the payload is lost; protobuf keeps anything it cannot match as unknown
fields.

Flag fields are declared int32, not bool: the game stores values other
than 0 and 1 in some of them and a bool field would rewrite those to 1.
String fields are proto3 strings, so a payload carrying invalid UTF-8 in
one of them is rejected with PayloadParseError rather than passed on.

JSON output uses the protobuf JSON mapping (lowerCamelCase keys, bytes as
base64) and always includes default-valued fields.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, json_format
from google.protobuf.message import DecodeError
from google.protobuf.message_factory import GetMessageClass

from sav_errors import PayloadParseError

PACKAGE = "willow"

INT32 = descriptor_pb2.FieldDescriptorProto.TYPE_INT32
STRING = descriptor_pb2.FieldDescriptorProto.TYPE_STRING
BYTES = descriptor_pb2.FieldDescriptorProto.TYPE_BYTES
REPEATED = True

# =============================================================================
# Schema
# =============================================================================
# message name -> [(number, field name, type or message name, repeated)]

SCHEMA = {
    "Color": [
        (1, "alpha", INT32, False),
        (2, "red", INT32, False),
        (3, "green", INT32, False),
        (4, "blue", INT32, False),
    ],
    "UIPreferencesData": [
        (1, "character_name", STRING, False),
        (2, "primary_color", "Color", False),
        (3, "secondary_color", "Color", False),
        (4, "tertiary_color", "Color", False),
    ],
    "InventorySlotData": [
        (1, "inventory_slot_max", INT32, False),
        (2, "weapon_ready_max", INT32, False),
        (3, "num_quick_slots_flourished", INT32, False),
    ],
    "BankSlot": [
        (1, "inventory_serial_number", BYTES, False),
    ],
    "PackedItemData": [
        (1, "inventory_serial_number", BYTES, False),
        (2, "quantity", INT32, False),
        (3, "equipped", INT32, False),
        (4, "mark", INT32, False),
    ],
    "PackedWeaponData": [
        (1, "inventory_serial_number", BYTES, False),
        (2, "quick_slot", INT32, False),
        (3, "mark", INT32, False),
        (4, "unknown4", INT32, False),
    ],
    "WillowTwoPlayerSaveGame": [
        (1, "player_class", STRING, False),
        (2, "exp_level", INT32, False),
        (3, "exp_points", INT32, False),
        (4, "general_skill_points", INT32, False),
        (5, "specialist_skill_points", INT32, False),
        (6, "currency_on_hand", INT32, REPEATED),     # money, eridium, seraph, ?, torgue, ...
        (7, "playthroughs_completed", INT32, False),
        (8, "skill_data", BYTES, REPEATED),
        (9, "unknown9", INT32, REPEATED),
        (10, "unknown10", INT32, REPEATED),
        (11, "resource_data", BYTES, REPEATED),
        (12, "item_data", BYTES, REPEATED),
        (13, "inventory_slot_data", "InventorySlotData", False),
        (14, "weapon_data", BYTES, REPEATED),
        (15, "stats_data", BYTES, False),
        (16, "fast_travel_stations_visited", STRING, REPEATED),
        (17, "last_visited_teleporter", STRING, False),
        (18, "mission_playthroughs", BYTES, REPEATED),
        (19, "ui_preferences", "UIPreferencesData", False),
        (20, "save_game_id", INT32, False),
        (21, "plot_mission_number", INT32, False),
        (22, "unknown22", INT32, False),
        (23, "used_marketing_codes", INT32, REPEATED),
        (24, "marketing_codes_needing_notification", INT32, REPEATED),
        (25, "total_play_time", INT32, False),
        (26, "last_saved_date", STRING, False),
        (27, "dlc_expansion_data", BYTES, REPEATED),
        (28, "unknown28", STRING, REPEATED),
        (29, "region_game_stages", BYTES, REPEATED),
        (30, "world_discovery_list", BYTES, REPEATED),
        (31, "is_badass_mode_save_game", INT32, False),
        (32, "weapon_mementos", BYTES, REPEATED),
        (33, "item_mementos", BYTES, REPEATED),
        (34, "save_guid", BYTES, False),
        (35, "applied_customizations", STRING, REPEATED),
        (36, "black_market_upgrades", INT32, REPEATED),
        (37, "active_mission_number", INT32, False),
        (38, "challenge_list", BYTES, REPEATED),
        (39, "level_challenge_unlocks", INT32, REPEATED),
        (40, "one_off_level_challenge_completion", BYTES, REPEATED),
        (41, "bank_slots", "BankSlot", REPEATED),
        (42, "num_challenge_prestiges", INT32, False),
        (43, "lockout_list", BYTES, REPEATED),
        (44, "is_dlc_player_class", INT32, False),
        (45, "dlc_player_class_package_id", INT32, False),
        (46, "fully_explored_areas", STRING, REPEATED),
        (47, "unknown47", BYTES, REPEATED),
        (48, "num_golden_keys_notified", INT32, False),
        (49, "last_playthrough_number", INT32, False),
        (50, "show_new_playthrough_notification", INT32, False),
        (51, "received_default_weapon", INT32, False),
        (52, "queued_training_messages", STRING, REPEATED),
        (53, "packed_item_data", "PackedItemData", REPEATED),
        (54, "packed_weapon_data", "PackedWeaponData", REPEATED),
        (55, "awesome_skill_disabled", INT32, False),
        (56, "max_bank_slots", INT32, False),
        (57, "vehicle_skins", BYTES, REPEATED),
        (58, "vehicle_steering_mode", INT32, False),
        (59, "has_played_uvhm", INT32, False),
        (60, "overpower_levels", INT32, False),
        (61, "last_overpower_choice", INT32, False),
    ],
}


def _json_name(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Assemble the proto3 file descriptor for SCHEMA"""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="willow_two_player_save_game.proto",
        package=PACKAGE,
        syntax="proto3",
    )
    for message_name, fields in SCHEMA.items():
        message_proto = file_proto.message_type.add(name=message_name)
        for number, field_name, kind, repeated in fields:
            field = message_proto.field.add(
                name=field_name,
                number=number,
                json_name=_json_name(field_name),
                label=(descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED if repeated
                       else descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL),
            )
            if isinstance(kind, str):
                field.type = descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE
                field.type_name = f".{PACKAGE}.{kind}"
            else:
                field.type = kind
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(build_file_descriptor().SerializeToString())


def message_class(name: str):
    """Generated message class for a schema message name"""
    return GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Color = message_class("Color")
UIPreferencesData = message_class("UIPreferencesData")
InventorySlotData = message_class("InventorySlotData")
BankSlot = message_class("BankSlot")
PackedItemData = message_class("PackedItemData")
PackedWeaponData = message_class("PackedWeaponData")
WillowTwoPlayerSaveGame = message_class("WillowTwoPlayerSaveGame")


# =============================================================================
# Codec
# =============================================================================

class WillowSaveCodec:
    """Schema codec handed the decoded payload by the load pipeline"""

    message_class = WillowTwoPlayerSaveGame

    def parse(self, payload: bytes):
        """
        Parse payload bytes into a WillowTwoPlayerSaveGame.

        Raises:
            PayloadParseError: The bytes are not a valid message
        """
        record = self.message_class()
        try:
            record.ParseFromString(bytes(payload))
        except DecodeError as e:
            raise PayloadParseError(f"Protobuf deserialization failed! {e}") from e
        return record

    def to_json(self, record) -> str:
        """Pretty-printed JSON, default-valued fields included"""
        return json_format.MessageToJson(
            record,
            indent=2,
            always_print_fields_with_no_presence=True,
        )

    def to_dict(self, record) -> dict:
        return json_format.MessageToDict(record, always_print_fields_with_no_presence=True)


_DEFAULT_CODEC = WillowSaveCodec()


def parse_payload(payload: bytes):
    return _DEFAULT_CODEC.parse(payload)


def record_to_json(record) -> str:
    return _DEFAULT_CODEC.to_json(record)
