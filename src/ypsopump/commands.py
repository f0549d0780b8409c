"""Command codes, the static command table and request payload builders."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, Mapping, Optional

from .glb import glb_encode
from .types import ConfigurationError


class CommandCode(IntEnum):
    """The 33 pump command codes."""

    # Base service
    PUMP_BASE_SERVICE_VERSION = 0
    MASTER_SOFTWARE_VERSION = 1
    SUPERVISOR_SOFTWARE_VERSION = 2
    AUTHORIZATION_PASSWORD = 3
    PUMP_COUNTRY_CODE = 4

    # Settings service
    SETTINGS_SERVICE_VERSION = 5
    SETTING_ID = 6
    SETTING_VALUE = 7
    SYSTEM_DATE = 8
    SYSTEM_TIME = 9

    # History service
    HISTORY_SERVICE_VERSION = 10
    ALARM_ENTRY_COUNT = 11
    ALARM_ENTRY_INDEX = 12
    ALARM_ENTRY_VALUE = 13
    EVENT_ENTRY_COUNT = 14
    EVENT_ENTRY_INDEX = 15
    EVENT_ENTRY_VALUE = 16
    SYSTEM_ENTRY_COUNT = 17
    COMPLAINT_ENTRY_COUNT = 18
    SYSTEM_ENTRY_INDEX = 19
    COMPLAINT_ENTRY_INDEX = 20
    SYSTEM_ENTRY_VALUE = 21
    COMPLAINT_ENTRY_VALUE = 22
    COUNTER_ID = 23
    COUNTER_VALUE = 24
    CLEAR_HISTORY_PASSWORD = 25

    # Control service
    CONTROL_SERVICE_VERSION = 26
    START_STOP_BOLUS = 27
    GET_BOLUS_STATUS = 28
    START_STOP_TBR = 29
    GET_SYSTEM_STATUS = 30
    BOLUS_STATUS_NOTIFICATION = 31
    EXTENDED_READ = 32


class CommandGroup(str, Enum):
    BASE = "base"
    SETTINGS = "settings"
    HISTORY = "history"
    CONTROL = "control"


@dataclass(frozen=True)
class CommandDescriptor:
    """Static properties of one command code."""
    code: CommandCode
    group: CommandGroup
    encrypted: bool
    write: bool
    checksum: bool = False
    framed: bool = True

    @property
    def description(self) -> str:
        return self.code.name.replace("_", " ").capitalize()


def _descriptor(
    code: CommandCode,
    group: CommandGroup,
    encrypted: bool = True,
    write: bool = False,
    checksum: bool = False,
    framed: bool = True,
) -> CommandDescriptor:
    return CommandDescriptor(code, group, encrypted, write, checksum, framed)


_C = CommandCode
_G = CommandGroup

COMMAND_TABLE: Mapping[CommandCode, CommandDescriptor] = {
    d.code: d
    for d in (
        _descriptor(_C.PUMP_BASE_SERVICE_VERSION, _G.BASE, encrypted=False, framed=False),
        _descriptor(_C.MASTER_SOFTWARE_VERSION, _G.BASE, encrypted=False, framed=False),
        _descriptor(_C.SUPERVISOR_SOFTWARE_VERSION, _G.BASE, encrypted=False, framed=False),
        _descriptor(_C.AUTHORIZATION_PASSWORD, _G.BASE, encrypted=False, write=True, framed=False),
        _descriptor(_C.PUMP_COUNTRY_CODE, _G.BASE, encrypted=False, framed=False),
        _descriptor(_C.SETTINGS_SERVICE_VERSION, _G.SETTINGS, encrypted=False, framed=False),
        _descriptor(_C.SETTING_ID, _G.SETTINGS, write=True),
        _descriptor(_C.SETTING_VALUE, _G.SETTINGS, write=True),
        _descriptor(_C.SYSTEM_DATE, _G.SETTINGS, write=True, checksum=True),
        _descriptor(_C.SYSTEM_TIME, _G.SETTINGS, write=True, checksum=True),
        _descriptor(_C.HISTORY_SERVICE_VERSION, _G.HISTORY, encrypted=False, framed=False),
        _descriptor(_C.ALARM_ENTRY_COUNT, _G.HISTORY),
        _descriptor(_C.ALARM_ENTRY_INDEX, _G.HISTORY, write=True),
        _descriptor(_C.ALARM_ENTRY_VALUE, _G.HISTORY),
        _descriptor(_C.EVENT_ENTRY_COUNT, _G.HISTORY),
        _descriptor(_C.EVENT_ENTRY_INDEX, _G.HISTORY, write=True),
        _descriptor(_C.EVENT_ENTRY_VALUE, _G.HISTORY),
        _descriptor(_C.SYSTEM_ENTRY_COUNT, _G.HISTORY),
        _descriptor(_C.COMPLAINT_ENTRY_COUNT, _G.HISTORY),
        _descriptor(_C.SYSTEM_ENTRY_INDEX, _G.HISTORY, write=True),
        _descriptor(_C.COMPLAINT_ENTRY_INDEX, _G.HISTORY, write=True),
        _descriptor(_C.SYSTEM_ENTRY_VALUE, _G.HISTORY),
        _descriptor(_C.COMPLAINT_ENTRY_VALUE, _G.HISTORY),
        _descriptor(_C.COUNTER_ID, _G.HISTORY, write=True),
        _descriptor(_C.COUNTER_VALUE, _G.HISTORY),
        _descriptor(_C.CLEAR_HISTORY_PASSWORD, _G.HISTORY, write=True),
        _descriptor(_C.CONTROL_SERVICE_VERSION, _G.CONTROL, encrypted=False, framed=False),
        _descriptor(_C.START_STOP_BOLUS, _G.CONTROL, write=True, checksum=True),
        _descriptor(_C.GET_BOLUS_STATUS, _G.CONTROL, checksum=True),
        _descriptor(_C.START_STOP_TBR, _G.CONTROL, write=True),
        _descriptor(_C.GET_SYSTEM_STATUS, _G.CONTROL, checksum=True),
        _descriptor(_C.BOLUS_STATUS_NOTIFICATION, _G.CONTROL, encrypted=False, framed=False),
        _descriptor(_C.EXTENDED_READ, _G.CONTROL, encrypted=False, framed=False),
    )
}


def get_descriptor(code: int) -> CommandDescriptor:
    """Look up a command descriptor, rejecting unknown codes."""
    try:
        return COMMAND_TABLE[CommandCode(code)]
    except ValueError as e:
        raise ConfigurationError(f"Unknown command code: {code}") from e


# Logical channel identifiers (GATT characteristic UUIDs on a real pump)
_BASE_UUID = "669a0c20-0008-969e-e211-{}"

DEFAULT_CHANNELS: Mapping[CommandCode, str] = {
    _C.PUMP_BASE_SERVICE_VERSION: _BASE_UUID.format("fcbee23b7bc5"),
    _C.MASTER_SOFTWARE_VERSION: _BASE_UUID.format("fcbeb0147bc5"),
    _C.AUTHORIZATION_PASSWORD: _BASE_UUID.format("fcbeb2147bc5"),
    _C.SETTINGS_SERVICE_VERSION: _BASE_UUID.format("fcbee33b7bc5"),
    _C.SETTING_ID: _BASE_UUID.format("fcbeb3147bc5"),
    _C.SETTING_VALUE: _BASE_UUID.format("fcbeb4147bc5"),
    _C.SYSTEM_DATE: _BASE_UUID.format("fcbedc3b7bc5"),
    _C.SYSTEM_TIME: _BASE_UUID.format("fcbedd3b7bc5"),
    _C.HISTORY_SERVICE_VERSION: _BASE_UUID.format("fcbee43b7bc5"),
    _C.ALARM_ENTRY_COUNT: _BASE_UUID.format("fcbec83b7bc5"),
    _C.ALARM_ENTRY_INDEX: _BASE_UUID.format("fcbec93b7bc5"),
    _C.ALARM_ENTRY_VALUE: _BASE_UUID.format("fcbeca3b7bc5"),
    _C.EVENT_ENTRY_COUNT: _BASE_UUID.format("fcbecb3b7bc5"),
    _C.EVENT_ENTRY_INDEX: _BASE_UUID.format("fcbecc3b7bc5"),
    _C.EVENT_ENTRY_VALUE: _BASE_UUID.format("fcbecd3b7bc5"),
    _C.SYSTEM_ENTRY_COUNT: "86a5a431-d442-2c8d-304b-19ee355571fc",
    _C.SYSTEM_ENTRY_INDEX: "381ddce9-e934-b4ae-e345-eb87283db426",
    _C.SYSTEM_ENTRY_VALUE: "ae3022af-2ec8-bf88-e64c-da68c9a3891a",
    _C.START_STOP_BOLUS: _BASE_UUID.format("fcbee18b7bc5"),
    _C.GET_BOLUS_STATUS: _BASE_UUID.format("fcbee28b7bc5"),
    _C.START_STOP_TBR: _BASE_UUID.format("fcbee38b7bc5"),
    _C.GET_SYSTEM_STATUS: _BASE_UUID.format("fcbee48b7bc5"),
    _C.BOLUS_STATUS_NOTIFICATION: _BASE_UUID.format("fcbee58b7bc5"),
    _C.EXTENDED_READ: _BASE_UUID.format("fcff000000ff"),
}


def build_channel_map(overrides: Optional[Mapping[int, str]] = None) -> Dict[CommandCode, str]:
    """
    Merge channel overrides into the default map and verify them.

    Raises:
        ConfigurationError: If an override names an unknown code or an
            empty channel
    """
    channels: Dict[CommandCode, str] = dict(DEFAULT_CHANNELS)
    for code, channel in (overrides or {}).items():
        descriptor = get_descriptor(code)
        if not isinstance(channel, str) or not channel:
            raise ConfigurationError(f"Channel for {descriptor.code.name} must be a non-empty string")
        channels[descriptor.code] = channel
    if CommandCode.EXTENDED_READ not in channels:
        raise ConfigurationError("EXTENDED_READ channel is required for multi-frame reads")
    return channels


@dataclass(frozen=True)
class HistoryLog:
    """Count/index/value command triple for one history category."""
    name: str
    count: CommandCode
    index: CommandCode
    value: CommandCode


EVENTS = HistoryLog("events", _C.EVENT_ENTRY_COUNT, _C.EVENT_ENTRY_INDEX, _C.EVENT_ENTRY_VALUE)
ALERTS = HistoryLog("alerts", _C.ALARM_ENTRY_COUNT, _C.ALARM_ENTRY_INDEX, _C.ALARM_ENTRY_VALUE)
SYSTEM = HistoryLog("system", _C.SYSTEM_ENTRY_COUNT, _C.SYSTEM_ENTRY_INDEX, _C.SYSTEM_ENTRY_VALUE)


# Settings indices
ACTIVE_PROGRAM_SETTING = 1
PROGRAM_A_START = 14
PROGRAM_B_START = 38
PROGRAM_A_VALUE = 3
PROGRAM_B_VALUE = 10
BASAL_SLOTS = 24

# Bolus limits in 0.01 U steps
MIN_BOLUS_SCALED = 1
MAX_BOLUS_SCALED = 2500

BOLUS_TYPE_FAST = 1
BOLUS_TYPE_EXTENDED = 2


def build_bolus_request(total_units: float, duration_minutes: int = 0, immediate_units: float = 0.0) -> bytes:
    """
    Build the 13-byte start-bolus payload.

    total (u32, 0.01 U) || duration min (u32) || immediate (u32, 0.01 U) || type (u8)
    """
    total_scaled = min(max(round(total_units * 100), MIN_BOLUS_SCALED), MAX_BOLUS_SCALED)
    immediate_scaled = min(max(round(immediate_units * 100), 0), total_scaled)
    bolus_type = BOLUS_TYPE_FAST if duration_minutes == 0 else BOLUS_TYPE_EXTENDED
    return (
        total_scaled.to_bytes(4, "little")
        + duration_minutes.to_bytes(4, "little")
        + immediate_scaled.to_bytes(4, "little")
        + bytes([bolus_type])
    )


def build_cancel_bolus_request(kind: str = "fast") -> bytes:
    """12 zero bytes followed by the bolus type to cancel."""
    if kind not in ("fast", "extended"):
        raise ValueError(f"Bolus kind must be 'fast' or 'extended', got {kind!r}")
    bolus_type = BOLUS_TYPE_FAST if kind == "fast" else BOLUS_TYPE_EXTENDED
    return bytes(12) + bytes([bolus_type])


def build_tbr_request(percent: int, duration_minutes: int) -> bytes:
    return glb_encode(percent) + glb_encode(duration_minutes)


def build_date_request(now: datetime) -> bytes:
    return now.year.to_bytes(2, "little") + bytes([now.month, now.day])


def build_time_request(now: datetime) -> bytes:
    return bytes([now.hour, now.minute, now.second])
