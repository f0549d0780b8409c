"""Fixed-offset decoders for pump response payloads.

All multi-byte fields are little-endian. Status and command-response
decoders never raise on short input; they return a result with
``success=False`` carrying the first byte as the error code.
"""

import struct
from datetime import date, time
from typing import Optional

from .crc import strip_crc_if_valid
from .glb import glb_find
from .log import get_logger
from .models import (
    BolusNotification,
    BolusResponse,
    BolusStatus,
    HistoryEntry,
    SystemStatus,
    TbrResponse,
)
from .types import HISTORY_ENTRY_SIZE, PUMP_EPOCH_OFFSET, FormatError, RedundancyCheckError

logger = get_logger(__name__)

SYSTEM_STATUS_SIZE = 6
BOLUS_STATUS_FAST_SIZE = 13
BOLUS_STATUS_FULL_SIZE = 42
BOLUS_RESPONSE_SIZE = 4
TBR_RESPONSE_SIZE = 5
BOLUS_NOTIFICATION_SIZE = 10
DATE_SIZE = 4
TIME_SIZE = 3

# pumpSeconds, entryType, value1-3, sequence, index
_HISTORY_STRUCT = struct.Struct("<IBHHHIH")
# status, sequence, injected, total
_BOLUS_PART_STRUCT = struct.Struct("<BIii")
# sequence, injected, total, fast part injected, fast part total, actual duration, total duration
_BOLUS_SLOW_STRUCT = struct.Struct("<Iiiiiii")
_NOTIFICATION_STRUCT = struct.Struct("<BIBI")

STATE_ACCEPTED = 0x01


def parse_system_status(payload: bytes) -> SystemStatus:
    """Decode mode (u8), insulin (i32, 0.01 U) and battery (u8)."""
    if len(payload) < SYSTEM_STATUS_SIZE:
        return SystemStatus.rejected(payload)
    mode = payload[0]
    insulin_raw = int.from_bytes(payload[1:5], "little", signed=True)
    return SystemStatus(
        success=True,
        delivery_mode=mode,
        insulin_remaining=insulin_raw / 100,
        battery_percent=payload[5],
    )


def parse_bolus_status(payload: bytes) -> BolusStatus:
    """
    Decode the bolus status.

    Layout::

        fast: status u8 | sequence u32 | injected i32 | total i32   (13 bytes)
        slow status u8                                              (optional)
        slow: sequence u32 | injected i32 | total i32 |
              fast part injected i32 | fast part total i32 |
              actual duration i32 | total duration i32              (if slow status != 0)
    """
    if len(payload) < BOLUS_STATUS_FAST_SIZE:
        return BolusStatus.rejected(payload)

    fast_status, fast_seq, fast_inj, fast_tot = _BOLUS_PART_STRUCT.unpack_from(payload, 0)
    status = BolusStatus(
        success=True,
        fast_status=fast_status,
        fast_sequence=fast_seq,
        fast_injected=fast_inj / 100,
        fast_total=fast_tot / 100,
    )

    if len(payload) > BOLUS_STATUS_FAST_SIZE:
        status.slow_status = payload[BOLUS_STATUS_FAST_SIZE]
        if status.slow_status != 0 and len(payload) >= BOLUS_STATUS_FULL_SIZE:
            (
                seq,
                injected,
                total,
                part_injected,
                part_total,
                status.actual_duration,
                status.total_duration,
            ) = _BOLUS_SLOW_STRUCT.unpack_from(payload, BOLUS_STATUS_FAST_SIZE + 1)
            status.slow_sequence = seq
            status.slow_injected = injected / 100
            status.slow_total = total / 100
            status.slow_fast_part_injected = part_injected / 100
            status.slow_fast_part_total = part_total / 100
    return status


def parse_bolus_response(payload: bytes) -> BolusResponse:
    """Decode state (u8) and delivered amount (u16, 0.1 U)."""
    if len(payload) < BOLUS_RESPONSE_SIZE:
        return BolusResponse(success=False, error_code=payload[0] if payload else -1)
    state = payload[0]
    delivered = int.from_bytes(payload[1:3], "little")
    return BolusResponse(success=state == STATE_ACCEPTED, state=state, delivered_units=delivered / 10)


def parse_tbr_response(payload: bytes) -> TbrResponse:
    """Decode state (u8), active percent (u16) and remaining minutes (u16)."""
    if len(payload) < TBR_RESPONSE_SIZE:
        return TbrResponse(success=False, error_code=payload[0] if payload else -1)
    state = payload[0]
    return TbrResponse(
        success=state == STATE_ACCEPTED,
        state=state,
        active_percent=int.from_bytes(payload[1:3], "little"),
        remaining_minutes=int.from_bytes(payload[3:5], "little"),
    )


def parse_history_entry(payload: bytes) -> HistoryEntry:
    """
    Decode a history record, dropping a trailing checksum if it validates.

    Raises:
        FormatError: If fewer than 17 bytes remain
    """
    data = strip_crc_if_valid(payload)
    if len(data) < HISTORY_ENTRY_SIZE:
        raise FormatError(f"History entry must be at least {HISTORY_ENTRY_SIZE} bytes, got {len(data)}")
    seconds, entry_type, v1, v2, v3, sequence, index = _HISTORY_STRUCT.unpack_from(data, 0)
    return HistoryEntry(
        timestamp=seconds + PUMP_EPOCH_OFFSET,
        entry_type=entry_type,
        value1=v1,
        value2=v2,
        value3=v3,
        sequence=sequence,
        index=index,
    )


def parse_bolus_notification(data: bytes) -> Optional[BolusNotification]:
    """Decode an unsolicited bolus notification, or None if malformed."""
    payload = data
    if len(data) >= BOLUS_NOTIFICATION_SIZE + 2:
        payload = strip_crc_if_valid(data)
    if len(payload) < BOLUS_NOTIFICATION_SIZE:
        logger.warning("Ignoring malformed bolus notification (%d bytes)", len(data))
        return None
    fast_status, fast_seq, slow_status, slow_seq = _NOTIFICATION_STRUCT.unpack_from(payload, 0)
    return BolusNotification(fast_status, fast_seq, slow_status, slow_seq)


def parse_count(payload: bytes) -> int:
    """Scan a history count response for its redundancy-checked value."""
    value = glb_find(payload)
    if value is None:
        raise RedundancyCheckError(f"No valid count in {len(payload)}-byte response")
    return value


def parse_setting_value(payload: bytes) -> int:
    value = glb_find(payload)
    if value is None:
        raise RedundancyCheckError(f"No valid setting value in {len(payload)}-byte response")
    return value


def format_version(payload: bytes) -> str:
    """Render a service version as dotted bytes, e.g. ``b"\\x01\\x02"`` -> ``"1.2"``."""
    return ".".join(str(b) for b in payload)


def format_software_version(payload: bytes) -> str:
    return payload.decode("ascii", errors="replace").strip("\x00 \r\n")


def parse_date(payload: bytes) -> date:
    """Decode the pump date: year (u16), month (u8), day (u8)."""
    if len(payload) < DATE_SIZE:
        raise FormatError(f"Date must be at least {DATE_SIZE} bytes, got {len(payload)}")
    try:
        return date(int.from_bytes(payload[0:2], "little"), payload[2], payload[3])
    except ValueError as e:
        raise FormatError(f"Invalid pump date: {e}") from e


def parse_time(payload: bytes) -> time:
    """Decode the pump time of day: hour, minute, second."""
    if len(payload) < TIME_SIZE:
        raise FormatError(f"Time must be at least {TIME_SIZE} bytes, got {len(payload)}")
    try:
        return time(payload[0], payload[1], payload[2])
    except ValueError as e:
        raise FormatError(f"Invalid pump time: {e}") from e
