"""Models for pump status snapshots, history entries and command results."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional


class DeliveryMode(IntEnum):
    """Pump delivery mode reported in the system status."""
    STOPPED = 0
    BASAL = 1
    TBR = 2
    BOLUS_FAST = 3
    BOLUS_EXTENDED = 4
    BOLUS_AND_BASAL = 5
    PRIMING = 6
    PAUSED = 7


_DELIVERY_MODE_NAMES = {
    DeliveryMode.STOPPED: "Stopped",
    DeliveryMode.BASAL: "Basal",
    DeliveryMode.TBR: "TBR Active",
    DeliveryMode.BOLUS_FAST: "Fast Bolus",
    DeliveryMode.BOLUS_EXTENDED: "Extended Bolus",
    DeliveryMode.BOLUS_AND_BASAL: "Bolus + Basal",
    DeliveryMode.PRIMING: "Priming",
    DeliveryMode.PAUSED: "Paused",
}


def delivery_mode_name(mode: int) -> str:
    return _DELIVERY_MODE_NAMES.get(mode, f"Unknown({mode})")


class EventType(IntEnum):
    """History entry type codes."""
    BOLUS_DELAYED_RUNNING = 1
    BOLUS_IMMEDIATE = 2
    BOLUS_DELAYED = 3
    PRIMING_FINISHED = 4
    BOLUS_STEP_CHANGED = 5
    BASAL_PROFILE_CHANGED = 6
    BASAL_PROFILE_A_CHANGED = 7
    BASAL_PROFILE_B_CHANGED = 8
    BASAL_PROFILE_TEMP_RUNNING = 9
    BASAL_PROFILE_TEMP = 10
    DATE_CHANGED = 12
    TIME_CHANGED = 13
    PUMP_MODE_CHANGED = 14
    REWIND_FINISHED = 16
    BOLUS_COMBINED_RUNNING = 17
    BOLUS_COMBINED = 18
    BOLUS_IMMEDIATE_RUNNING = 19
    BOLUS_DELAYED_BACKUP = 20
    BOLUS_COMBINED_BACKUP = 21
    BASAL_PROFILE_TEMP_BACKUP = 22
    DAILY_TOTAL_INSULIN = 23
    BATTERY_REMOVED = 24
    CANNULA_PRIMING_FINISHED = 25
    BOLUS_BLIND = 26
    BOLUS_BLIND_RUNNING = 27
    BOLUS_BLIND_ABORT = 28
    BOLUS_IMMEDIATE_ABORT = 29
    BOLUS_DELAYED_ABORT = 30
    BOLUS_COMBINED_ABORT = 31
    BASAL_PROFILE_TEMP_ABORT = 32
    BOLUS_AMOUNT_CAP_CHANGED = 33
    BASAL_RATE_CAP_CHANGED = 34
    # Alerts
    ALERT_BATTERY_REMOVED = 100
    ALERT_BATTERY_EMPTY = 101
    ALERT_REUSABLE_ERROR = 102
    ALERT_NO_CARTRIDGE = 103
    ALERT_CARTRIDGE_EMPTY = 104
    ALERT_OCCLUSION = 105
    ALERT_AUTO_STOP = 106
    ALERT_LIPO_DISCHARGED = 107
    ALERT_BATTERY_REJECTED = 108
    DELIVERY_STATUS_CHANGED = 150


# Names that do not follow from the enum member name
_EVENT_NAME_OVERRIDES = {
    EventType.BASAL_PROFILE_TEMP_RUNNING: "TBR Running",
    EventType.BASAL_PROFILE_TEMP: "TBR Completed",
    EventType.BASAL_PROFILE_TEMP_BACKUP: "TBR Backup",
    EventType.BASAL_PROFILE_TEMP_ABORT: "TBR Abort",
    EventType.ALERT_LIPO_DISCHARGED: "Alert: LiPo Discharged",
}

_BOLUS_EVENTS = frozenset({
    EventType.BOLUS_IMMEDIATE, EventType.BOLUS_DELAYED, EventType.BOLUS_COMBINED,
    EventType.BOLUS_IMMEDIATE_RUNNING, EventType.BOLUS_DELAYED_RUNNING, EventType.BOLUS_COMBINED_RUNNING,
    EventType.BOLUS_IMMEDIATE_ABORT, EventType.BOLUS_DELAYED_ABORT, EventType.BOLUS_COMBINED_ABORT,
    EventType.BOLUS_BLIND, EventType.BOLUS_BLIND_RUNNING, EventType.BOLUS_BLIND_ABORT,
    EventType.BOLUS_STEP_CHANGED, EventType.BOLUS_AMOUNT_CAP_CHANGED,
})

_TBR_EVENTS = frozenset({
    EventType.BASAL_PROFILE_TEMP, EventType.BASAL_PROFILE_TEMP_RUNNING,
    EventType.BASAL_PROFILE_TEMP_BACKUP, EventType.BASAL_PROFILE_TEMP_ABORT,
})


def event_type_name(entry_type: int) -> str:
    """Human readable name for a history entry type."""
    try:
        event = EventType(entry_type)
    except ValueError:
        return f"Unknown({entry_type})"
    if event in _EVENT_NAME_OVERRIDES:
        return _EVENT_NAME_OVERRIDES[event]
    if event.name.startswith("ALERT_"):
        return "Alert: " + event.name[len("ALERT_"):].replace("_", " ").title()
    return event.name.replace("_", " ").title()


def is_bolus_event(entry_type: int) -> bool:
    return entry_type in _BOLUS_EVENTS


def is_tbr_event(entry_type: int) -> bool:
    return entry_type in _TBR_EVENTS


def is_alert_event(entry_type: int) -> bool:
    return 100 <= entry_type <= 199


class BolusNotificationStatus(IntEnum):
    """Bolus state carried in unsolicited notifications."""
    IDLE = 0
    DELIVERING = 1
    CANCELLED = 3
    COMPLETED = 4

    @staticmethod
    def is_terminal(status: int) -> bool:
        """Whether the bolus has ended (any state other than idle/delivering)."""
        return status not in (BolusNotificationStatus.IDLE, BolusNotificationStatus.DELIVERING)


def notification_status_name(status: int) -> str:
    try:
        return BolusNotificationStatus(status).name.title()
    except ValueError:
        return f"Unknown({status})"


@dataclass(frozen=True)
class HistoryEntry:
    """One decoded history record."""
    timestamp: int
    entry_type: int
    value1: int
    value2: int
    value3: int
    sequence: int
    index: int

    @property
    def entry_type_name(self) -> str:
        return event_type_name(self.entry_type)

    @property
    def occurred_at(self) -> datetime:
        """The entry time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


@dataclass
class SystemStatus:
    """Snapshot from GET_SYSTEM_STATUS."""
    success: bool
    delivery_mode: int = 0
    insulin_remaining: float = 0.0
    battery_percent: int = 0
    error_code: Optional[int] = None

    @property
    def delivery_mode_name(self) -> str:
        return delivery_mode_name(self.delivery_mode)

    @classmethod
    def rejected(cls, data: bytes) -> "SystemStatus":
        return cls(success=False, error_code=data[0] if data else -1)


@dataclass
class BolusStatus:
    """Snapshot from GET_BOLUS_STATUS: fast part plus optional slow (extended) part."""
    success: bool
    fast_status: int = 0
    fast_sequence: int = 0
    fast_injected: float = 0.0
    fast_total: float = 0.0
    slow_status: int = 0
    slow_sequence: int = 0
    slow_injected: float = 0.0
    slow_total: float = 0.0
    slow_fast_part_injected: float = 0.0
    slow_fast_part_total: float = 0.0
    actual_duration: int = 0
    total_duration: int = 0
    error_code: Optional[int] = None

    @classmethod
    def rejected(cls, data: bytes) -> "BolusStatus":
        return cls(success=False, error_code=data[0] if data else -1)


@dataclass(frozen=True)
class BolusNotification:
    fast_status: int
    fast_sequence: int
    slow_status: int
    slow_sequence: int

    @property
    def fast_status_name(self) -> str:
        return notification_status_name(self.fast_status)

    @property
    def slow_status_name(self) -> str:
        return notification_status_name(self.slow_status)


@dataclass
class BolusResponse:
    """Reply to START_STOP_BOLUS."""
    success: bool
    state: int = 0
    delivered_units: float = 0.0
    error_code: Optional[int] = None


@dataclass
class TbrResponse:
    """Reply to START_STOP_TBR."""
    success: bool
    state: int = 0
    active_percent: int = 100
    remaining_minutes: int = 0
    error_code: Optional[int] = None


@dataclass
class VersionInfo:
    """Service and firmware versions read after connecting."""
    master: str = ""
    base: str = ""
    settings: str = ""
    history: str = ""
    control: str = ""
