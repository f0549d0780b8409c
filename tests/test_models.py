"""Tests for domain enums and result models."""

from datetime import datetime, timezone

import pytest
from ypsopump.models import (
    BolusNotificationStatus,
    DeliveryMode,
    EventType,
    HistoryEntry,
    SystemStatus,
    delivery_mode_name,
    event_type_name,
    is_alert_event,
    is_bolus_event,
    is_tbr_event,
)
from ypsopump.types import PUMP_EPOCH_OFFSET


class TestEventTypes:
    """Test event names and classification."""

    @pytest.mark.parametrize(
        "entry_type,name",
        [
            (EventType.BOLUS_IMMEDIATE, "Bolus Immediate"),
            (EventType.BASAL_PROFILE_TEMP_RUNNING, "TBR Running"),
            (EventType.ALERT_OCCLUSION, "Alert: Occlusion"),
            (EventType.ALERT_LIPO_DISCHARGED, "Alert: LiPo Discharged"),
            (250, "Unknown(250)"),
        ],
    )
    def test_names(self, entry_type: int, name: str) -> None:
        assert event_type_name(entry_type) == name

    def test_classification(self) -> None:
        assert is_bolus_event(EventType.BOLUS_BLIND_ABORT)
        assert not is_bolus_event(EventType.DATE_CHANGED)
        assert is_tbr_event(EventType.BASAL_PROFILE_TEMP_ABORT)
        assert not is_tbr_event(EventType.BASAL_PROFILE_CHANGED)
        assert is_alert_event(EventType.ALERT_AUTO_STOP)
        assert not is_alert_event(EventType.DATE_CHANGED)


class TestDeliveryMode:
    def test_names(self) -> None:
        assert delivery_mode_name(DeliveryMode.STOPPED) == "Stopped"
        assert SystemStatus(success=True, delivery_mode=DeliveryMode.STOPPED).delivery_mode_name == "Stopped"

    def test_rejected_status(self) -> None:
        status = SystemStatus.rejected(b"\x07\x01")
        assert not status.success
        assert status.error_code == 7
        assert SystemStatus.rejected(b"").error_code == -1


class TestBolusNotificationStatus:
    """Test terminal-state detection."""

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (BolusNotificationStatus.IDLE, False),
            (BolusNotificationStatus.DELIVERING, False),
            (BolusNotificationStatus.CANCELLED, True),
            (BolusNotificationStatus.COMPLETED, True),
        ],
    )
    def test_is_terminal(self, status: int, terminal: bool) -> None:
        assert BolusNotificationStatus.is_terminal(status) is terminal


class TestHistoryEntry:
    def test_occurred_at(self) -> None:
        entry = HistoryEntry(
            timestamp=PUMP_EPOCH_OFFSET + 86400,
            entry_type=EventType.DATE_CHANGED,
            value1=0,
            value2=0,
            value3=0,
            sequence=1,
            index=0,
        )
        assert entry.occurred_at == datetime(2000, 1, 2, tzinfo=timezone.utc)
        assert entry.entry_type_name == "Date Changed"
