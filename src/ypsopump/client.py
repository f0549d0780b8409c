"""
YpsoPump command engine.

The PumpClient sequences framed, checksummed and encrypted commands over a
PumpTransport and exposes the pump operations as coroutines.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .commands import (
    ACTIVE_PROGRAM_SETTING,
    ALERTS,
    BASAL_SLOTS,
    EVENTS,
    PROGRAM_A_START,
    PROGRAM_A_VALUE,
    PROGRAM_B_START,
    PROGRAM_B_VALUE,
    SYSTEM,
    CommandCode,
    HistoryLog,
    build_bolus_request,
    build_cancel_bolus_request,
    build_channel_map,
    build_date_request,
    build_tbr_request,
    build_time_request,
    get_descriptor,
)
from .crc import append_crc, strip_crc, strip_crc_if_valid
from .framing import chunk_payload, reassemble_frames, total_frames
from .glb import glb_encode
from .keys import compute_auth_password
from .log import get_logger
from .models import (
    BolusNotification,
    BolusResponse,
    BolusStatus,
    HistoryEntry,
    SystemStatus,
    TbrResponse,
    VersionInfo,
)
from .parser import (
    BOLUS_STATUS_FAST_SIZE,
    DATE_SIZE,
    SYSTEM_STATUS_SIZE,
    TIME_SIZE,
    format_software_version,
    format_version,
    parse_bolus_notification,
    parse_bolus_response,
    parse_bolus_status,
    parse_count,
    parse_date,
    parse_history_entry,
    parse_setting_value,
    parse_system_status,
    parse_tbr_response,
    parse_time,
)
from .session import PumpSession
from .storage import SharedKeyStorage
from .transport import PumpTransport
from .types import (
    CRC_SIZE,
    COMMAND_TIMEOUT,
    CommandTimeoutError,
    ConfigurationError,
    CounterSyncError,
    CryptoError,
    DisconnectedError,
    FormatError,
    HistoryIncompleteError,
    OrderingError,
    SessionNotReadyError,
    TransportError,
    YpsoPumpError,
)

logger = get_logger(__name__)

# Replies whose checksum is enforced once they are long enough to hold
# the full structure; shorter replies are rejections and pass through.
_CHECKED_REPLY_SIZES = {
    CommandCode.GET_SYSTEM_STATUS: SYSTEM_STATUS_SIZE,
    CommandCode.GET_BOLUS_STATUS: BOLUS_STATUS_FAST_SIZE,
    CommandCode.SYSTEM_DATE: DATE_SIZE,
    CommandCode.SYSTEM_TIME: TIME_SIZE,
}


def _strip_reply_checksum(code: CommandCode, data: bytes) -> bytes:
    size = _CHECKED_REPLY_SIZES.get(code)
    if size is None or len(data) < size + CRC_SIZE:
        return strip_crc_if_valid(data)
    return strip_crc(data)


@dataclass
class ClientConfig:
    """Configuration for a PumpClient."""

    command_timeout: float = COMMAND_TIMEOUT
    """Budget in seconds for each transport step of a command."""

    history_max_entries: int = 50
    """Default number of most recent entries read per history log (0 reads all)."""

    channels: Dict[int, str] = field(default_factory=dict)
    """Overrides for the command code to channel map."""


class PumpClient:
    """
    High-level client for one pump session.

    All public operations are serialized: only one command is on the wire
    at a time, and multi-frame writes and reads complete frame by frame
    before the next command starts.

    Example usage:
        ```python
        client = PumpClient(transport)
        client.attach_key(import_shared_key(key_hex))
        await client.authenticate("EC:2A:F0:00:12:34")

        status = await client.get_system_status()
        events = await client.read_events(max_entries=20)
        ```
    """

    def __init__(
        self,
        transport: PumpTransport,
        session: Optional[PumpSession] = None,
        config: Optional[ClientConfig] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            transport: Link to the pump.
            session: Session cipher state (default: new uninitialized session).
            config: Timeouts, history defaults and channel overrides.

        Raises:
            ConfigurationError: If a channel override is invalid.
        """
        self.transport = transport
        self.session = session or PumpSession()
        self.config = config or ClientConfig()
        self.channels = build_channel_map(self.config.channels)

        self.counters_synced = False
        self.is_authenticated = False
        self.last_system_status: Optional[SystemStatus] = None

        self._lock = asyncio.Lock()
        self._pending: Optional[asyncio.Task] = None

    # Session lifecycle

    def attach_key(self, shared_key: bytes) -> None:
        """Attach a shared key; the next encrypted write re-syncs counters first."""
        self.session.set_shared_key(shared_key)
        self.counters_synced = False

    async def attach_key_from_storage(self, storage: SharedKeyStorage, serial: str) -> None:
        """Load an unexpired key for ``serial`` and attach it."""
        self.attach_key(await storage.retrieve(serial))

    def handle_disconnect(self) -> None:
        """Fail any in-flight operation and reset the session."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self.session.reset()
        self.counters_synced = False
        self.is_authenticated = False
        logger.info("Link disconnected, session reset")

    async def disconnect(self) -> None:
        self.handle_disconnect()
        await self.transport.disconnect()

    # Transport primitives

    def _channel(self, code: CommandCode) -> str:
        try:
            return self.channels[code]
        except KeyError:
            raise ConfigurationError(f"No channel configured for {code.name}") from None

    async def _await_io(self, operation: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        if not self.transport.is_connected:
            raise DisconnectedError(f"{operation}: not connected")

        task = asyncio.ensure_future(func(*args))
        self._pending = task
        try:
            done, _ = await asyncio.wait({task}, timeout=self.config.command_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._pending = None

        if not done:
            task.cancel()
            logger.warning("%s timed out after %.1fs", operation, self.config.command_timeout)
            raise CommandTimeoutError(operation, self.config.command_timeout)
        if task.cancelled():
            raise DisconnectedError(f"{operation} aborted: link disconnected")
        return task.result()

    async def _write_frames(self, channel: str, frames: List[bytes]) -> None:
        for i, frame in enumerate(frames):
            if not await self.transport.write(channel, frame):
                raise TransportError(f"Frame {i + 1}/{len(frames)} write failed")

    async def _read_frames(self, channel: str) -> bytes:
        first = await self.transport.read(channel)
        if not first:
            raise TransportError("Empty first frame")
        expected = total_frames(first[0])
        frames = [first]
        extended = self.channels[CommandCode.EXTENDED_READ]
        for i in range(1, expected):
            frame = await self.transport.read(extended)
            if not frame:
                raise TransportError(f"Missing frame {i + 1}/{expected}")
            frames.append(frame)
        return reassemble_frames(frames)

    def _decrypt(self, data: bytes) -> bytes:
        try:
            plaintext = self.session.decrypt(data)
        except OrderingError:
            logger.error("Ending session after counter ordering violation")
            self.session.reset()
            self.counters_synced = False
            raise
        except CryptoError as e:
            logger.error("Decryption failed (wrong key or tampered data): %s", e)
            raise
        except FormatError as e:
            logger.error("Malformed encrypted response: %s", e)
            raise

        if not self.counters_synced:
            self.counters_synced = True
            logger.debug(
                "Counter sync OK (reboot=%d, read=%d, write=%d)",
                self.session.reboot_counter,
                self.session.read_counter,
                self.session.write_counter,
            )
        return plaintext

    async def _ensure_synced(self) -> None:
        if self.counters_synced:
            return
        if not self.session.is_ready:
            raise SessionNotReadyError("No shared key attached")

        logger.debug("Syncing counters before encrypted write")
        try:
            await self._get_system_status()
        except YpsoPumpError as e:
            raise CounterSyncError(f"Status read before first encrypted write failed: {e}") from e

    async def _send(self, code: CommandCode, payload: bytes) -> None:
        descriptor = get_descriptor(code)
        channel = self._channel(descriptor.code)

        if descriptor.encrypted:
            await self._ensure_synced()

        data = append_crc(payload) if descriptor.checksum else payload
        if descriptor.encrypted:
            data = self.session.encrypt(data)
        frames = chunk_payload(data) if descriptor.framed else [data]

        logger.debug("TX %s: %d bytes in %d frame(s)", descriptor.code.name, len(data), len(frames))
        await self._await_io(f"write {descriptor.code.name}", self._write_frames, channel, frames)

    async def _read(self, code: CommandCode) -> bytes:
        descriptor = get_descriptor(code)
        channel = self._channel(descriptor.code)
        operation = f"read {descriptor.code.name}"

        if descriptor.framed:
            raw = await self._await_io(operation, self._read_frames, channel)
        else:
            raw = await self._await_io(operation, self.transport.read, channel)
        logger.debug("RX %s: %d bytes", descriptor.code.name, len(raw))

        data = self._decrypt(raw) if descriptor.encrypted else raw
        if descriptor.checksum:
            data = _strip_reply_checksum(descriptor.code, data)
        return data

    async def send_command(self, code: int, payload: bytes) -> None:
        """
        Send one command payload.

        Encrypted commands are preceded by a counter sync read when
        needed. Frames are written strictly in order and the first failed
        write aborts the rest.

        The write counter is consumed when the payload is encrypted, before
        any frame goes out. A failed frame write therefore still advances
        it, so no counter value is ever sent twice.

        Raises:
            CounterSyncError: If the mandatory sync read failed
            TransportError: If a frame write was not acknowledged
            CommandTimeoutError: If the write did not complete in time
        """
        async with self._lock:
            await self._send(get_descriptor(code).code, payload)

    async def read_command(self, code: int) -> bytes:
        """Read, reassemble, decrypt and checksum-strip one response."""
        async with self._lock:
            return await self._read(get_descriptor(code).code)

    # Base service

    async def authenticate(self, mac_address: str) -> None:
        """Write the MAC-derived password to the authorization channel."""
        async with self._lock:
            await self._send(CommandCode.AUTHORIZATION_PASSWORD, compute_auth_password(mac_address))
            self.is_authenticated = True
            logger.info("Authorization password written")

    async def read_master_version(self) -> str:
        async with self._lock:
            return format_software_version(await self._read(CommandCode.MASTER_SOFTWARE_VERSION))

    async def read_service_version(self, code: int) -> str:
        """Read one of the service version characteristics as a dotted string."""
        async with self._lock:
            return format_version(await self._read(get_descriptor(code).code))

    async def read_versions(self) -> VersionInfo:
        """Read firmware and every configured service version."""
        async with self._lock:
            info = VersionInfo(master=format_software_version(await self._read(CommandCode.MASTER_SOFTWARE_VERSION)))
            for attr, code in (
                ("base", CommandCode.PUMP_BASE_SERVICE_VERSION),
                ("settings", CommandCode.SETTINGS_SERVICE_VERSION),
                ("history", CommandCode.HISTORY_SERVICE_VERSION),
                ("control", CommandCode.CONTROL_SERVICE_VERSION),
            ):
                if code in self.channels:
                    setattr(info, attr, format_version(await self._read(code)))
            return info

    # Status

    async def _get_system_status(self) -> SystemStatus:
        status = parse_system_status(await self._read(CommandCode.GET_SYSTEM_STATUS))
        self.last_system_status = status
        if status.success:
            logger.debug(
                "Status: %s, insulin %.2fU, battery %d%%",
                status.delivery_mode_name,
                status.insulin_remaining,
                status.battery_percent,
            )
        return status

    async def get_system_status(self) -> SystemStatus:
        async with self._lock:
            return await self._get_system_status()

    async def get_bolus_status(self) -> BolusStatus:
        async with self._lock:
            return parse_bolus_status(await self._read(CommandCode.GET_BOLUS_STATUS))

    # Delivery control

    async def start_bolus(
        self,
        total_units: float,
        duration_minutes: int = 0,
        immediate_units: float = 0.0,
    ) -> None:
        """Start a fast bolus, or an extended one when ``duration_minutes`` is set."""
        payload = build_bolus_request(total_units, duration_minutes, immediate_units)
        async with self._lock:
            logger.info("Starting bolus: %.2fU over %d min", total_units, duration_minutes)
            await self._send(CommandCode.START_STOP_BOLUS, payload)

    async def cancel_bolus(self, kind: str = "fast") -> None:
        payload = build_cancel_bolus_request(kind)
        async with self._lock:
            logger.info("Cancelling %s bolus", kind)
            await self._send(CommandCode.START_STOP_BOLUS, payload)

    async def read_bolus_response(self) -> BolusResponse:
        async with self._lock:
            return parse_bolus_response(await self._read(CommandCode.START_STOP_BOLUS))

    async def start_tbr(self, percent: int, duration_minutes: int) -> None:
        payload = build_tbr_request(percent, duration_minutes)
        async with self._lock:
            logger.info("Starting TBR: %d%% for %d min", percent, duration_minutes)
            await self._send(CommandCode.START_STOP_TBR, payload)

    async def cancel_tbr(self) -> None:
        await self.start_tbr(100, 0)

    async def read_tbr_response(self) -> TbrResponse:
        async with self._lock:
            data = await self._read(CommandCode.START_STOP_TBR)
            return parse_tbr_response(strip_crc_if_valid(data))

    async def sync_time(self, now: Optional[datetime] = None) -> None:
        """Write the pump date, then the time of day."""
        now = now or datetime.now()
        async with self._lock:
            logger.info("Syncing pump clock to %s", now.isoformat(timespec="seconds"))
            await self._send(CommandCode.SYSTEM_DATE, build_date_request(now))
            await self._send(CommandCode.SYSTEM_TIME, build_time_request(now))

    async def read_date(self) -> date:
        async with self._lock:
            return parse_date(await self._read(CommandCode.SYSTEM_DATE))

    async def read_time(self) -> time:
        """Read the pump time of day (no date, no timezone)."""
        async with self._lock:
            return parse_time(await self._read(CommandCode.SYSTEM_TIME))

    # Settings

    async def _read_setting(self, index: int) -> int:
        await self._send(CommandCode.SETTING_ID, glb_encode(index))
        return parse_setting_value(await self._read(CommandCode.SETTING_VALUE))

    async def read_setting(self, index: int) -> int:
        async with self._lock:
            return await self._read_setting(index)

    async def write_setting(self, index: int, value: int) -> None:
        async with self._lock:
            await self._send(CommandCode.SETTING_ID, glb_encode(index))
            await self._send(CommandCode.SETTING_VALUE, glb_encode(value))

    async def read_basal_profile(self, program: str) -> List[float]:
        """
        Read the 24 hourly rates (U/h) of basal program "A" or "B".

        An unset slot (raw -1) reads as 0.0.
        """
        starts = {"A": PROGRAM_A_START, "B": PROGRAM_B_START}
        if program not in starts:
            raise ValueError(f"Basal program must be 'A' or 'B', got {program!r}")
        start = starts[program]

        async with self._lock:
            rates = []
            for index in range(start, start + BASAL_SLOTS):
                raw = await self._read_setting(index)
                rates.append(0.0 if raw == -1 else raw / 100)
            return rates

    async def read_active_program(self) -> Optional[str]:
        async with self._lock:
            value = await self._read_setting(ACTIVE_PROGRAM_SETTING)
        return {PROGRAM_A_VALUE: "A", PROGRAM_B_VALUE: "B"}.get(value)

    # History

    async def _read_history(self, log: HistoryLog, max_entries: int) -> List[HistoryEntry]:
        count = parse_count(await self._read(log.count))
        if count <= 0:
            return []

        start = max(0, count - max_entries) if max_entries > 0 else 0
        requested = count - start
        logger.debug("Reading %d of %d %s entries", requested, count, log.name)

        entries: List[HistoryEntry] = []
        try:
            for index in range(count - 1, start - 1, -1):
                await self._send(log.index, glb_encode(index))
                entries.append(parse_history_entry(await self._read(log.value)))
        except (CryptoError, OrderingError, SessionNotReadyError):
            raise
        except YpsoPumpError as e:
            entries.reverse()
            logger.warning("%s history aborted after %d entries: %s", log.name, len(entries), e)
            raise HistoryIncompleteError(log.name, entries, requested) from e

        entries.reverse()
        return entries

    async def read_history_count(self, log: HistoryLog) -> int:
        async with self._lock:
            return parse_count(await self._read(log.count))

    async def read_history(self, log: HistoryLog, max_entries: Optional[int] = None) -> List[HistoryEntry]:
        """
        Page through a history log with the count/index/value pattern.

        Args:
            log: EVENTS, ALERTS or SYSTEM
            max_entries: Most recent entries to read (default from config, 0 for all)

        Returns:
            Entries in ascending index order

        Raises:
            HistoryIncompleteError: If a step failed part way; carries the
                entries collected so far
        """
        if max_entries is None:
            max_entries = self.config.history_max_entries
        async with self._lock:
            return await self._read_history(log, max_entries)

    async def read_events(self, max_entries: Optional[int] = None) -> List[HistoryEntry]:
        return await self.read_history(EVENTS, max_entries)

    async def read_alerts(self, max_entries: Optional[int] = None) -> List[HistoryEntry]:
        return await self.read_history(ALERTS, max_entries)

    async def read_system_history(self, max_entries: Optional[int] = None) -> List[HistoryEntry]:
        return await self.read_history(SYSTEM, max_entries)

    # Notifications

    async def subscribe_bolus_notifications(self, callback: Callable[[BolusNotification], None]) -> None:
        """Deliver parsed bolus notifications to ``callback``; malformed ones are dropped."""

        def on_notification(data: bytes) -> None:
            notification = parse_bolus_notification(data)
            if notification is not None:
                callback(notification)

        channel = self._channel(CommandCode.BOLUS_STATUS_NOTIFICATION)
        await self.transport.subscribe(channel, on_notification)
