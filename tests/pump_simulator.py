"""In-process pump that plays the device side of the protocol for tests."""

import asyncio
import os
from typing import Callable, Dict, List, Optional, Tuple

from ypsopump.commands import COMMAND_TABLE, DEFAULT_CHANNELS, CommandCode
from ypsopump.crc import append_crc, strip_crc
from ypsopump.framing import chunk_payload, frame_index, reassemble_frames, total_frames
from ypsopump.glb import glb_decode, glb_encode
from ypsopump.session import SessionConfig, pack_counters, unpack_counters
from ypsopump.transport import PumpTransport
from ypsopump.types import COUNTER_DATA_SIZE, NONCE_SIZE, PUMP_EPOCH_OFFSET
from ypsopump.xchacha import xchacha20_poly1305_decrypt, xchacha20_poly1305_encrypt

_C = CommandCode

HISTORY_INDEX_CODES = {
    _C.EVENT_ENTRY_INDEX: "events",
    _C.ALARM_ENTRY_INDEX: "alerts",
    _C.SYSTEM_ENTRY_INDEX: "system",
}
HISTORY_COUNT_CODES = {
    _C.EVENT_ENTRY_COUNT: "events",
    _C.ALARM_ENTRY_COUNT: "alerts",
    _C.SYSTEM_ENTRY_COUNT: "system",
}
HISTORY_VALUE_CODES = {
    _C.EVENT_ENTRY_VALUE: "events",
    _C.ALARM_ENTRY_VALUE: "alerts",
    _C.SYSTEM_ENTRY_VALUE: "system",
}

BASE_PUMP_SECONDS = 700_000_000


def seal(
    key: bytes,
    payload: bytes,
    reboot_counter: int,
    counter: int,
    config: SessionConfig = SessionConfig(),
) -> bytes:
    """Encrypt a device message: payload || counters, nonce appended."""
    nonce = os.urandom(NONCE_SIZE)
    plaintext = payload + pack_counters(reboot_counter, counter, config.counter_byteorder)
    return xchacha20_poly1305_encrypt(key, nonce, plaintext) + nonce


def unseal(key: bytes, data: bytes, config: SessionConfig = SessionConfig()) -> Tuple[bytes, int, int]:
    """Decrypt a host message and return (payload, reboot_counter, counter)."""
    plaintext = xchacha20_poly1305_decrypt(key, data[-NONCE_SIZE:], data[:-NONCE_SIZE])
    reboot, counter = unpack_counters(plaintext[-COUNTER_DATA_SIZE:], config.counter_byteorder)
    return plaintext[:-COUNTER_DATA_SIZE], reboot, counter


def history_record(index: int, entry_type: int = 2) -> bytes:
    """A 17-byte history record whose sequence and index equal ``index``."""
    return (
        (BASE_PUMP_SECONDS + index * 60).to_bytes(4, "little")
        + bytes([entry_type])
        + (index * 10).to_bytes(2, "little")
        + (0).to_bytes(2, "little")
        + (0).to_bytes(2, "little")
        + index.to_bytes(4, "little")
        + (index & 0xFFFF).to_bytes(2, "little")
    )


class PumpSimulator(PumpTransport):
    """
    Transport double that behaves like a pump.

    Writes are reassembled per channel, decrypted and dispatched; reads are
    answered with encrypted, framed responses whose continuation frames are
    served from the extended-read channel.
    """

    def __init__(
        self,
        shared_key: bytes,
        config: SessionConfig = SessionConfig(),
        channels: Optional[Dict[CommandCode, str]] = None,
    ) -> None:
        self.shared_key = shared_key
        self.config = config
        self.channels = dict(channels or DEFAULT_CHANNELS)
        self._codes = {channel: code for code, channel in self.channels.items()}

        self.connected = True
        self.reboot_counter = 1
        self.counter = 0

        # Device state
        self.mode = 1
        self.insulin_hundredths = 15000
        self.battery = 80
        self.bolus_status = bytes([0]) + bytes(12)
        self.settings: Dict[int, int] = {}
        self.current_setting: Optional[int] = None
        self.history_counts: Dict[str, int] = {"events": 0, "alerts": 0, "system": 0}
        self.current_index: Dict[str, int] = {}
        self.count_noise = b""
        self.clock_payloads: Dict[CommandCode, bytes] = {
            _C.SYSTEM_DATE: bytes.fromhex("e807030f"),
            _C.SYSTEM_TIME: bytes([13, 45, 30]),
        }
        self.responses: Dict[CommandCode, bytes] = {}

        # Observations
        self.log: List[Tuple[str, CommandCode]] = []
        self.received: List[Tuple[CommandCode, bytes, int, int]] = []
        self.unencrypted_writes: List[Tuple[CommandCode, bytes]] = []
        self.index_writes: List[Tuple[str, int]] = []
        self.frames_written: List[Tuple[CommandCode, bytes]] = []

        # Fault injection
        self.hang = False
        self.tamper = False
        self.replay_next = False
        self.fail_index_writes: set = set()
        self.fail_value_reads: set = set()
        self.fail_frame_write: Optional[int] = None

        self._partial: Dict[CommandCode, List[bytes]] = {}
        self._outbox: List[bytes] = []
        self._last_response: Optional[bytes] = None
        self._callbacks: Dict[str, Callable[[bytes], None]] = {}

    # PumpTransport

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def write(self, channel: str, data: bytes) -> bool:
        if self.hang:
            await asyncio.sleep(3600)
        code = self._codes[channel]
        self.frames_written.append((code, data))

        if self.fail_frame_write is not None and len(self.frames_written) == self.fail_frame_write:
            return False

        descriptor = COMMAND_TABLE[code]
        if not descriptor.framed:
            return self._handle_write(code, data)

        if frame_index(data[0]) == 0:
            self._partial[code] = []
        frames = self._partial.setdefault(code, [])
        frames.append(data)
        if len(frames) < total_frames(frames[0][0]):
            return True
        del self._partial[code]
        return self._handle_write(code, reassemble_frames(frames))

    async def read(self, channel: str) -> bytes:
        if self.hang:
            await asyncio.sleep(3600)
        code = self._codes[channel]
        if code == _C.EXTENDED_READ:
            return self._outbox.pop(0) if self._outbox else b""

        self.log.append(("read", code))
        descriptor = COMMAND_TABLE[code]
        payload = self._response(code)

        if descriptor.encrypted:
            if self.replay_next and self._last_response is not None:
                self.replay_next = False
                data = self._last_response
            else:
                self.counter += 1
                data = seal(self.shared_key, payload, self.reboot_counter, self.counter, self.config)
                self._last_response = data
            if self.tamper:
                data = bytes([data[0] ^ 0xFF]) + data[1:]
        else:
            data = payload

        if not descriptor.framed:
            return data
        frames = chunk_payload(data)
        self._outbox = frames[1:]
        return frames[0]

    async def subscribe(self, channel: str, callback: Callable[[bytes], None]) -> None:
        self._callbacks[channel] = callback

    async def disconnect(self) -> None:
        self.connected = False

    # Simulation controls

    def reboot(self) -> None:
        """Restart the pump: new reboot epoch, counters start over."""
        self.reboot_counter += 1
        self.counter = 0

    def notify(self, code: CommandCode, data: bytes) -> None:
        self._callbacks[self.channels[code]](data)

    def writes_for(self, code: CommandCode) -> List[Tuple[bytes, int, int]]:
        return [(payload, reboot, counter) for c, payload, reboot, counter in self.received if c == code]

    # Device behaviour

    def _handle_write(self, code: CommandCode, data: bytes) -> bool:
        self.log.append(("write", code))
        descriptor = COMMAND_TABLE[code]
        if not descriptor.encrypted:
            self.unencrypted_writes.append((code, data))
            return True

        payload, reboot, counter = unseal(self.shared_key, data, self.config)
        if descriptor.checksum:
            payload = strip_crc(payload)
        self.received.append((code, payload, reboot, counter))

        if code == _C.SETTING_ID:
            self.current_setting = glb_decode(payload)
        elif code == _C.SETTING_VALUE:
            self.settings[self.current_setting] = glb_decode(payload)
        elif code in self.clock_payloads:
            self.clock_payloads[code] = payload
        elif code in HISTORY_INDEX_CODES:
            log = HISTORY_INDEX_CODES[code]
            index = glb_decode(payload)
            if index in self.fail_index_writes:
                return False
            self.current_index[log] = index
            self.index_writes.append((log, index))
        return True

    def _response(self, code: CommandCode) -> bytes:
        if code in self.responses:
            return self.responses[code]
        if code == _C.GET_SYSTEM_STATUS:
            status = bytes([self.mode]) + self.insulin_hundredths.to_bytes(4, "little", signed=True)
            return append_crc(status + bytes([self.battery]))
        if code == _C.GET_BOLUS_STATUS:
            return append_crc(self.bolus_status)
        if code in self.clock_payloads:
            return append_crc(self.clock_payloads[code])
        if code == _C.SETTING_VALUE:
            return glb_encode(self.settings.get(self.current_setting, -1))
        if code in HISTORY_COUNT_CODES:
            return self.count_noise + glb_encode(self.history_counts[HISTORY_COUNT_CODES[code]])
        if code in HISTORY_VALUE_CODES:
            index = self.current_index[HISTORY_VALUE_CODES[code]]
            if index in self.fail_value_reads:
                return b"\x00\x01"
            return append_crc(history_record(index))
        if code == _C.START_STOP_BOLUS:
            return bytes([1]) + (15).to_bytes(2, "little") + b"\x00"
        if code == _C.START_STOP_TBR:
            return bytes([1]) + (150).to_bytes(2, "little") + (30).to_bytes(2, "little")
        if code == _C.MASTER_SOFTWARE_VERSION:
            return b"V05.02.03\x00"
        return b"\x01\x02"


def expected_timestamp(index: int) -> int:
    return BASE_PUMP_SECONDS + index * 60 + PUMP_EPOCH_OFFSET
