import os
import sys

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import constants
import frame
import registers
from config import Timing
from errors import Timeout

FAST_TIMING = dict(
    reset_break=0,
    reset_settle=0,
    reset_sync_delay=0,
    reset_retry_delay=0,
    response_settle=0,
    refresh_settle=0,
    keepalive_interval=0.5,
    configure_delay=0,
)


def fast_timing(**overrides) -> Timing:
    options = dict(FAST_TIMING)
    options.update(overrides)
    return Timing(**options)


class FakePack:
    """
    Byte-level stand-in for a pack behind a SerialLine.

    Requests arrive bit-reversed exactly as the session writes them; replies are
    queued bit-reversed and handed out by read() in whatever chunk sizes the
    session asks for.
    """

    def __init__(self, memory=None, responsive=True) -> None:
        self.memory = dict(memory or {})
        self.responsive = responsive
        self.sync_reply = constants.SYNC_BYTE
        self.requests = []
        self.power_history = []
        self.pulses = []
        self.nak_addresses = set()
        self.corrupt_addresses = set()
        self.dropped_keepalives = set()
        self.keepalive_count = 0
        self.closed = False
        self.pending = b""

    # Test helpers

    def set_register(self, register_id: int, raw: bytes) -> None:
        definition = registers.lookup(register_id)
        assert len(raw) == definition.length
        for i, byte in enumerate(raw):
            self.memory[definition.address + i] = byte

    def read_addresses(self):
        return [(r[3] << 8) | r[4] for r in self.requests
                if r[0] == constants.MEM_CMD and r[1] == constants.MEM_READ]

    def commands(self):
        return [r[0] for r in self.requests]

    # SerialLine interface

    def write(self, data: bytes) -> None:
        self.pending = b""
        request = frame.from_wire(data)
        self.requests.append(request)
        if not self.responsive:
            return
        reply = self._answer(request)
        if reply:
            self.pending = frame.to_wire(reply)

    def read(self, size: int, timeout=None) -> bytes:
        if not self.pending:
            raise Timeout("No response within 0.00s")
        data, self.pending = self.pending[:size], self.pending[size:]
        return data

    def set_power_line(self, high: bool) -> None:
        self.power_history.append(high)

    def pulse_power_line(self, duration: float) -> None:
        self.pulses.append(duration)
        self.power_history.extend([True, False])

    def close(self) -> None:
        self.closed = True

    # Device behaviour

    def _answer(self, request: bytes) -> bytes:
        if request == bytes([constants.SYNC_BYTE]):
            return bytes([self.sync_reply])

        command, control = request[0], request[1]

        if command == constants.MEM_CMD and control == constants.MEM_READ:
            address = (request[3] << 8) | request[4]
            length = request[5]
            if address in self.nak_addresses:
                return bytes([constants.NAK, 0x01])
            payload = bytes(self.memory.get(address + i, 0) for i in range(length))
            reply = bytearray(frame.encode(constants.READ_OK, constants.MEM_READ, payload))
            if address in self.corrupt_addresses:
                reply[-1] ^= 0xFF
            return bytes(reply)

        if command == constants.MEM_CMD and control == constants.MEM_WRITE:
            address = (request[3] << 8) | request[4]
            self.memory[address] = request[5]
            return bytes([constants.MEM_CMD, constants.MEM_WRITE])

        if command == constants.CONF_CMD:
            return frame.encode(command, control)

        if command == constants.SNAP_CMD:
            return frame.encode(command, control, b"\x00\x00\x00")

        if command == constants.KEEPALIVE_CMD:
            ordinal = self.keepalive_count
            self.keepalive_count += 1
            if ordinal in self.dropped_keepalives:
                return b""
            return frame.encode(command, control, b"\x00\x00\x00\x00")

        if command == constants.CAL_CMD:
            return frame.encode(command, control, b"\x00\x00\x00")

        return bytes([constants.NAK, 0x00])


class FakeClock:

    def __init__(self, interrupt_on_sleep=False) -> None:
        self.now = 0.0
        self.sleeps = []
        self.interrupt_on_sleep = interrupt_on_sleep

    def __call__(self) -> float:
        return self.now

    def sleep(self, duration: float) -> None:
        self.sleeps.append(duration)
        if self.interrupt_on_sleep and duration > 0:
            raise KeyboardInterrupt
        self.now += duration
