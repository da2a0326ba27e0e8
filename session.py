"""
Session controller for one pack on one serial line.

A session starts UNRESPONSIVE. ``reset()`` runs the wake-up handshake and makes
it ACTIVE; idling the power line or any failed exchange drops it back to
UNRESPONSIVE, and the next device operation re-handshakes on its own.
``close()`` releases the line for good (DISCONNECTED).

Only one command is ever in flight: every operation sends a frame and reads
the complete reply before returning.
"""

import contextlib
import enum
import logging
import struct
import time

import constants
import frame
import registers
import values
from cache import RegisterCache
from config import Timing
from errors import (EmptyResponse, InvalidResponse, M18Error, MessageTooLong,
                    RegisterReadError, Timeout, TransportFailure)
from transport import SerialLine

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    UNRESPONSIVE = "unresponsive"
    ACTIVE = "active"


class Session:

    def __init__(self, line, timing=None, print_tx=False, print_rx=False):
        self.line = line
        self.timing = timing or Timing()
        self.print_tx = print_tx
        self.print_rx = print_rx
        self.cache = RegisterCache()
        self.acc = constants.INITIAL_ACC
        self._state = SessionState.UNRESPONSIVE

    @classmethod
    def open(cls, port, timeout=constants.READ_TIMEOUT, **kwargs):
        return cls(SerialLine(port, timeout=timeout), **kwargs)

    @property
    def state(self):
        return self._state

    def set_debug_print(self, tx, rx):
        self.print_tx = tx
        self.print_rx = rx

    def close(self):
        if self._state is SessionState.DISCONNECTED:
            return
        try:
            self.line.close()
        finally:
            self._state = SessionState.DISCONNECTED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Handshake

    def reset(self):
        """
        Wake the pack and synchronise with it.

        Holds the power line low, raises it, then sends the sync byte and waits
        for it to be echoed. Retried up to ``timing.reset_retries`` times; the
        last error is raised when every attempt fails (``Timeout`` if the pack
        stayed silent, ``InvalidResponse`` if it answered with something else).
        """
        self._require_open()
        attempts = max(1, self.timing.reset_retries)
        error = None

        for attempt in range(1, attempts + 1):
            try:
                self._handshake()
            except (EmptyResponse, InvalidResponse) as e:
                error = e
                logger.warning("Handshake attempt %d/%d failed: %s", attempt, attempts, e)
            except TransportFailure:
                self._state = SessionState.UNRESPONSIVE
                raise
            else:
                self._state = SessionState.ACTIVE
                return True

            if attempt < attempts:
                time.sleep(self.timing.reset_retry_delay)

        self._state = SessionState.UNRESPONSIVE
        raise error

    def _handshake(self):
        self.acc = constants.INITIAL_ACC
        self.line.set_power_line(False)
        time.sleep(self.timing.reset_break)
        self.line.set_power_line(True)
        time.sleep(self.timing.reset_settle)

        self._send(bytes([constants.SYNC_BYTE]))
        response = frame.from_wire(self.line.read(1))
        if self.print_rx:
            logger.debug("Received: %s", frame.hexdump(response))
        if response[0] != constants.SYNC_BYTE:
            raise InvalidResponse("Unexpected handshake reply: " + frame.hexdump(response))
        time.sleep(self.timing.reset_sync_delay)

    # Low level exchange

    def _update_acc(self):
        index = constants.ACC_VALUES.index(self.acc) if self.acc in constants.ACC_VALUES else 0
        self.acc = constants.ACC_VALUES[(index + 1) % len(constants.ACC_VALUES)]

    def _send(self, data):
        if self.print_tx:
            logger.debug("Sending:  %s", frame.hexdump(data))
        self.line.write(frame.to_wire(data))

    def _receive(self, size):
        response = frame.from_wire(self.line.read(1))

        # A NAK is only ever two bytes long
        if response[0] == constants.NAK:
            remaining = 1
        else:
            remaining = size - 1

        if remaining > 0:
            try:
                response += frame.from_wire(self.line.read(remaining))
            except Timeout:
                logger.debug("Reply truncated after %d byte(s)", len(response))

        if self.print_rx:
            logger.debug("Received: %s", frame.hexdump(response))

        time.sleep(self.timing.response_settle)
        return response

    def _transact(self, request, response_size, rotate_acc=False):
        self._send(request)
        if rotate_acc:
            self._update_acc()
        return frame.decode(self._receive(response_size))

    def _require_open(self):
        if self._state is SessionState.DISCONNECTED:
            raise TransportFailure("Session is closed")

    @contextlib.contextmanager
    def _active(self, implicit_reset=True):
        self._require_open()
        if self._state is SessionState.UNRESPONSIVE and implicit_reset:
            logger.debug("Pack not active, resetting first")
            self.reset()
        try:
            yield
        except M18Error:
            self._state = SessionState.UNRESPONSIVE
            raise
        self._state = SessionState.ACTIVE

    def _read_memory(self, address, length):
        response = self._transact(frame.encode_read(address, length),
                                  length + frame.MIN_FRAME_SIZE)
        if response.command != constants.READ_OK:
            raise InvalidResponse("Read of 0x%04X answered with status 0x%02X" % (address, response.command))
        if response.length != length:
            raise InvalidResponse("Read of 0x%04X returned %d bytes, expected %d" % (address, response.length, length))
        return response.payload

    def _write_memory(self, address, value):
        self._send(frame.encode_write(address, value))
        response = self._receive(constants.WRITE_RESPONSE_SIZE)
        if response[0] == constants.NAK:
            raise InvalidResponse("Write to 0x%04X rejected: %s" % (address, frame.hexdump(response)))
        if len(response) < constants.WRITE_RESPONSE_SIZE:
            raise InvalidResponse("Write to 0x%04X got a short reply: %s" % (address, frame.hexdump(response)))

    # Charger commands

    def configure(self, state):
        payload = struct.pack(">HHHBB", constants.CUTOFF_CURRENT, constants.MAX_CURRENT,
                              constants.MAX_CURRENT, state, constants.CONF_TRAILER)
        with self._active():
            response = self._transact(frame.encode(constants.CONF_CMD, self.acc, payload),
                                      constants.CONF_RESPONSE_SIZE, rotate_acc=True)
        return response.payload

    def get_snapshot(self):
        with self._active():
            response = self._transact(frame.encode(constants.SNAP_CMD, self.acc),
                                      constants.SNAP_RESPONSE_SIZE, rotate_acc=True)
        return response.payload

    def keepalive(self, implicit_reset=True):
        with self._active(implicit_reset):
            response = self._transact(frame.encode(constants.KEEPALIVE_CMD, self.acc),
                                      constants.KEEPALIVE_RESPONSE_SIZE)
        return response.payload

    def calibrate(self):
        with self._active():
            response = self._transact(frame.encode(constants.CAL_CMD, self.acc),
                                      constants.CAL_RESPONSE_SIZE, rotate_acc=True)
        return response.payload

    def send_custom_command(self, command, address_hi, address_lo, length):
        """Raw memory style request outside the catalog, for exploring the protocol."""
        request = frame.encode(command, constants.MEM_READ, bytes([address_hi, address_lo, length]))
        with self._active():
            response = self._transact(request, length + frame.MIN_FRAME_SIZE)
        return response.payload

    # Registers

    def read_registers(self, register_ids, force_refresh=False):
        """
        Read and decode registers by id, in the order given.

        Cached values are returned without touching the pack unless
        ``force_refresh`` is set, in which case the pack's statistics are
        refreshed first and every id is read again. The first failure aborts
        the batch with ``RegisterReadError`` carrying the failing index.
        """
        definitions = [registers.lookup(register_id) for register_id in register_ids]
        results = []
        touched = False

        try:
            if force_refresh and definitions:
                touched = True
                self._refresh()

            for index, definition in enumerate(definitions):
                cached = None if force_refresh else self.cache.get(definition.id)
                if cached is None:
                    touched = True
                    try:
                        with self._active():
                            raw = self._read_memory(definition.address, definition.length)
                        value = values.decode(definition, raw)
                    except M18Error as e:
                        raise RegisterReadError(index, definition.id, e) from e
                    cached = self.cache.put(definition.id, value)
                results.append((definition.id, cached.value))
        finally:
            if touched and self._state is not SessionState.DISCONNECTED:
                self.idle()

        return results

    def read_all_registers(self, force_refresh=False):
        return self.read_registers(range(registers.REGISTER_COUNT), force_refresh)

    def _refresh(self):
        # Reading every region makes the pack update its 0x9000 statistics
        with self._active():
            for address, length in registers.MEMORY_REGIONS:
                try:
                    self._read_memory(address, length)
                except InvalidResponse as e:
                    logger.debug("Priming read of 0x%04X failed: %s", address, e)
        self.idle()
        time.sleep(self.timing.refresh_settle)
        self.reset()

    def read_all_raw(self):
        results = []
        try:
            with self._active():
                for address, length in registers.MEMORY_REGIONS:
                    results.append((address, self._read_memory(address, length)))
        finally:
            if self._state is not SessionState.DISCONNECTED:
                self.idle()
        return results

    def write_message(self, message):
        data = message.encode("utf-8")
        if len(data) > constants.MESSAGE_MAX_LENGTH:
            raise MessageTooLong(len(data), constants.MESSAGE_MAX_LENGTH)

        logger.info('Writing "%s" to memory', message)
        data = data.ljust(constants.MESSAGE_MAX_LENGTH, constants.MESSAGE_PAD)
        try:
            with self._active():
                for i, byte in enumerate(data):
                    self._write_memory(constants.MESSAGE_ADDRESS + i, byte)
        finally:
            if self._state is not SessionState.DISCONNECTED:
                self.idle()

    # Power line

    def idle(self):
        self._require_open()
        self.line.set_power_line(False)
        self._state = SessionState.UNRESPONSIVE

    def high(self):
        self._require_open()
        self.line.set_power_line(True)

    def high_for(self, duration):
        self._require_open()
        self.line.pulse_power_line(duration)
        self._state = SessionState.UNRESPONSIVE
