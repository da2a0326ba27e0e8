import os
import struct
import sys
import unittest

sys.path.insert(0, os.path.dirname(__file__))

from fakes import FakePack, fast_timing

import constants
import frame
import registers
from errors import (EmptyResponse, InvalidResponse, MessageTooLong, RegisterReadError,
                    Timeout, TransportFailure, UnknownRegister)
from session import Session, SessionState
from values import CellVoltagesValue, UIntValue

CELLS = (4024, 4025, 4023, 4024, 4025)


def make_session(pack=None, **timing):
    pack = pack or FakePack()
    return Session(pack, timing=fast_timing(**timing)), pack


class ResetTests(unittest.TestCase):
    def test_reset_handshake(self) -> None:
        session, pack = make_session()
        self.assertEqual(session.state, SessionState.UNRESPONSIVE)

        self.assertTrue(session.reset())

        self.assertEqual(session.state, SessionState.ACTIVE)
        self.assertEqual(pack.requests, [bytes([constants.SYNC_BYTE])])
        self.assertEqual(pack.power_history, [False, True])
        self.assertEqual(session.acc, constants.INITIAL_ACC)

    def test_silent_pack_times_out_after_retries(self) -> None:
        session, pack = make_session(FakePack(responsive=False))

        with self.assertRaises(Timeout) as ctx:
            session.reset()

        self.assertIsInstance(ctx.exception, EmptyResponse)
        self.assertEqual(len(pack.requests), constants.RESET_RETRIES)
        self.assertEqual(session.state, SessionState.UNRESPONSIVE)

    def test_wrong_echo_fails_after_retries(self) -> None:
        pack = FakePack()
        pack.sync_reply = 0x55
        session, _ = make_session(pack)

        with self.assertRaises(InvalidResponse):
            session.reset()

        self.assertEqual(len(pack.requests), constants.RESET_RETRIES)
        self.assertTrue(all(r == bytes([constants.SYNC_BYTE]) for r in pack.requests))
        self.assertEqual(session.state, SessionState.UNRESPONSIVE)

    def test_wrong_echo_blocks_implicit_reset(self) -> None:
        pack = FakePack()
        pack.sync_reply = 0x00
        session, _ = make_session(pack)

        with self.assertRaises(InvalidResponse):
            session.keepalive()

        self.assertNotIn(constants.KEEPALIVE_CMD, pack.commands())
        self.assertEqual(session.state, SessionState.UNRESPONSIVE)

    def test_closed_session(self) -> None:
        session, pack = make_session()
        with session:
            pass
        self.assertTrue(pack.closed)
        self.assertEqual(session.state, SessionState.DISCONNECTED)
        with self.assertRaises(TransportFailure):
            session.reset()
        with self.assertRaises(TransportFailure):
            session.keepalive()
        self.assertEqual(pack.requests, [])


class ChargerCommandTests(unittest.TestCase):
    def test_configure_frame(self) -> None:
        session, pack = make_session()
        session.configure(constants.CHARGE_STATE_INIT)

        payload = struct.pack(">HHHBB", 300, 6000, 6000, 2, 13)
        self.assertEqual(pack.requests[0], bytes([constants.SYNC_BYTE]))
        self.assertEqual(pack.requests[1], frame.encode(constants.CONF_CMD, 0x04, payload))

    def test_accumulator_sequence(self) -> None:
        session, pack = make_session()
        session.reset()
        session.configure(constants.CHARGE_STATE_INIT)
        session.get_snapshot()
        session.keepalive()
        session.keepalive()
        session.calibrate()

        controls = [request[1] for request in pack.requests[1:]]
        self.assertEqual(controls, [0x04, 0x0C, 0x1C, 0x1C, 0x1C])
        self.assertEqual(session.acc, 0x04)

    def test_implicit_reset(self) -> None:
        session, pack = make_session()
        payload = session.keepalive()
        self.assertEqual(len(payload), 4)
        self.assertEqual(pack.commands(), [constants.SYNC_BYTE, constants.KEEPALIVE_CMD])
        self.assertEqual(session.state, SessionState.ACTIVE)

    def test_keepalive_without_reply(self) -> None:
        pack = FakePack()
        pack.dropped_keepalives = {0}
        session, pack = make_session(pack)
        with self.assertRaises(Timeout):
            session.keepalive()
        self.assertEqual(session.state, SessionState.UNRESPONSIVE)

    def test_keepalive_without_implicit_reset(self) -> None:
        session, pack = make_session()
        session.keepalive(implicit_reset=False)
        self.assertEqual(pack.commands(), [constants.KEEPALIVE_CMD])
        self.assertEqual(session.state, SessionState.ACTIVE)

    def test_custom_command(self) -> None:
        pack = FakePack()
        pack.set_register(12, struct.pack(">5H", *CELLS))
        session, pack = make_session(pack)

        payload = session.send_custom_command(constants.MEM_CMD, 0x40, 0x0A, 10)

        self.assertEqual(payload, struct.pack(">5H", *CELLS))
        self.assertEqual(pack.requests[-1][:6], bytes([0x01, 0x04, 0x03, 0x40, 0x0A, 0x0A]))


class ReadRegistersTests(unittest.TestCase):
    def setUp(self) -> None:
        pack = FakePack()
        pack.set_register(12, struct.pack(">5H", *CELLS))
        pack.set_register(28, (123).to_bytes(2, "big"))
        pack.set_register(31, (77).to_bytes(4, "big"))
        self.session, self.pack = make_session(pack)

    def test_read_decodes_in_order(self) -> None:
        results = self.session.read_registers([28, 12])
        self.assertEqual(results, [(28, UIntValue(123)), (12, CellVoltagesValue(CELLS))])

    def test_line_idled_after_read(self) -> None:
        self.session.read_registers([28])
        self.assertEqual(self.session.state, SessionState.UNRESPONSIVE)
        self.assertFalse(self.pack.power_history[-1])

    def test_cached_read_sends_nothing(self) -> None:
        first = self.session.read_registers([12, 28])
        traffic = len(self.pack.requests)

        second = self.session.read_registers([12, 28])

        self.assertEqual(first, second)
        self.assertEqual(len(self.pack.requests), traffic)
        self.assertIn(12, self.session.cache)

    def test_forced_refresh_rereads(self) -> None:
        self.session.read_registers([28])
        self.pack.set_register(28, (124).to_bytes(2, "big"))

        self.assertEqual(self.session.read_registers([28]), [(28, UIntValue(123))])
        results = self.session.read_registers([28], force_refresh=True)

        self.assertEqual(results, [(28, UIntValue(124))])
        self.assertEqual(self.session.cache.get(28).value, UIntValue(124))

    def test_forced_refresh_primes_every_region(self) -> None:
        self.session.read_registers([28], force_refresh=True)

        addresses = self.pack.read_addresses()
        region_addresses = [address for address, _ in registers.MEMORY_REGIONS]
        self.assertEqual(addresses[:len(region_addresses)], region_addresses)
        self.assertEqual(addresses[-1], registers.lookup(28).address)
        self.assertEqual(self.pack.commands().count(constants.SYNC_BYTE), 2)

    def test_refresh_tolerates_rejected_regions(self) -> None:
        self.pack.nak_addresses.add(0xA000)
        results = self.session.read_registers([28], force_refresh=True)
        self.assertEqual(results, [(28, UIntValue(123))])

    def test_unknown_register_sends_nothing(self) -> None:
        with self.assertRaises(UnknownRegister):
            self.session.read_registers([12, 184])
        self.assertEqual(self.pack.requests, [])

    def test_batch_fails_fast(self) -> None:
        self.pack.nak_addresses.add(registers.lookup(28).address)

        with self.assertRaises(RegisterReadError) as ctx:
            self.session.read_registers([12, 28, 31])

        self.assertEqual(ctx.exception.index, 1)
        self.assertEqual(ctx.exception.register_id, 28)
        self.assertIsInstance(ctx.exception.__cause__, InvalidResponse)
        self.assertNotIn(registers.lookup(31).address, self.pack.read_addresses())
        self.assertIn(12, self.session.cache)
        self.assertNotIn(28, self.session.cache)

    def test_corrupt_reply(self) -> None:
        self.pack.corrupt_addresses.add(registers.lookup(12).address)
        with self.assertRaises(RegisterReadError) as ctx:
            self.session.read_registers([12])
        self.assertIsInstance(ctx.exception.error, InvalidResponse)
        self.assertFalse(self.pack.power_history[-1])

    def test_read_all_registers(self) -> None:
        results = self.session.read_all_registers()
        self.assertEqual([register_id for register_id, _ in results], list(range(registers.REGISTER_COUNT)))
        self.assertEqual(dict(results)[12], CellVoltagesValue(CELLS))

    def test_read_all_raw(self) -> None:
        dump = self.session.read_all_raw()
        self.assertEqual([address for address, _ in dump], [a for a, _ in registers.MEMORY_REGIONS])
        self.assertEqual(dict(dump)[0x400A], struct.pack(">5H", *CELLS))
        self.assertEqual(self.session.state, SessionState.UNRESPONSIVE)


class WriteMessageTests(unittest.TestCase):
    def test_write_message_pads(self) -> None:
        session, pack = make_session()
        session.write_message("hello")

        written = bytes(pack.memory[constants.MESSAGE_ADDRESS + i] for i in range(20))
        self.assertEqual(written, b"hello" + b"-" * 15)
        self.assertEqual(session.read_registers([7])[0][1].value, "hello" + "-" * 15)

    def test_message_too_long(self) -> None:
        session, pack = make_session()
        with self.assertRaises(MessageTooLong):
            session.write_message("x" * 21)
        self.assertEqual(pack.requests, [])

    def test_message_at_limit(self) -> None:
        session, pack = make_session()
        session.write_message("y" * 20)
        writes = [r for r in pack.requests if r[:2] == bytes([constants.MEM_CMD, constants.MEM_WRITE])]
        self.assertEqual(len(writes), 20)


class PowerLineTests(unittest.TestCase):
    def test_high_and_idle(self) -> None:
        session, pack = make_session()
        session.high()
        session.idle()
        self.assertEqual(pack.power_history, [True, False])
        self.assertEqual(session.state, SessionState.UNRESPONSIVE)

    def test_high_for(self) -> None:
        session, pack = make_session()
        session.high_for(0.25)
        self.assertEqual(pack.pulses, [0.25])
        self.assertFalse(pack.power_history[-1])


if __name__ == "__main__":
    unittest.main()
