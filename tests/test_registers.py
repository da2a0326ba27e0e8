import os
import sys
import unittest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import registers
from errors import UnknownRegister

FIXED_LENGTHS = {
    registers.DATE: 4,
    registers.HHMMSS: 4,
    registers.SN: 5,
    registers.CELL_V: 10,
    registers.ADC_T: 2,
    registers.DEC_T: 2,
}


class CatalogTests(unittest.TestCase):
    def test_catalog_size_and_ids(self) -> None:
        self.assertEqual(registers.REGISTER_COUNT, 184)
        for index, definition in enumerate(registers.REGISTERS):
            self.assertEqual(definition.id, index)

    def test_lengths_match_kinds(self) -> None:
        for definition in registers.REGISTERS:
            self.assertTrue(1 <= definition.length <= 20, definition)
            if definition.kind in FIXED_LENGTHS:
                self.assertEqual(definition.length, FIXED_LENGTHS[definition.kind], definition)

    def test_all_big_endian(self) -> None:
        self.assertEqual({d.byteorder for d in registers.REGISTERS}, {"big"})

    def test_well_known_entries(self) -> None:
        cells = registers.lookup(12)
        self.assertEqual((cells.address, cells.length, cells.kind), (0x400A, 10, registers.CELL_V))
        self.assertEqual((cells.address_hi, cells.address_lo), (0x40, 0x0A))

        note = registers.lookup(7)
        self.assertEqual((note.address, note.length, note.kind), (0x0023, 20, registers.ASCII))

        serial = registers.lookup(2)
        self.assertEqual((serial.address, serial.kind), (0x0004, registers.SN))

    def test_lookup_rejects_invalid_ids(self) -> None:
        for register_id in (-1, 184, 1000, "12", 1.0, None, True):
            with self.assertRaises(UnknownRegister):
                registers.lookup(register_id)

    def test_unknown_register_is_lookup_error(self) -> None:
        with self.assertRaises(LookupError) as ctx:
            registers.lookup(999)
        self.assertEqual(ctx.exception.register_id, 999)

    def test_memory_regions(self) -> None:
        self.assertEqual(len(registers.MEMORY_REGIONS), 32)
        self.assertIn((0x9152, 0x00), registers.MEMORY_REGIONS)
        for address, length in registers.MEMORY_REGIONS:
            self.assertTrue(0 <= length <= 0x3A)


if __name__ == "__main__":
    unittest.main()
