"""
Register catalog.

Every register the pack exposes through the memory read command, indexed by a
stable id (its position in the table). Addresses, lengths and kinds come from
protocol captures and are fixed; labels are descriptive only.
"""

from dataclasses import dataclass
from enum import Enum

from errors import UnknownRegister


class ValueKind(str, Enum):
    UINT = "uint"        # unsigned integer
    DATE = "date"        # UNIX time, seconds since 1 Jan 1970
    ASCII = "ascii"      # fixed width text
    SN = "sn"            # 2 bytes battery type, 3 bytes serial
    ADC_T = "adc_t"      # thermistor ADC reading
    DEC_T = "dec_t"      # degrees + 1/256 degrees
    CELL_V = "cell_v"    # five cell voltages in mV
    HHMMSS = "hhmmss"    # duration in seconds


UINT = ValueKind.UINT
DATE = ValueKind.DATE
ASCII = ValueKind.ASCII
SN = ValueKind.SN
ADC_T = ValueKind.ADC_T
DEC_T = ValueKind.DEC_T
CELL_V = ValueKind.CELL_V
HHMMSS = ValueKind.HHMMSS


@dataclass(frozen=True)
class RegisterDefinition:
    id: int
    address: int
    length: int
    kind: ValueKind
    label: str
    byteorder: str = "big"

    @property
    def address_hi(self):
        return (self.address >> 8) & 0xFF

    @property
    def address_lo(self):
        return self.address & 0xFF


# address, length, kind, label
_TABLE = [
    (0x0000, 2,   UINT,    "Cell type"),  # 0
    (0x0002, 2,   UINT,    "Unknown (always 0)"),
    (0x0004, 5,   SN,      "Capacity & Serial number (?)"),
    (0x000D, 4,   UINT,    "Unknown (4th code?)"),
    (0x0011, 4,   DATE,    "Manufacture date"),
    (0x0015, 4,   DATE,    "Date of first charge (Forge)"),
    (0x0019, 4,   DATE,    "Date of last charge (Forge)"),
    (0x0023, 20,  ASCII,   "Note (ascii string)"),
    (0x0037, 4,   DATE,    "Current date"),
    (0x0069, 2,   UINT,    "Unknown (always 2)"),
    (0x007B, 1,   UINT,    "Unknown (always 0)"),  # 10
    (0x4000, 4,   UINT,    "Unknown (Forge)"),
    (0x400A, 10,  CELL_V,  "Cell voltages (mV)"),
    (0x4014, 2,   ADC_T,   "Temperature (C) (non-Forge)"),
    (0x4016, 2,   UINT,    "Unknown (Forge)"),
    (0x4019, 2,   UINT,    "Unknown (Forge)"),
    (0x401B, 2,   UINT,    "Unknown (Forge)"),
    (0x401D, 2,   UINT,    "Unknown (Forge)"),
    (0x401F, 2,   DEC_T,   "Temperature (C) (Forge)"),
    (0x6000, 2,   UINT,    "Unknown (Forge)"),
    (0x6002, 2,   UINT,    "Unknown (Forge)"),  # 20
    (0x6004, 4,   UINT,    "Unknown (Forge)"),
    (0x6008, 4,   UINT,    "Unknown (Forge)"),
    (0x600C, 2,   UINT,    "Unknown (Forge)"),
    (0x9000, 4,   DATE,    "Date of first charge (rounded)"),
    (0x9004, 4,   DATE,    "Date of last tool use (rounded)"),
    (0x9008, 4,   DATE,    "Date of last charge (rounded)"),
    (0x900C, 4,   DATE,    "Unknown date (often zero)"),
    (0x9010, 2,   UINT,    "Days since first charge"),
    (0x9012, 4,   UINT,    "Total discharge (amp-sec)"),
    (0x9016, 4,   UINT,    "Total discharge (watt-sec or joules)"),  # 30
    (0x901A, 4,   UINT,    "Total charge count"),
    (0x901E, 2,   UINT,    "Dumb charge count (J2>7.1V for >=0.48s)"),
    (0x9020, 2,   UINT,    "Redlink (UART) charge count"),
    (0x9022, 2,   UINT,    "Completed charge count (?)"),
    (0x9024, 4,   HHMMSS,  "Total charging time (HH:MM:SS)"),
    (0x9028, 4,   HHMMSS,  "Time on charger whilst full (HH:MM:SS)"),
    (0x902C, 2,   UINT,    "Unknown (almost always 0)"),
    (0x902E, 2,   UINT,    "Charge started with a cell < 2.5V"),
    (0x9030, 2,   UINT,    "Discharge to empty"),
    (0x9032, 2,   UINT,    "Num. overheat on tool (must be > 10A)"),  # 40
    (0x9034, 2,   UINT,    "Overcurrent?"),
    (0x9036, 2,   UINT,    "Low voltage events"),
    (0x9038, 2,   UINT,    "Low-voltage bounce? (4 flashing LEDs)"),
    (0x903A, 2,   UINT,    "Discharge @ 10-20A (seconds)"),
    (0x903C, 2,   UINT,    "Discharge @ 20-30A (could be watts)"),
    (0x903E, 2,   UINT,    "Discharge @ 30-40A"),
    (0x9040, 2,   UINT,    "Discharge @ 40-50A"),
    (0x9042, 2,   UINT,    "Discharge @ 50-60A"),
    (0x9044, 2,   UINT,    "Discharge @ 60-70A"),
    (0x9046, 2,   UINT,    "Discharge @ 70-80A"),  # 50
    (0x9048, 2,   UINT,    "Discharge @ 80-90A"),
    (0x904A, 2,   UINT,    "Discharge @ 90-100A"),
    (0x904C, 2,   UINT,    "Discharge @ 100-110A"),
    (0x904E, 2,   UINT,    "Discharge @ 110-120A"),
    (0x9050, 2,   UINT,    "Discharge @ 120-130A"),
    (0x9052, 2,   UINT,    "Discharge @ 130-140A"),
    (0x9054, 2,   UINT,    "Discharge @ 140-150A"),
    (0x9056, 2,   UINT,    "Discharge @ 150-160A"),
    (0x9058, 2,   UINT,    "Discharge @ 160-170A"),
    (0x905A, 2,   UINT,    "Discharge @ 170-180A"),  # 60
    (0x905C, 2,   UINT,    "Discharge @ 180-190A"),
    (0x905E, 2,   UINT,    "Discharge @ 190-200A"),
    (0x9060, 2,   UINT,    "Discharge @ 200-210A"),
    (0x9062, 2,   UINT,    "Unknown (larger in lower Ah packs)"),
    (0x9064, 2,   UINT,    "Discharge @ 10-15A (seconds)"),
    (0x9066, 2,   UINT,    "Discharge @ 15-20A (could be watts)"),
    (0x9068, 2,   UINT,    "Discharge @ 20-25A"),
    (0x906A, 2,   UINT,    "Discharge @ 25-30A"),
    (0x906C, 2,   UINT,    "Discharge @ 30-35A"),
    (0x906E, 2,   UINT,    "Discharge @ 35-40A"),  # 70
    (0x9070, 2,   UINT,    "Discharge @ 40-45A"),
    (0x9072, 2,   UINT,    "Discharge @ 45-50A"),
    (0x9074, 2,   UINT,    "Discharge @ 50-55A"),
    (0x9076, 2,   UINT,    "Discharge @ 55-60A"),
    (0x9078, 2,   UINT,    "Discharge @ 60-65A"),
    (0x907A, 2,   UINT,    "Discharge @ 65-70A"),
    (0x907C, 2,   UINT,    "Discharge @ 70-75A"),
    (0x907E, 2,   UINT,    "Discharge @ 75-80A"),
    (0x9080, 2,   UINT,    "Discharge @ 80-85A"),
    (0x9082, 2,   UINT,    "Discharge @ 85-90A"),  # 80
    (0x9084, 2,   UINT,    "Discharge @ 90-95A"),
    (0x9086, 2,   UINT,    "Discharge @ 95-100A"),
    (0x9088, 2,   UINT,    "Discharge @ 100-105A"),
    (0x908A, 2,   UINT,    "Discharge @ 105-110A"),
    (0x908C, 2,   UINT,    "Discharge @ 110-115A"),
    (0x908E, 2,   UINT,    "Discharge @ 115-120A"),
    (0x9090, 2,   UINT,    "Discharge @ 120-125A"),
    (0x9092, 2,   UINT,    "Discharge @ 125-130A"),
    (0x9094, 2,   UINT,    "Discharge @ 130-135A"),
    (0x9096, 2,   UINT,    "Discharge @ 135-140A"),  # 90
    (0x9098, 2,   UINT,    "Discharge @ 140-145A"),
    (0x909A, 2,   UINT,    "Discharge @ 145-150A"),
    (0x909C, 2,   UINT,    "Discharge @ 150-155A"),
    (0x909E, 2,   UINT,    "Discharge @ 155-160A"),
    (0x90A0, 2,   UINT,    "Discharge @ 160-165A"),
    (0x90A2, 2,   UINT,    "Discharge @ 165-170A"),
    (0x90A4, 2,   UINT,    "Discharge @ 170-175A"),
    (0x90A6, 2,   UINT,    "Discharge @ 175-180A"),
    (0x90A8, 2,   UINT,    "Discharge @ 180-185A"),
    (0x90AA, 2,   UINT,    "Discharge @ 185-190A"),  # 100
    (0x90AC, 2,   UINT,    "Discharge @ 190-195A"),
    (0x90AE, 2,   UINT,    "Discharge @ 195-200A"),
    (0x90B0, 2,   UINT,    "Discharge @ 200A+"),
    (0x90B2, 2,   UINT,    "Charge started < 17V"),
    (0x90B4, 2,   UINT,    "Charge started 17-18V"),
    (0x90B6, 2,   UINT,    "Charge started 18-19V"),
    (0x90B8, 2,   UINT,    "Charge started 19-20V"),
    (0x90BA, 2,   UINT,    "Charge started 20V+"),
    (0x90BC, 2,   UINT,    "Charge ended < 17V"),
    (0x90BE, 2,   UINT,    "Charge ended 17-18V"),  # 110
    (0x90C0, 2,   UINT,    "Charge ended 18-19V"),
    (0x90C2, 2,   UINT,    "Charge ended 19-20V"),
    (0x90C4, 2,   UINT,    "Charge ended 20V+"),
    (0x90C6, 2,   UINT,    "Charge start temp -30C to -20C"),
    (0x90C8, 2,   UINT,    "Charge start temp -20C to -10C"),
    (0x90CA, 2,   UINT,    "Charge start temp -10C to 0C"),
    (0x90CC, 2,   UINT,    "Charge start temp 0C to +10C"),
    (0x90CE, 2,   UINT,    "Charge start temp +10C to +20C"),
    (0x90D0, 2,   UINT,    "Charge start temp +20C to +30C"),
    (0x90D2, 2,   UINT,    "Charge start temp +30C to +40C"),  # 120
    (0x90D4, 2,   UINT,    "Charge start temp +40C to +50C"),
    (0x90D6, 2,   UINT,    "Charge start temp +50C to +60C"),
    (0x90D8, 2,   UINT,    "Charge start temp +60C to +70C"),
    (0x90DA, 2,   UINT,    "Charge start temp +70C to +80C"),
    (0x90DC, 2,   UINT,    "Charge start temp +80C and over"),
    (0x90DE, 2,   UINT,    "Charge end temp -30C to -20C"),
    (0x90E0, 2,   UINT,    "Charge end temp -20C to -10C"),
    (0x90E2, 2,   UINT,    "Charge end temp -10C to 0C"),
    (0x90E4, 2,   UINT,    "Charge end temp 0C to +10C"),
    (0x90E6, 2,   UINT,    "Charge end temp +10C to +20C"),  # 130
    (0x90E8, 2,   UINT,    "Charge end temp +20C to +30C"),
    (0x90EA, 2,   UINT,    "Charge end temp +30C to +40C"),
    (0x90EC, 2,   UINT,    "Charge end temp +40C to +50C"),
    (0x90EE, 2,   UINT,    "Charge end temp +50C to +60C"),
    (0x90F0, 2,   UINT,    "Charge end temp +60C to +70C"),
    (0x90F2, 2,   UINT,    "Charge end temp +70C to +80C"),
    (0x90F4, 2,   UINT,    "Charge end temp +80C and over"),
    (0x90F6, 2,   UINT,    "Dumb charge time (00:00-14:33)"),
    (0x90F8, 2,   UINT,    "Dumb charge time (14:34-29:07)"),
    (0x90FA, 2,   UINT,    "Dumb charge time (29:08-43:41)"),  # 140
    (0x90FC, 2,   UINT,    "Dumb charge time (43:42-58:15)"),
    (0x90FE, 2,   UINT,    "Dumb charge time (58:16-1:12:49)"),
    (0x9100, 2,   UINT,    "Dumb charge time (1:12:50-1:27:23)"),
    (0x9102, 2,   UINT,    "Dumb charge time (1:27:24-1:41:57)"),
    (0x9104, 2,   UINT,    "Dumb charge time (1:41:58-1:56:31)"),
    (0x9106, 2,   UINT,    "Dumb charge time (1:56:32-2:11:05)"),
    (0x9108, 2,   UINT,    "Dumb charge time (2:11:06-2:25:39)"),
    (0x910A, 2,   UINT,    "Dumb charge time (2:25:40-2:40:13)"),
    (0x910C, 2,   UINT,    "Dumb charge time (2:40:14-2:54:47)"),
    (0x910E, 2,   UINT,    "Dumb charge time (2:54:48-3:09:21)"),  # 150
    (0x9110, 2,   UINT,    "Dumb charge time (3:09:22-3:23:55)"),
    (0x9112, 2,   UINT,    "Redlink charge time (00:00-17:03)"),
    (0x9114, 2,   UINT,    "Redlink charge time (17:04-34:07)"),
    (0x9116, 2,   UINT,    "Redlink charge time (34:08-51:11)"),
    (0x9118, 2,   UINT,    "Redlink charge time (51:12-1:08:15)"),
    (0x911A, 2,   UINT,    "Redlink charge time (1:08:16-1:25:19)"),
    (0x911C, 2,   UINT,    "Redlink charge time (1:25:20-1:42:23)"),
    (0x911E, 2,   UINT,    "Redlink charge time (1:42:24-1:59:27)"),
    (0x9120, 2,   UINT,    "Redlink charge time (1:59:28-2:16:31)"),
    (0x9122, 2,   UINT,    "Redlink charge time (2:16:32-2:33:35)"),  # 160
    (0x9124, 2,   UINT,    "Redlink charge time (2:33:36-2:50:39)"),
    (0x9126, 2,   UINT,    "Redlink charge time (2:50:40-3:07:43)"),
    (0x9128, 2,   UINT,    "Redlink charge time (3:07:44-3:24:47)"),
    (0x912A, 2,   UINT,    "Redlink charge time (3:24:48-3:41:51)"),
    (0x912C, 2,   UINT,    "Redlink charge time (3:41:52-3:58:55)"),
    (0x912E, 2,   UINT,    "Completed charge (?)"),
    (0x9130, 2,   UINT,    "Unknown"),
    (0x9132, 2,   UINT,    "Unknown"),
    (0x9134, 2,   UINT,    "Unknown"),
    (0x9136, 2,   UINT,    "Unknown"),  # 170
    (0x9138, 2,   UINT,    "Unknown"),
    (0x913A, 2,   UINT,    "Unknown"),
    (0x913C, 2,   UINT,    "Unknown"),
    (0x913E, 2,   UINT,    "Unknown"),
    (0x9140, 2,   UINT,    "Unknown"),
    (0x9142, 2,   UINT,    "Unknown"),
    (0x9144, 2,   UINT,    "Unknown"),
    (0x9146, 2,   UINT,    "Unknown"),
    (0x9148, 2,   UINT,    "Unknown (days of use?)"),
    (0x914A, 2,   UINT,    "Unknown"),  # 180
    (0x914C, 2,   UINT,    "Unknown"),
    (0x914E, 2,   UINT,    "Unknown"),
    (0x9150, 2,   UINT,    "Unknown"),
]

REGISTERS = tuple(RegisterDefinition(i, address, length, kind, label)
                  for i, (address, length, kind, label) in enumerate(_TABLE))

REGISTER_COUNT = len(REGISTERS)


# Contiguous blocks as the pack stores them: (address, length).
# Reading these refreshes the 0x9000 RAM statistics before individual reads.
MEMORY_REGIONS = [
    (0x0000, 0x02),
    (0x0002, 0x02),
    (0x0004, 0x05),
    (0x000D, 0x04),
    (0x0011, 0x04),
    (0x0015, 0x04),
    (0x0019, 0x04),
    (0x0023, 0x14),
    (0x0037, 0x04),
    (0x0069, 0x02),
    (0x007B, 0x01),
    (0x4000, 0x04),
    (0x400A, 0x0A),
    (0x4014, 0x02),
    (0x4016, 0x02),
    (0x4019, 0x02),
    (0x401B, 0x02),
    (0x401D, 0x02),
    (0x401F, 0x02),
    (0x6000, 0x02),
    (0x6002, 0x02),
    (0x6004, 0x04),
    (0x6008, 0x04),
    (0x600C, 0x02),
    (0x9000, 0x3A),     # 338 byte RAM chunk, read 58 bytes at a time
    (0x903A, 0x3A),
    (0x9074, 0x3A),
    (0x90AE, 0x3A),
    (0x90E8, 0x3A),
    (0x9122, 0x30),     # last 48 bytes
    (0x9152, 0x00),     # always empty, marks the end of the RAM chunk
    (0xA000, 0x06),
]


def lookup(register_id):
    # bool is an int subclass but never a valid id
    if isinstance(register_id, bool) or not isinstance(register_id, int):
        raise UnknownRegister(register_id)
    if register_id < 0 or register_id >= REGISTER_COUNT:
        raise UnknownRegister(register_id)
    return REGISTERS[register_id]
