"""
Frame codec for the pack's UART protocol.

Frame layout (same shape in both directions):

    [command][control][length][payload ...][checksum hi][checksum lo]

The checksum is the 16-bit sum of every preceding byte, big-endian. ``control``
carries the accumulator for charger commands and the memory operation for memory
commands. A memory read request carries [address hi][address lo][read length] as
its payload. The pack also answers some requests with a bare two byte NAK
(0x82, code), which never decodes into a frame.

Bytes are bit-reversed on the wire; ``to_wire``/``from_wire`` convert.
"""

from dataclasses import dataclass

import constants
from errors import InvalidResponse

HEADER_SIZE = 3
CHECKSUM_SIZE = 2
MIN_FRAME_SIZE = HEADER_SIZE + CHECKSUM_SIZE


@dataclass(frozen=True)
class Frame:
    command: int
    control: int
    payload: bytes = b""

    @property
    def length(self):
        return len(self.payload)

    @property
    def address(self):
        # Only meaningful for memory requests
        if len(self.payload) < 2:
            return None
        return (self.payload[0] << 8) | self.payload[1]


def checksum(data):
    chksum = 0
    for byte in data:
        chksum += byte
    return chksum & 0xFFFF


def encode(command, control, payload=b""):
    payload = bytes(payload)
    if len(payload) > 0xFF:
        raise ValueError("Payload too long for a single frame: %d bytes" % len(payload))
    body = bytes([command & 0xFF, control & 0xFF, len(payload)]) + payload
    return body + checksum(body).to_bytes(CHECKSUM_SIZE, "big")


def encode_read(address, length, command=constants.MEM_CMD):
    return encode(command, constants.MEM_READ, bytes([(address >> 8) & 0xFF, address & 0xFF, length]))


def encode_write(address, value):
    return encode(constants.MEM_CMD, constants.MEM_WRITE, bytes([(address >> 8) & 0xFF, address & 0xFF, value]))


def decode(data):
    data = bytes(data)

    if len(data) >= 1 and data[0] == constants.NAK:
        raise InvalidResponse("Pack rejected request (NAK): " + hexdump(data))

    if len(data) < MIN_FRAME_SIZE:
        raise InvalidResponse("Frame too short (%d bytes): %s" % (len(data), hexdump(data)))

    length = data[2]
    payload = data[HEADER_SIZE:-CHECKSUM_SIZE]
    if length != len(payload):
        raise InvalidResponse("Length field %d does not match payload size %d: %s" % (length, len(payload), hexdump(data)))

    received = int.from_bytes(data[-CHECKSUM_SIZE:], "big")
    calculated = checksum(data[:-CHECKSUM_SIZE])
    if received != calculated:
        raise InvalidResponse("Checksum received: %04X does not match calculated: %04X" % (received, calculated))

    return Frame(data[0], data[1], payload)


def reverse_bits(byte):
    return int(f"{byte:08b}"[::-1], 2)


def to_wire(data):
    return bytes(reverse_bits(byte) for byte in data)


# Bit reversal is its own inverse
from_wire = to_wire


def hexdump(data):
    return " ".join(f"{byte:02X}" for byte in data)
