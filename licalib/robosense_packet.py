"""Layout of RoboSense RS-16 data packets."""

from __future__ import annotations

import struct
from dataclasses import dataclass

HEADER_SIZE = 42
PACKET_SIZE = 1248
SIZE_BLOCK = 100
RAW_SCAN_SIZE = 3
SCANS_PER_BLOCK = 32
BLOCK_DATA_SIZE = SCANS_PER_BLOCK * RAW_SCAN_SIZE
BLOCKS_PER_PACKET = 12
PACKET_STATUS_SIZE = 4
SCANS_PER_PACKET = SCANS_PER_BLOCK * BLOCKS_PER_PACKET

UPPER_BANK = 0xEEFF
LOWER_BANK = 0xDDFF

ROTATION_RESOLUTION = 0.01
ROTATION_MAX_UNITS = 36000

RS16_FIRINGS_PER_BLOCK = 2
RS16_SCANS_PER_FIRING = 16
RS16_BLOCK_TDURATION = 100.0
RS16_DSR_TOFFSET = 3.0
RS16_FIRING_TOFFSET = 50.0

RS32_FIRINGS_PER_BLOCK = 1
RS32_SCANS_PER_FIRING = 32
RS32_BLOCK_TDURATION = 50.0
RS32_DSR_TOFFSET = 3.0
RS32_FIRING_TOFFSET = 50.0

TEMPERATURE_BYTE_OFFSET = 38

_TIME_TABLE_FIRINGS = 2016
_TIME_TABLE_LASERS = 16

_BLOCK = struct.Struct(f"<HBB{BLOCK_DATA_SIZE}s")
_TAIL = struct.Struct(f"<H{PACKET_STATUS_SIZE}s")
_BODY_SIZE = BLOCKS_PER_PACKET * SIZE_BLOCK + _TAIL.size


@dataclass(frozen=True)
class RawBlock:
    """One data block: bank header, azimuth bytes and 32 three-byte returns."""

    header: int
    rotation_1: int
    rotation_2: int
    data: bytes

    @property
    def azimuth(self) -> int:
        """Azimuth in hundredths of a degree."""
        return 256 * self.rotation_1 + self.rotation_2

    @property
    def is_upper_bank(self) -> bool:
        return self.header == UPPER_BANK

    def channel(self, firing: int, dsr: int) -> tuple[int, int]:
        """Raw distance and intensity of laser ``dsr`` in the given firing."""
        if not 0 <= firing < RS16_FIRINGS_PER_BLOCK or not 0 <= dsr < RS16_SCANS_PER_FIRING:
            raise IndexError(f"no channel for firing {firing}, laser {dsr}")
        k = (firing * RS16_SCANS_PER_FIRING + dsr) * RAW_SCAN_SIZE
        distance = (self.data[k] << 8) | self.data[k + 1]
        return distance, self.data[k + 2]


@dataclass(frozen=True)
class RawPacket:
    """A whole data packet, as received including its 42-byte header."""

    blocks: tuple[RawBlock, ...]
    revolution: int
    status: bytes
    temperature_bytes: tuple[int, int]

    @classmethod
    def from_bytes(cls, data) -> "RawPacket":
        """Parse a packet; the block data starts after the 42-byte header."""
        data = bytes(data)
        if len(data) < HEADER_SIZE + _BODY_SIZE:
            raise ValueError(
                f"packet has {len(data)} bytes, at least {HEADER_SIZE + _BODY_SIZE} needed"
            )
        blocks = tuple(
            RawBlock(*_BLOCK.unpack_from(data, HEADER_SIZE + n * SIZE_BLOCK))
            for n in range(BLOCKS_PER_PACKET)
        )
        revolution, status = _TAIL.unpack_from(data, HEADER_SIZE + BLOCKS_PER_PACKET * SIZE_BLOCK)
        temp = (data[TEMPERATURE_BYTE_OFFSET], data[TEMPERATURE_BYTE_OFFSET + 1])
        return cls(blocks, revolution, status, temp)

    @property
    def temperature(self) -> float:
        return compute_temperature(*self.temperature_bytes)


def compute_temperature(bit1: int, bit2: int) -> float:
    """Temperature in degrees Celsius from the two status bytes."""
    negative = bit2 & 0x80
    high = bit2 & 0x7F
    low = bit1 >> 3
    value = (high * 32 + low) * 0.0625
    return -value if negative else value


def exact_time(dsr: int, firing: int) -> float:
    """Time offset of a return within a scan, in whole seconds.

    The timing table holds integers, so offsets below a second truncate to zero.
    """
    if not 0 <= dsr < _TIME_TABLE_LASERS or not 0 <= firing < _TIME_TABLE_FIRINGS:
        raise IndexError(f"no timing entry for laser {dsr}, firing {firing}")
    return float(int(dsr * 3.0 * 1e-6 + firing * 50.0 * 1e-6))