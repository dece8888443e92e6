#!/usr/bin/env python3
"""
Serialize a memory image window as an SMB! programmer image.

Header sector (512 bytes, little-endian fields):

    0-3    b"SMB!"
    4-5    CRC-16 of the 8 KB starting at lo (fixed size, independent of length)
    6-7    CRC-16 of the image data
    8-9    image length, low 16 bits only
    10-511 zero

followed by the image data: memory from lo, rounded up to a whole sector.
Raw mode writes the image data alone.
"""

import struct

from crc16 import CRC_INIT, crc16

MAGIC = b'SMB!'
SECTOR_SIZE = 512
HEADER_CRC_WINDOW = 0x2000      # 8 KB
HEADER_FORMAT = '<4sHHH'


def round_up(length, size=SECTOR_SIZE):
    return (length + size - 1) // size * size


def image_length(image, lo):
    """Length of the data written for image, from lo to the last byte, sector padded."""
    return round_up(image.last_address - lo)


def header_checksums(image, lo, length):
    """(header_crc, data_crc) as written in the header sector."""
    header_crc = crc16(image.window(lo, HEADER_CRC_WINDOW), CRC_INIT)
    data_crc = crc16(image.window(lo, length), CRC_INIT)
    return header_crc, data_crc


def build_header(image, lo, length):
    header_crc, data_crc = header_checksums(image, lo, length)
    if length > 0xFFFF:
        # The length field is 16 bits wide; keep the format and say so.
        print(f"warning: image length 0x{length:x} does not fit the header "
              f"length field, writing 0x{length & 0xFFFF:04x}")
    header = struct.pack(HEADER_FORMAT, MAGIC, header_crc, data_crc, length & 0xFFFF)
    return header.ljust(SECTOR_SIZE, b'\x00')


def encode_image(image, lo, with_header=True):
    """Encode image from lo as bytes, with or without the header sector."""
    length = image_length(image, lo)
    data = image.window(lo, length)
    if with_header:
        return build_header(image, lo, length) + data
    return data
