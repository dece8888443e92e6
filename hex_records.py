#!/usr/bin/env python3
"""
Intel HEX32 (inhx32) record parser.

A record line looks like:

    :BBAAAATT[DD...]CC

    BB    byte count
    AAAA  16-bit load address
    TT    record type (00-05)
    DD    BB data bytes
    CC    checksum, chosen so every decoded byte on the line sums to 0 mod 256

parse_line() validates one line (prefix/length, checksum, declared length)
and returns a Record. Malformed lines raise a HexLineError subclass; the
caller reports them and moves on to the next line.
"""

from collections import namedtuple
from enum import IntEnum

# Character offsets of the fixed fields (after the ':' start code)
BB = 1
AAAA = 3
TT = 7
DATA = 9

# ':' + BB + AAAA + TT + CC
MIN_LINE_LENGTH = 11


class RecordType(IntEnum):
    DATA = 0x00
    EOF = 0x01
    EXTENDED_SEGMENT_ADDRESS = 0x02
    START_SEGMENT_ADDRESS = 0x03
    EXTENDED_LINEAR_ADDRESS = 0x04
    START_LINEAR_ADDRESS = 0x05
    UNKNOWN = -1


# kind: RecordType, type_code: raw TT byte, payload: bytes (len == byte_count)
Record = namedtuple('Record', ['kind', 'type_code', 'byte_count', 'address', 'payload'])


class HexLineError(ValueError):
    """A line that cannot be used as a record. Recoverable: skip the line."""


class BadFormat(HexLineError):
    pass


class ChecksumMismatch(HexLineError):
    def __init__(self, checksum):
        super().__init__(f"invalid checksum [{checksum}]")
        self.checksum = checksum


class LengthMismatch(HexLineError):
    pass


def hex_nibble(c):
    """Value of one hex digit, case-insensitive. Anything else is 0."""
    if '0' <= c <= '9':
        return ord(c) - ord('0')
    if 'a' <= c <= 'f':
        return ord(c) - ord('a') + 10
    if 'A' <= c <= 'F':
        return ord(c) - ord('A') + 10
    return 0


def hex_byte(line, pos):
    """Decode the two hex digits of line starting at pos."""
    if len(line) - pos > 1:
        return hex_nibble(line[pos]) << 4 | hex_nibble(line[pos + 1])
    return 0


def line_checksum(line):
    """Sum (mod 256) of every two-digit field after the start code."""
    total = 0
    for pos in range(1, len(line), 2):
        total += hex_byte(line, pos)
    return total & 0xFF


def record_kind(type_code):
    try:
        return RecordType(type_code)
    except ValueError:
        return RecordType.UNKNOWN


def parse_line(line):
    """Parse one record line (trailing CR/LF already stripped).

    Returns:
        Record

    Raises:
        BadFormat: missing ':' start code, even length or shorter than 11
        ChecksumMismatch: decoded bytes do not sum to 0 mod 256
        LengthMismatch: line length disagrees with the byte count field
    """
    if not line.startswith(':') or len(line) % 2 == 0 or len(line) < MIN_LINE_LENGTH:
        raise BadFormat(f"invalid format [{line}]")

    checksum = line_checksum(line)
    if checksum != 0:
        raise ChecksumMismatch(checksum)

    byte_count = hex_byte(line, BB)
    if len(line) != 2 * byte_count + MIN_LINE_LENGTH:
        raise LengthMismatch(f"invalid length [{line}]")

    address = hex_byte(line, AAAA) << 8 | hex_byte(line, AAAA + 2)
    type_code = hex_byte(line, TT)
    payload = bytes(hex_byte(line, DATA + 2 * n) for n in range(byte_count))

    return Record(record_kind(type_code), type_code, byte_count, address, payload)
