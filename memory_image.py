#!/usr/bin/env python3
"""
Fold Intel HEX records into a 64 KB memory image.

The image starts out as erased flash (all 0xFF). Data records whose absolute
address (extended linear base | 16-bit address) falls inside the window
[lo, hi) are copied in, in file order, so later records overwrite earlier
ones. A record is kept whole once its start address is in the window; only
a tail past the end of memory is dropped. Everything else is reported and
skipped. The fold stops at the first EOF record.
"""

import numpy as np

from hex_records import HexLineError, RecordType, parse_line

MEMORY_SIZE = 0x10000   # 65536 bytes (64 KB)
FILL_BYTE = 0xFF        # erased flash


class NoDataRecords(Exception):
    """No data record landed inside the address window."""


class MemoryImage:
    """Per-conversion memory buffer plus the bounds of the data written to it."""

    def __init__(self):
        self.data = np.full(MEMORY_SIZE, FILL_BYTE, dtype=np.uint8)
        self.extended_base = 0
        self.first_address = MEMORY_SIZE    # sentinel: nothing written yet
        self.last_address = 0               # exclusive
        self.record_count = 0

    def resolve(self, address):
        """Absolute address of a record's 16-bit address field."""
        return self.extended_base | address

    def write(self, address, payload):
        self.data[address:address + len(payload)] = np.frombuffer(payload, dtype=np.uint8)
        self.first_address = min(self.first_address, address)
        self.last_address = max(self.last_address, address + len(payload))
        self.record_count += 1

    def window(self, start, length):
        """Copy of length bytes from start; bytes past the end of memory read as fill."""
        chunk = self.data[start:start + length].tobytes()
        return chunk + bytes([FILL_BYTE]) * (length - len(chunk))


def check_window(lo, hi):
    if not 0 <= lo < hi <= MEMORY_SIZE:
        raise ValueError(f"invalid address window lo=0x{lo:x}, hi=0x{hi:x} "
                         f"(need 0 <= lo < hi <= 0x{MEMORY_SIZE:x})")


def apply_data(image, record, lo, hi):
    if record.byte_count == 0:
        print("warning: ignoring empty line")
        return

    address = image.resolve(record.address)
    if address < lo or address >= hi:
        print(f"info: ignoring out-of-range data @ {address:04x}")
        return

    payload = record.payload
    if address + len(payload) > MEMORY_SIZE:
        print(f"info: clipping data @ {address:04x} at end of memory "
              f"({address + len(payload) - MEMORY_SIZE} bytes dropped)")
        payload = payload[:MEMORY_SIZE - address]

    image.write(address, payload)


def apply_extended_linear_address(image, record):
    if record.address == 0 and record.byte_count == 2:
        image.extended_base = record.payload[0] << 24 | record.payload[1] << 16
    else:
        print(f"warning: ignoring invalid extended linear address "
              f"[aaaa={record.address:04x}, bb={record.byte_count}]")


def apply_record(image, record, lo, hi):
    """Apply one parsed record to the image.

    Args:
        image: MemoryImage being built
        record: hex_records.Record
        lo, hi: address window, data outside [lo, hi) is discarded
    """
    kind = record.kind
    if kind == RecordType.DATA:
        apply_data(image, record, lo, hi)
    elif kind == RecordType.EOF:
        pass
    elif kind == RecordType.EXTENDED_SEGMENT_ADDRESS:
        print("warning: ignoring unhandled extended segment address")
    elif kind == RecordType.START_SEGMENT_ADDRESS:
        print("warning: ignoring unhandled start segment address")
    elif kind == RecordType.EXTENDED_LINEAR_ADDRESS:
        apply_extended_linear_address(image, record)
    elif kind == RecordType.START_LINEAR_ADDRESS:
        print("warning: ignoring unhandled start linear address")
    elif kind == RecordType.UNKNOWN:
        print(f"warning: ignoring unknown record type [{record.type_code}]")


def load_hex(lines, lo, hi, name='<input>'):
    """Build a MemoryImage from Intel HEX lines.

    Args:
        lines: iterable of str or bytes lines (e.g. an open file)
        lo, hi: address window [lo, hi)
        name: source name used in diagnostics

    Returns:
        MemoryImage with at least one data record applied

    Raises:
        ValueError: the window is not inside 64 KB memory
        NoDataRecords: no data record was accepted
    """
    check_window(lo, hi)
    image = MemoryImage()

    for line in lines:
        if isinstance(line, bytes):
            line = line.decode('latin-1')
        line = line.rstrip('\r\n')

        try:
            record = parse_line(line)
        except HexLineError as e:
            print(f"warning: ignoring malformed line: {e}")
            continue

        apply_record(image, record, lo, hi)
        if record.kind == RecordType.EOF:
            break

    if image.record_count == 0:
        raise NoDataRecords(f"file contains no data records [{name}]")

    print_summary(image, lo, hi)
    return image


def print_summary(image, lo, hi):
    total_bytes = image.last_address - lo
    print(f"Decoded {image.first_address:08x} -> {image.last_address:08x}")
    print(f"Program bytes = {total_bytes:08x} or {(total_bytes + 1023) // 1024}KB")
    print(f"lo = 0x{lo:x}, hi = 0x{hi:x}")
