#!/usr/bin/env python3
"""
Byte-wise CRC-16 used by the SMB! image header.

Shift/XOR form of the 0x1021 polynomial: each byte is folded in with a
byte swap and three XOR steps instead of a bit loop. The step order is part
of the format; each step reads the value produced by the previous one.
"""

CRC_INIT = 0xFFFF


def update_crc(data, crc):
    """Fold one byte into a 16-bit CRC accumulator and return the new value."""
    crc = ((crc >> 8) & 0xFF) | ((crc << 8) & 0xFFFF)
    crc ^= data
    crc ^= (crc & 0xFF) >> 4
    crc ^= (crc << 12) & 0xFFFF
    crc ^= ((crc & 0xFF) << 5) & 0xFFFF
    return crc


def crc16(data, crc=CRC_INIT):
    """CRC-16 of an iterable of byte values (bytes, bytearray, uint8 array)."""
    for byte in data:
        crc = update_crc(int(byte), crc)
    return crc
