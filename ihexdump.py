#!/usr/bin/env python3
"""
Convert an Intel HEX32 firmware file into a programmer binary.

    ihexdump firmware.hex                    -> firmware.bin with SMB! header
    ihexdump firmware.hex --raw              -> firmware.bin, data only
    ihexdump firmware.hex -o out.bin --lo 0x2000 --hi 0x8000

Only data inside [lo, hi) is kept. The output starts at lo and is padded
with 0xFF to a whole 512-byte sector.
"""

import argparse
import json
import os
import sys

from image_encoder import encode_image, header_checksums, image_length
from memory_image import NoDataRecords, load_hex

VERSION = '1.1'

# Default address window
DEFAULT_LO = 0x1000
DEFAULT_HI = 0x10000

# Exit codes
ERR_OK = 0
ERR_HELP = 1
ERR_SOURCEFILE = 2
ERR_DESTFILE = 3
ERR_CONVERSION = 4


def error(code, message):
    print(f"error: {message}")
    return code


def default_output_name(source):
    """source with its extension replaced by .bin, or None if that is the source itself."""
    out_name = os.path.splitext(source)[0] + '.bin'
    if out_name == source:
        return None
    return out_name


def convert(source, lo=DEFAULT_LO, hi=DEFAULT_HI, with_header=True):
    """Read source and return (image, encoded_bytes).

    Raises:
        OSError: source cannot be read
        ValueError: invalid window
        NoDataRecords: nothing to write
    """
    with open(source, 'rb') as f:
        image = load_hex(f, lo, hi, name=source)
    return image, encode_image(image, lo, with_header)


def write_report(path, source, out_name, image, lo, hi, with_header):
    """Write a JSON summary of the conversion."""
    length = image_length(image, lo)
    report = {
        'source': source,
        'output': out_name,
        'lo': f"0x{lo:04X}",
        'hi': f"0x{hi:04X}",
        'first_address': f"0x{image.first_address:08X}",
        'last_address': f"0x{image.last_address:08X}",
        'length': length,
        'records': image.record_count,
        'header': with_header,
    }
    if with_header:
        header_crc, data_crc = header_checksums(image, lo, length)
        report['header_crc'] = f"0x{header_crc:04X}"
        report['data_crc'] = f"0x{data_crc:04X}"

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)

    print(f"Report written to {path}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='ihexdump',
        description=f"ihexdump V{VERSION}: convert an Intel HEX file to a programmer binary")
    parser.add_argument("source", help="Source Intel HEX file")
    parser.add_argument("-o", "--out", help="Target filename (default: {source name}.bin)")
    parser.add_argument("--lo", type=lambda s: int(s, 0), default=DEFAULT_LO,
                        help=f"Start address of range limit (default: 0x{DEFAULT_LO:x})")
    parser.add_argument("--hi", type=lambda s: int(s, 0), default=DEFAULT_HI,
                        help=f"End address of range limit (default: 0x{DEFAULT_HI:x})")
    parser.add_argument("--raw", action="store_true", help="Do not write header")
    parser.add_argument("--report", help="Also write a JSON conversion summary")
    return parser.parse_args(argv)


def run(argv=None):
    """Run the converter and return an exit code."""
    try:
        args = parse_args(argv)
    except SystemExit as e:
        # argparse exits 0 for --help and 2 for usage errors
        return ERR_HELP if e.code == 0 else ERR_SOURCEFILE

    source = args.source
    out_name = args.out or default_output_name(source)
    if out_name is None or os.path.abspath(out_name) == os.path.abspath(source):
        return error(ERR_DESTFILE, "cannot generate destination name - specify one with --out")

    with_header = not args.raw

    try:
        image, output = convert(source, args.lo, args.hi, with_header)
    except OSError as e:
        return error(ERR_SOURCEFILE, f"file open failed [{source}]: {e.strerror}")
    except (ValueError, NoDataRecords) as e:
        print(f"error: {e}")
        return error(ERR_CONVERSION, "conversion failed")

    try:
        with open(out_name, 'wb') as f:
            f.write(output)
    except OSError as e:
        return error(ERR_DESTFILE, f"file open failed [{out_name}]: {e.strerror}")

    print(f"Wrote {len(output)} bytes to {out_name}")

    if args.report:
        write_report(args.report, source, out_name, image, args.lo, args.hi, with_header)

    return ERR_OK


def main():
    sys.exit(run())


if __name__ == '__main__':
    main()
