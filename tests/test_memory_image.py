import io

import numpy as np
import pytest

from hex_records import parse_line
from memory_image import (FILL_BYTE, MEMORY_SIZE, MemoryImage, NoDataRecords,
                          apply_record, load_hex)
from hexdata import EOF_LINE, data_line, extended_linear_line, record_line


def load(lines, lo=0x1000, hi=0x2000):
    return load_hex(lines, lo, hi)


def test_fresh_image_is_erased():
    image = MemoryImage()
    assert image.data.shape == (MEMORY_SIZE,)
    assert np.all(image.data == FILL_BYTE)
    assert image.first_address == MEMORY_SIZE
    assert image.last_address == 0
    assert image.record_count == 0


def test_data_record_is_written():
    image = load([data_line(0x1000, b'\x01\x02\x03'), EOF_LINE])
    assert image.data[0x1000:0x1003].tobytes() == b'\x01\x02\x03'
    assert image.data[0x1003] == FILL_BYTE
    assert image.first_address == 0x1000
    assert image.last_address == 0x1003
    assert image.record_count == 1


def test_bounds_track_all_records():
    image = load([data_line(0x1800, b'\xaa' * 4), data_line(0x1100, b'\xbb' * 2), EOF_LINE])
    assert image.first_address == 0x1100
    assert image.last_address == 0x1804
    assert image.record_count == 2


def test_last_write_wins():
    image = load([data_line(0x1000, b'\x11\x11'), data_line(0x1001, b'\x22'), EOF_LINE])
    assert image.data[0x1000:0x1002].tobytes() == b'\x11\x22'


def test_upper_bound_is_exclusive(capsys):
    hi = 0x2000
    image = load([data_line(hi - 1, b'\x5a'), data_line(hi, b'\xa5'), EOF_LINE], hi=hi)
    assert image.record_count == 1
    assert image.data[hi - 1] == 0x5A
    assert image.data[hi] == FILL_BYTE
    assert image.last_address == hi
    assert 'ignoring out-of-range data @ 2000' in capsys.readouterr().out


def test_lower_bound_is_inclusive(capsys):
    image = load([data_line(0x0FFF, b'\x01'), data_line(0x1000, b'\x02'), EOF_LINE])
    assert image.record_count == 1
    assert image.first_address == 0x1000
    assert 'ignoring out-of-range data @ 0fff' in capsys.readouterr().out


def test_record_starting_below_hi_is_written_whole(capsys):
    image = load([data_line(0x1FF8, bytes(range(16))), EOF_LINE])
    assert image.data[0x1FF8:0x2008].tobytes() == bytes(range(16))
    assert image.data[0x2008] == FILL_BYTE
    assert image.last_address == 0x1FF8 + 16
    assert 'clipping' not in capsys.readouterr().out


def test_payload_is_clipped_at_end_of_memory(capsys):
    image = load([data_line(0xFFFC, bytes(range(8))), EOF_LINE], lo=0xFF00, hi=0x10000)
    assert image.data[0xFFFC:].tobytes() == bytes(range(4))
    assert image.last_address == MEMORY_SIZE
    assert 'clipping data @ fffc at end of memory (4 bytes dropped)' in capsys.readouterr().out


def test_empty_data_record_is_ignored(capsys):
    image = load([data_line(0x1000, b''), data_line(0x1000, b'\x01'), EOF_LINE])
    assert image.record_count == 1
    assert 'ignoring empty line' in capsys.readouterr().out


def test_extended_linear_address_composition(capsys):
    image = MemoryImage()
    apply_record(image, parse_line(extended_linear_line(0x0800)), 0x1000, 0x2000)
    assert image.extended_base == 0x08000000
    assert image.resolve(0x0010) == 0x08000010

    apply_record(image, parse_line(data_line(0x0010, b'\x01')), 0x1000, 0x2000)
    assert image.record_count == 0
    assert 'ignoring out-of-range data @ 8000010' in capsys.readouterr().out


def test_extended_linear_address_zero_base():
    image = load([extended_linear_line(0x0800), extended_linear_line(0x0000),
                  data_line(0x1000, b'\x01'), EOF_LINE])
    assert image.extended_base == 0
    assert image.data[0x1000] == 0x01


def test_invalid_extended_linear_address_is_ignored(capsys):
    image = MemoryImage()
    apply_record(image, parse_line(record_line(0x0010, 0x04, b'\x08\x00')), 0, 0x10000)
    apply_record(image, parse_line(record_line(0, 0x04, b'\x08')), 0, 0x10000)
    assert image.extended_base == 0
    out = capsys.readouterr().out
    assert 'invalid extended linear address [aaaa=0010, bb=2]' in out
    assert 'invalid extended linear address [aaaa=0000, bb=1]' in out


def test_unsupported_records_only_warn(capsys):
    lines = [
        record_line(0, 0x02, b'\x10\x00'),
        record_line(0, 0x03, b'\x00\x00\x00\x00'),
        record_line(0, 0x05, b'\x00\x00\x10\x00'),
        record_line(0, 0x09, b'\x00'),
        data_line(0x1000, b'\x01'),
        EOF_LINE,
    ]
    image = load(lines)
    assert image.extended_base == 0
    assert image.record_count == 1
    out = capsys.readouterr().out
    assert 'unhandled extended segment address' in out
    assert 'unhandled start segment address' in out
    assert 'unhandled start linear address' in out
    assert 'unknown record type [9]' in out


def test_malformed_lines_are_skipped(capsys):
    good = data_line(0x1000, b'\x01\x02')
    lines = [
        'garbage',
        good[:-2] + '00',
        data_line(0x1002, b'\x03'),
    ]
    image = load(lines + [EOF_LINE])
    assert image.record_count == 1
    assert image.data[0x1002] == 0x03
    out = capsys.readouterr().out
    assert 'ignoring malformed line: invalid format [garbage]' in out
    assert 'ignoring malformed line: invalid checksum' in out


def test_records_after_eof_are_not_applied():
    image = load([data_line(0x1000, b'\x01'), EOF_LINE, data_line(0x1001, b'\x02')])
    assert image.record_count == 1
    assert image.data[0x1001] == FILL_BYTE


def test_missing_eof_reads_to_end():
    image = load([data_line(0x1000, b'\x01'), data_line(0x1001, b'\x02')])
    assert image.record_count == 2


def test_reads_binary_stream_with_crlf():
    text = data_line(0x1000, b'\xde\xad') + '\r\n' + EOF_LINE + '\r\n'
    image = load(io.BytesIO(text.encode('ascii')))
    assert image.data[0x1000:0x1002].tobytes() == b'\xde\xad'


def test_no_data_records():
    with pytest.raises(NoDataRecords):
        load([extended_linear_line(0), EOF_LINE])


def test_only_out_of_range_data():
    with pytest.raises(NoDataRecords):
        load([data_line(0x0100, b'\x01'), data_line(0x3000, b'\x02'), EOF_LINE])


@pytest.mark.parametrize('lo, hi', [(0x2000, 0x1000), (0x1000, 0x1000), (-1, 0x100), (0, 0x10001)])
def test_invalid_window(lo, hi):
    with pytest.raises(ValueError):
        load_hex([data_line(0x1000, b'\x01')], lo, hi)


def test_summary_is_printed(capsys):
    load([data_line(0x1000, bytes(16)), EOF_LINE])
    out = capsys.readouterr().out
    assert 'Decoded 00001000 -> 00001010' in out
    assert 'Program bytes = 00000010 or 1KB' in out
    assert 'lo = 0x1000, hi = 0x2000' in out


def test_window_pads_past_end_of_memory():
    image = MemoryImage()
    image.write(0xFFFE, b'\x01\x02')
    assert image.window(0xFFFE, 4) == b'\x01\x02\xff\xff'
