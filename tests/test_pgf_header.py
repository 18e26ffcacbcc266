"""
Test suite for PGF header decoding
"""
import io

import pytest

from pgf_metadata_tools.exceptions import InvalidFormat, Truncated, Unsupported
from pgf_metadata_tools.pgf_header import (
    ByteOrder,
    build_header,
    is_pgf_type,
    locate_metadata,
    read_header,
    read_header_structure,
    read_magic_number,
    read_metadata_region,
)

from generate_test_files import build_pgf, metadata_png, random_payload


def _read(data: bytes):
    stream = io.BytesIO(data)
    return read_header(stream, len(data)), stream


class TestMagicNumber:
    def test_valid_signature(self):
        stream = io.BytesIO(build_pgf(version=6))
        assert read_magic_number(stream) == 6
        assert stream.tell() == 4

    def test_higher_versions_accepted(self):
        assert read_magic_number(io.BytesIO(b'PGF\x36')) == 0x36
        assert read_magic_number(io.BytesIO(b'PGF\xff')) == 0xff

    @pytest.mark.parametrize("data", [b'', b'PG', b'PGX\x06', b'\x89PNG\r\n\x1a\n', b'pgf\x06'])
    def test_bad_signature(self, data):
        with pytest.raises(InvalidFormat):
            read_magic_number(io.BytesIO(data))

    def test_old_version_unsupported(self):
        with pytest.raises(Unsupported):
            read_magic_number(io.BytesIO(b'PGF\x05'))

    def test_missing_version_byte(self):
        with pytest.raises(Truncated):
            read_magic_number(io.BytesIO(b'PGF'))

    @pytest.mark.parametrize("data", [build_pgf(), b'PGF\x02', b'garbage', b'PGF'])
    def test_probe_mode_restores_position(self, data):
        stream = io.BytesIO(b'xx' + data)
        stream.seek(2)
        try:
            read_magic_number(stream, advance=False)
        except (InvalidFormat, Unsupported, Truncated):
            pass
        assert stream.tell() == 2
        assert stream.read() == data


class TestHeaderSize:
    def test_little_endian(self):
        record, _ = _read(build_pgf(payload=random_payload(100)))
        assert record.header_size == 16
        assert record.byte_order is ByteOrder.LITTLE

    def test_big_endian_resolved(self):
        record, _ = _read(build_pgf(byte_order='>', payload=random_payload(100)))
        assert record.header_size == 16
        assert record.byte_order is ByteOrder.BIG

    def test_corrupt_field(self):
        with pytest.raises(InvalidFormat):
            _read(build_pgf(header_size=3, payload=random_payload(100)))

    def test_short_field(self):
        with pytest.raises(Truncated):
            _read(b'PGF\x06\x10\x00')

    def test_declared_size_beyond_stream(self):
        data = build_pgf(header_size=4096)
        with pytest.raises(Truncated):
            _read(data)


class TestHeaderStructure:
    def test_scenario_a(self):
        """Version 6, 16-byte little-endian header, no metadata, 1000 payload bytes."""
        extra = bytes([3, 90, 24, 3, 1, 8, 0, 0])
        data = build_pgf(width=800, height=600, extra=extra, payload=random_payload(1000))
        record, stream = _read(data)

        assert record.magic_version == 6
        assert (record.width, record.height) == (800, 600)
        assert record.extra_fields == extra
        assert record.levels == 3
        assert record.quality == 90
        assert record.bits_per_pixel == 24
        assert record.channels == 3
        assert record.mode == 1
        assert record.raw_structure == data[8:24]
        assert stream.tell() == 24

        region = locate_metadata(record)
        assert not region.present
        assert region.byte_offset == 24
        assert region.byte_length == 0
        assert record.payload_offset == 24

    def test_cross_endian_dimensions(self):
        little, _ = _read(build_pgf(width=800, height=600, payload=random_payload(64)))
        big, _ = _read(build_pgf(width=800, height=600, byte_order='>', payload=random_payload(64)))
        assert (big.width, big.height) == (little.width, little.height) == (800, 600)
        assert big.raw_structure[:8] == bytes.fromhex('0000032000000258')

    def test_negative_dimensions_are_signed(self):
        record, _ = _read(build_pgf(width=-1, height=2))
        assert record.width == -1

    def test_too_small_for_dimensions(self):
        with pytest.raises(InvalidFormat):
            read_header_structure(io.BytesIO(bytes(16)), 4, ByteOrder.LITTLE)

    def test_short_structure(self):
        with pytest.raises(Truncated):
            read_header_structure(io.BytesIO(bytes(10)), 16, ByteOrder.LITTLE)

    def test_minimal_header_without_extra_fields(self):
        record, _ = _read(build_pgf(extra=b''))
        assert record.header_size == 8
        assert record.extra_fields == b''
        assert record.mode is None

    def test_indexed_colour_table(self):
        extra = bytes([4, 0, 8, 1, 2, 8, 0, 0]) + bytes(range(256)) * 4
        record, _ = _read(build_pgf(extra=extra, payload=random_payload(10)))
        assert record.mode == 2
        assert record.structure_size == 16 + 1024
        assert record.extra_fields == extra
        assert not locate_metadata(record).present

    def test_indexed_colour_table_must_fit(self):
        with pytest.raises(InvalidFormat):
            _read(build_pgf(extra=bytes([4, 0, 8, 1, 2, 8, 0, 0]), payload=random_payload(2000)))


class TestMetadataRegion:
    def test_present_region(self):
        png = metadata_png({'rating': '1500.0'})
        data = build_pgf(metadata=png, payload=random_payload(100))
        record, stream = _read(data)
        region = locate_metadata(record)

        assert region.present
        assert region.byte_offset == 24
        assert region.byte_length == len(png)
        assert record.payload_offset == 24 + len(png)
        assert read_metadata_region(stream, region) == png

    def test_region_without_marker(self):
        record, stream = _read(build_pgf(metadata=b'not a png', payload=random_payload(10)))
        with pytest.raises(InvalidFormat):
            read_metadata_region(stream, locate_metadata(record))


class TestFormatSniffer:
    def test_recognizes_pgf(self):
        assert is_pgf_type(io.BytesIO(build_pgf()), advance=False)

    @pytest.mark.parametrize("data", [b'', b'P', b'PGF', b'PGF\x05', b'GIF89a', random_payload(64, seed=7)])
    def test_rejects_without_raising(self, data):
        stream = io.BytesIO(data)
        assert not is_pgf_type(stream, advance=False)
        assert stream.tell() == 0

    def test_no_advance_keeps_position(self):
        data = build_pgf(payload=random_payload(32))
        stream = io.BytesIO(data)
        before = stream.read(8)
        stream.seek(0)
        assert is_pgf_type(stream, advance=False)
        assert stream.read(8) == before

    def test_advance_consumes_magic(self):
        stream = io.BytesIO(build_pgf())
        assert is_pgf_type(stream, advance=True)
        assert stream.tell() == 4

    def test_advance_leaves_foreign_stream_alone(self):
        stream = io.BytesIO(b'GIF89a')
        assert not is_pgf_type(stream, advance=True)
        assert stream.tell() == 0


def test_build_header_is_minimal_and_valid():
    record = build_header()
    assert record.magic_version >= 6
    assert (record.width, record.height) == (0, 0)
    assert record.header_size == record.structure_size == 16
    assert record.byte_order is ByteOrder.LITTLE
