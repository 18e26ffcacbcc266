"""
PGF container header decoding with explicit byte-order handling
"""
import logging
import struct
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Iterator, Optional, Tuple

from pgf_metadata_tools.exceptions import InvalidFormat, PGFError, Truncated, Unsupported

logger = logging.getLogger("pgf_metadata_tools.pgf_header")

PGF_SIGNATURE = b'PGF'
PGF_MIME_TYPE = "image/pgf"
MIN_VERSION = 6
# '6' in ASCII, the lowest version byte libpgf-era readers accept
CREATE_VERSION = 0x36

# Bytes before the header structure: signature, version and the size field
PREAMBLE_SIZE = 8
MIN_HEADER_SIZE = 8
# width, height, levels, quality, bpp, channels, mode, used bits, reserved(2)
FIXED_HEADER_SIZE = 16
MAX_HEADER_SIZE = 0x7FFFFFFF
INDEXED_COLOR_MODE = 2
# 256 RGBQUAD entries
COLOR_TABLE_SIZE = 256 * 4
MODE_OFFSET = 12

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


class ByteOrder(Enum):
    """Byte order of the multi-byte header integers in one container."""
    LITTLE = '<'
    BIG = '>'

    def unpack_u32(self, data: bytes, offset: int = 0) -> int:
        return struct.unpack_from(self.value + 'I', data, offset)[0]

    def unpack_i32(self, data: bytes, offset: int = 0) -> int:
        return struct.unpack_from(self.value + 'i', data, offset)[0]

    def pack_u32(self, value: int) -> bytes:
        return struct.pack(self.value + 'I', value)

    def pack_i32(self, value: int) -> bytes:
        return struct.pack(self.value + 'i', value)


@dataclass(frozen=True)
class HeaderRecord:
    """Facts recovered from a PGF header; never partially populated."""
    magic_version: int
    header_size: int
    width: int
    height: int
    extra_fields: bytes
    byte_order: ByteOrder

    @property
    def structure_size(self) -> int:
        """Bytes of the header structure proper, excluding the metadata region."""
        return 8 + len(self.extra_fields)

    @property
    def raw_structure(self) -> bytes:
        """The structure exactly as stored, in the container's own byte order."""
        return (self.byte_order.pack_i32(self.width) +
                self.byte_order.pack_i32(self.height) +
                self.extra_fields)

    def _field(self, index: int) -> Optional[int]:
        # extra_fields starts at structure offset 8
        return self.extra_fields[index] if index < len(self.extra_fields) else None

    @property
    def levels(self) -> Optional[int]:
        return self._field(0)

    @property
    def quality(self) -> Optional[int]:
        return self._field(1)

    @property
    def bits_per_pixel(self) -> Optional[int]:
        return self._field(2)

    @property
    def channels(self) -> Optional[int]:
        return self._field(3)

    @property
    def mode(self) -> Optional[int]:
        return self._field(MODE_OFFSET - 8)

    @property
    def used_bits_per_channel(self) -> Optional[int]:
        return self._field(5)

    @property
    def payload_offset(self) -> int:
        return PREAMBLE_SIZE + self.header_size


@dataclass(frozen=True)
class MetadataRegion:
    """Where the embedded metadata sits between header structure and payload."""
    present: bool
    byte_offset: int
    byte_length: int

    @property
    def end(self) -> int:
        return self.byte_offset + self.byte_length


@contextmanager
def preserved_position(stream: BinaryIO) -> Iterator[BinaryIO]:
    """Restore the stream position on exit, whatever happened inside."""
    position = stream.tell()
    try:
        yield stream
    finally:
        stream.seek(position)


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise Truncated(f"Unexpected end of stream reading {what}: "
                        f"expected {size} bytes, got {len(data)}")
    return data


def read_magic_number(stream: BinaryIO, advance: bool = True) -> int:
    """
    Validate the PGF signature and return the version byte.

    Args:
        stream: Binary stream positioned at the start of the container.
        advance: If False, the stream position is restored afterwards,
                 on success and on failure alike.

    Returns:
        The magic version byte.

    Raises:
        InvalidFormat: The signature does not match.
        Truncated: The version byte is missing.
        Unsupported: The version is older than MIN_VERSION.
    """
    if not advance:
        with preserved_position(stream):
            return read_magic_number(stream, advance=True)

    signature = stream.read(len(PGF_SIGNATURE))
    if signature != PGF_SIGNATURE:
        raise InvalidFormat("Invalid PGF signature")

    version = _read_exact(stream, 1, "magic version")[0]
    if version < MIN_VERSION:
        raise Unsupported(f"PGF version {version} is not supported (minimum {MIN_VERSION})")
    return version


def _plausible_header_size(value: int, remaining: Optional[int]) -> bool:
    upper = MAX_HEADER_SIZE if remaining is None else min(remaining, MAX_HEADER_SIZE)
    return MIN_HEADER_SIZE <= value <= upper


def read_header_size(stream: BinaryIO, remaining: Optional[int] = None) -> Tuple[int, ByteOrder]:
    """
    Read the 32-bit header size and resolve the container's byte order.

    PGF stores its integers little-endian. A field that is implausible when
    read little-endian (smaller than width plus height, or larger than the
    bytes that follow it) is read again big-endian; if that reading is
    plausible the container is taken to be big-endian. When both readings
    are plausible little-endian wins.

    Args:
        stream: Binary stream positioned just after the version byte.
        remaining: Bytes available after the size field, when known.

    Returns:
        Tuple of (header size, resolved byte order).
    """
    raw = _read_exact(stream, 4, "header size")

    for byte_order in (ByteOrder.LITTLE, ByteOrder.BIG):
        header_size = byte_order.unpack_u32(raw)
        if _plausible_header_size(header_size, remaining):
            if byte_order is ByteOrder.BIG:
                logger.debug(f"Header size {header_size} resolved as big-endian")
            return header_size, byte_order

    # Neither order fits. A size beyond the stream in canonical order is a short
    # file, anything else is a damaged field.
    header_size = ByteOrder.LITTLE.unpack_u32(raw)
    if MIN_HEADER_SIZE <= header_size <= MAX_HEADER_SIZE:
        raise Truncated(f"Header size {header_size} exceeds the {remaining} bytes available")
    raise InvalidFormat(f"Corrupt PGF header size field: {raw.hex()}")


def read_header_structure(stream: BinaryIO, header_size: int,
                          byte_order: ByteOrder) -> Tuple[int, int, bytes]:
    """
    Decode width and height and keep the remaining structure bytes verbatim.

    Returns:
        Tuple of (width, height, extra_fields).
    """
    if header_size < MIN_HEADER_SIZE:
        raise InvalidFormat(f"Header size {header_size} cannot hold width and height")

    structure = _read_exact(stream, min(header_size, FIXED_HEADER_SIZE), "header structure")
    width = byte_order.unpack_i32(structure, 0)
    height = byte_order.unpack_i32(structure, 4)

    if len(structure) > MODE_OFFSET and structure[MODE_OFFSET] == INDEXED_COLOR_MODE:
        if header_size < FIXED_HEADER_SIZE + COLOR_TABLE_SIZE:
            raise InvalidFormat(f"Header size {header_size} too small for an indexed colour table")
        structure += _read_exact(stream, COLOR_TABLE_SIZE, "colour table")

    return width, height, structure[8:]


def read_header(stream: BinaryIO, total_size: Optional[int] = None) -> HeaderRecord:
    """
    Run magic validation, size decoding and structure parsing in order.

    Args:
        stream: Binary stream positioned at offset 0.
        total_size: Total stream size, used to judge header-size plausibility.
    """
    version = read_magic_number(stream)
    available = None if total_size is None else max(total_size - PREAMBLE_SIZE, 0)
    header_size, byte_order = read_header_size(stream, available)
    width, height, extra_fields = read_header_structure(stream, header_size, byte_order)

    record = HeaderRecord(
        magic_version=version,
        header_size=header_size,
        width=width,
        height=height,
        extra_fields=extra_fields,
        byte_order=byte_order
    )
    logger.debug(f"PGF v{version} {width}x{height}, header size {header_size}, "
                 f"{byte_order.name.lower()}-endian")
    return record


def locate_metadata(record: HeaderRecord) -> MetadataRegion:
    """Delimit the metadata region that follows the header structure."""
    offset = PREAMBLE_SIZE + record.structure_size
    length = record.header_size - record.structure_size
    return MetadataRegion(present=length > 0, byte_offset=offset, byte_length=length)


def read_metadata_region(stream: BinaryIO, region: MetadataRegion) -> bytes:
    """
    Read the bytes of a located metadata region.

    The stream must be positioned at ``region.byte_offset``. An absent region
    yields ``b''``; a present one must begin with the embedded PNG marker.
    """
    if not region.present:
        return b''
    data = _read_exact(stream, region.byte_length, "metadata region")
    if not data.startswith(PNG_SIGNATURE):
        raise InvalidFormat(f"Metadata region at offset {region.byte_offset} "
                            f"does not hold an embedded PNG")
    return data


def is_pgf_type(stream: BinaryIO, advance: bool = False) -> bool:
    """
    Check whether a stream holds a supported PGF container.

    Never raises on truncated or foreign content. With ``advance=False`` the
    stream position is left exactly where it was; with ``advance=True`` a
    matching stream is left just after the version byte.
    """
    position = stream.tell()
    try:
        read_magic_number(stream, advance=True)
        matched = True
    except (PGFError, OSError) as e:
        logger.debug(f"Not a PGF stream: {e}")
        matched = False
    if not advance or not matched:
        stream.seek(position)
    return matched


def build_header(width: int = 0, height: int = 0, version: int = CREATE_VERSION,
                 byte_order: ByteOrder = ByteOrder.LITTLE) -> HeaderRecord:
    """Synthesize a minimal valid header for a container being created."""
    return HeaderRecord(
        magic_version=version,
        header_size=FIXED_HEADER_SIZE,
        width=width,
        height=height,
        extra_fields=bytes(FIXED_HEADER_SIZE - 8),
        byte_order=byte_order
    )
