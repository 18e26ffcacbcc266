"""
PGF image metadata handler with atomic streaming rewrites
"""
import dataclasses
import logging
import os
import threading
from enum import Enum
from typing import BinaryIO, Optional, Tuple

from pgf_metadata_tools.base_handler import ImageHandlerBase, register_format
from pgf_metadata_tools.container_io import ContainerHandle
from pgf_metadata_tools.exceptions import PGFError, ReadFailed, WriteFailed
from pgf_metadata_tools.metadata_buffer import MetadataBuffer
from pgf_metadata_tools.pgf_header import (
    MAX_HEADER_SIZE,
    PGF_MIME_TYPE,
    PGF_SIGNATURE,
    HeaderRecord,
    MetadataRegion,
    build_header,
    is_pgf_type,
    locate_metadata,
    read_header,
    read_metadata_region,
)

logger = logging.getLogger("pgf_metadata_tools.pgf_image")


class RewriteState(Enum):
    NOT_STARTED = "not_started"
    HEADER_WRITTEN = "header_written"
    METADATA_WRITTEN = "metadata_written"
    PAYLOAD_COPIED = "payload_copied"
    COMMITTED = "committed"
    ABORTED = "aborted"


def copy_stream(src: BinaryIO, dst: BinaryIO, buffer_size: int) -> int:
    """Copy src to dst until EOF in bounded reads; returns the bytes copied."""
    if buffer_size <= 0:
        raise ValueError(f"Copy buffer size must be positive, got {buffer_size}")
    copied = 0
    while True:
        data = src.read(buffer_size)
        if not data:
            break
        dst.write(data)
        copied += len(data)
    return copied


class PGFImage(ImageHandlerBase):
    """
    Metadata handler for Progressive Graphics File containers.

    Exif, IPTC, XMP and text metadata live in a small PNG embedded at the end
    of the PGF header. Reading never touches the compressed payload; writing
    streams it verbatim into a temporary container that replaces the
    original only once it is complete.
    """
    BUFFER_SIZE = 8192  # 8KB buffer for streaming

    def __init__(self, io: ContainerHandle, create: bool = False,
                 external_lock: Optional[threading.Lock] = None):
        super().__init__(io, create, external_lock)
        self.header: Optional[HeaderRecord] = None
        self.metadata_region: Optional[MetadataRegion] = None
        self.state = RewriteState.NOT_STARTED

    @property
    def mime_type(self) -> str:
        return PGF_MIME_TYPE

    def _buffer_size(self) -> int:
        value = os.environ.get('PGF_METADATA_BUFFER_SIZE')
        if value is None:
            return self.BUFFER_SIZE
        try:
            size = int(value)
        except ValueError:
            size = 0
        if size <= 0:
            logger.warning(f"Ignoring invalid PGF_METADATA_BUFFER_SIZE={value!r}, "
                           f"using {self.BUFFER_SIZE}")
            return self.BUFFER_SIZE
        return size

    def _set_state(self, state: RewriteState) -> None:
        logger.debug(f"{self._io.name}: {self.state.value} -> {state.value}")
        self.state = state

    def _parse(self, stream: BinaryIO) -> Tuple[HeaderRecord, MetadataRegion]:
        record = read_header(stream, self._io.size())
        return record, locate_metadata(record)

    def read_metadata(self) -> None:
        """
        Read header facts and embedded metadata.

        Nothing is published until the whole pipeline succeeds; after a failure
        ``header`` and ``metadata_region`` are None.

        Raises:
            InvalidFormat, Unsupported, Truncated: The container is unusable.
            ReadFailed: The underlying stream could not be read.
        """
        self.header = None
        self.metadata_region = None
        try:
            with self._io.open_read() as stream:
                record, region = self._parse(stream)
                data = read_metadata_region(stream, region)
        except PGFError:
            raise
        except OSError as e:
            raise ReadFailed(f"Failed to read {self._io.name}: {e}") from e

        metadata = MetadataBuffer.from_bytes(data)

        self.header = record
        self.metadata_region = region
        self.metadata = metadata
        self.pixel_width = record.width
        self.pixel_height = record.height

    def write_metadata(self) -> None:
        """
        Rewrite the container with the current metadata.

        A new container is assembled in a temporary stream: the header with
        its size updated, the serialized metadata, then the payload copied
        from the original. Only a complete rewrite replaces the original.

        Raises:
            WriteFailed: Any failure; the original is left byte-identical.
        """
        self.state = RewriteState.NOT_STARTED
        try:
            with self._io.temporary() as temp:
                if self._io.create:
                    record = build_header(self.pixel_width, self.pixel_height)
                    record, data = self._do_write_metadata(None, temp, record)
                else:
                    # Header facts are re-derived; the content may have changed since read_metadata()
                    with self._io.open_read() as src:
                        record, _ = self._parse(src)
                        src.seek(record.payload_offset)
                        record, data = self._do_write_metadata(src, temp, record)
                self._io.transfer(temp)
        except Exception as e:
            self._set_state(RewriteState.ABORTED)
            if isinstance(e, WriteFailed):
                raise
            raise WriteFailed(f"Failed to write metadata to {self._io.name}: {e}") from e

        self._set_state(RewriteState.COMMITTED)
        self.header = record
        self.metadata_region = locate_metadata(record)
        self.metadata.mark_written(data)
        self.pixel_width = record.width
        self.pixel_height = record.height

    def _do_write_metadata(self, src: Optional[BinaryIO], dst: BinaryIO,
                           record: HeaderRecord) -> Tuple[HeaderRecord, bytes]:
        """
        Write signature, header, metadata and payload to dst.

        Args:
            src: Original stream positioned at the payload, or None when creating.
            dst: Temporary output stream.
            record: Header facts of the original (or synthesized) container.

        Returns:
            Tuple of (header record as written, metadata region bytes).
        """
        data = self.metadata.to_bytes()
        header_size = record.structure_size + len(data)
        if header_size > MAX_HEADER_SIZE:
            raise WriteFailed(f"Metadata of {len(data)} bytes does not fit the PGF header")

        # The original byte order is kept so untouched structure bytes stay valid
        dst.write(PGF_SIGNATURE)
        dst.write(bytes([record.magic_version]))
        dst.write(record.byte_order.pack_u32(header_size))
        dst.write(record.raw_structure)
        self._set_state(RewriteState.HEADER_WRITTEN)

        dst.write(data)
        self._set_state(RewriteState.METADATA_WRITTEN)

        if src is not None:
            copied = copy_stream(src, dst, self._buffer_size())
            logger.debug(f"Copied {copied} payload bytes from {self._io.name}")
        self._set_state(RewriteState.PAYLOAD_COPIED)

        return dataclasses.replace(record, header_size=header_size), data


def new_pgf_instance(io: ContainerHandle, create: bool = False,
                     external_lock: Optional[threading.Lock] = None) -> PGFImage:
    """Create a PGFImage owning ``io``."""
    return PGFImage(io, create, external_lock)


register_format(PGF_MIME_TYPE, is_pgf_type, new_pgf_instance)
