"""
Container handles owning the byte stream behind a PGF image
"""
import io
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from pgf_metadata_tools.exceptions import ReadFailed, WriteFailed

logger = logging.getLogger("pgf_metadata_tools.container_io")


class ContainerHandle(ABC):
    """
    Exclusive owner of one container's bytes.

    A handle is created once and handed to a single image object, which then
    owns it for its whole lifetime. Handles refuse to be copied so the same
    bytes can never be edited through two owners.

    Reads go through ``open_read()`` and writes go through ``temporary()``
    followed by ``transfer()``; the original content is only ever replaced
    wholesale by a fully written temporary stream.
    """

    def __init__(self, create: bool = False):
        self.create = create

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    @abstractmethod
    def open_read(self) -> Iterator[BinaryIO]:
        """Yield a read cursor positioned at offset 0; released on exit."""

    @abstractmethod
    def temporary(self) -> Iterator[BinaryIO]:
        """Yield a fresh writable stream; discarded unless transferred."""

    @abstractmethod
    def transfer(self, temp: BinaryIO) -> None:
        """Replace the container content with the temporary stream."""

    @abstractmethod
    def size(self) -> int:
        """Current size of the container in bytes."""

    @abstractmethod
    def truncate(self) -> None:
        """Discard all content; used when creating a new image."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass


class FileContainer(ContainerHandle):
    """Handle backed by a file on disk."""

    def __init__(self, filepath: Union[str, Path], create: bool = False):
        super().__init__(create)
        self.filepath = Path(filepath) if isinstance(filepath, str) else filepath
        self._pending = None
        if create:
            self.truncate()
        elif not self.filepath.exists():
            raise FileNotFoundError(f"File not found: {self.filepath}")

    @property
    def name(self) -> str:
        return str(self.filepath)

    @contextmanager
    def open_read(self) -> Iterator[BinaryIO]:
        try:
            f = open(self.filepath, 'rb')
        except OSError as e:
            raise ReadFailed(f"Cannot open {self.filepath}: {e}") from e
        with f:
            yield f

    @contextmanager
    def temporary(self) -> Iterator[BinaryIO]:
        # Same directory as the original so the final replace stays on one filesystem
        fd, name = tempfile.mkstemp(prefix=f".{self.filepath.name}.", suffix='.tmp',
                                    dir=self.filepath.parent)
        temp_path = Path(name)
        self._pending = temp_path
        try:
            with os.fdopen(fd, 'w+b') as f:
                yield f
        finally:
            self._pending = None
            # Cleanup temp file if something went wrong
            if temp_path.exists():
                temp_path.unlink()

    def transfer(self, temp: BinaryIO) -> None:
        temp.flush()
        os.fsync(temp.fileno())
        try:
            # Keep the original's permission bits
            if self.filepath.exists():
                shutil.copymode(self.filepath, self._pending)
            # Atomic replace
            self._pending.replace(self.filepath)
        except OSError as e:
            raise WriteFailed(f"Cannot replace {self.filepath}: {e}") from e
        logger.debug(f"Committed rewrite of {self.filepath}")
        self.create = False

    def size(self) -> int:
        return self.filepath.stat().st_size

    def truncate(self) -> None:
        with open(self.filepath, 'wb'):
            pass


class MemoryContainer(ContainerHandle):
    """Handle backed by an in-memory buffer."""

    def __init__(self, data: bytes = b"", create: bool = False):
        super().__init__(create)
        self._buffer = io.BytesIO(b"" if create else data)

    @property
    def name(self) -> str:
        return "<memory>"

    @contextmanager
    def open_read(self) -> Iterator[BinaryIO]:
        # A private view so callers never move the owner's cursor
        view = io.BytesIO(self._buffer.getvalue())
        try:
            yield view
        finally:
            view.close()

    @contextmanager
    def temporary(self) -> Iterator[BinaryIO]:
        temp = io.BytesIO()
        try:
            yield temp
        finally:
            temp.close()

    def transfer(self, temp: BinaryIO) -> None:
        self._buffer = io.BytesIO(temp.getvalue())
        logger.debug("Committed in-memory rewrite")
        self.create = False

    def size(self) -> int:
        return self._buffer.getbuffer().nbytes

    def truncate(self) -> None:
        self._buffer = io.BytesIO()

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


def open_container(source: Union[str, Path, bytes, ContainerHandle],
                   create: bool = False) -> ContainerHandle:
    """Wrap a path or raw bytes into the matching handle."""
    if isinstance(source, ContainerHandle):
        return source
    if isinstance(source, (bytes, bytearray)):
        return MemoryContainer(bytes(source), create)
    return FileContainer(source, create)
