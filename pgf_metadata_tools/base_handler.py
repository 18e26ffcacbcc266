"""
Image Metadata Handler Base Interface and format registry
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, BinaryIO, List, Optional, Union
from pathlib import Path
import threading

from pgf_metadata_tools.container_io import ContainerHandle, open_container
from pgf_metadata_tools.exceptions import InvalidFormat
from pgf_metadata_tools.metadata_buffer import MetadataBuffer


@dataclass
class FormatEntry:
    mime_type: str
    sniffer: Callable[[BinaryIO, bool], bool]
    factory: Callable[..., 'ImageHandlerBase']


_REGISTRY: List[FormatEntry] = []


def register_format(mime_type: str, sniffer: Callable[[BinaryIO, bool], bool],
                    factory: Callable[..., 'ImageHandlerBase']) -> None:
    """
    Register a container format with the dispatcher.

    Args:
        mime_type: MIME type string identifying the format.
        sniffer: Callable ``(stream, advance) -> bool`` recognizing the format.
        factory: Callable ``(handle, create, external_lock) -> handler``.
    """
    for i, entry in enumerate(_REGISTRY):
        if entry.mime_type == mime_type:
            _REGISTRY[i] = FormatEntry(mime_type, sniffer, factory)
            return
    _REGISTRY.append(FormatEntry(mime_type, sniffer, factory))


def registered_formats() -> Dict[str, FormatEntry]:
    return {entry.mime_type: entry for entry in _REGISTRY}


class ImageHandlerBase(ABC):
    """
    Abstract base class defining the read/modify/write contract for image metadata.

    A handler takes ownership of a ContainerHandle at construction. Metadata is
    loaded with ``read_metadata()``, edited in memory through ``metadata`` or the
    key/value helpers, and committed with ``write_metadata()``. The key/value
    helpers write immediately, each one a complete atomic rewrite.
    """

    def __init__(self, io: ContainerHandle, create: bool = False,
                 external_lock: Optional[threading.Lock] = None):
        """
        Initialize the metadata handler.

        Args:
            io: The container handle; the handler becomes its sole owner.
            create: If True a new container is written from scratch, discarding
                    any existing content.
            external_lock: Optional external lock for thread synchronization.
                           If None, a new lock will be created.
        """
        if create and not io.create:
            io.truncate()
            io.create = True
        self._io = io
        self._lock = external_lock or threading.Lock()
        self.metadata = MetadataBuffer()
        self.pixel_width = 0
        self.pixel_height = 0

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    @property
    def io(self) -> ContainerHandle:
        """Borrowed access to the owned container handle."""
        return self._io

    @property
    @abstractmethod
    def mime_type(self) -> str:
        pass

    @abstractmethod
    def read_metadata(self) -> None:
        """Load header facts and metadata from the container."""
        pass

    @abstractmethod
    def write_metadata(self) -> None:
        """Atomically rewrite the container with the in-memory metadata."""
        pass

    def get_metadata(self) -> Dict[str, str]:
        """
        Get the text metadata entries.

        Returns:
            Dictionary mapping metadata keys to values.
        """
        return dict(self.metadata.text)

    def get_metadata_keys(self) -> list[str]:
        return list(self.metadata.text)

    def has_metadata_key(self, key: str) -> bool:
        return key in self.metadata.text

    def update_metadata(self, key: str, value: str) -> None:
        """
        Set a text entry and rewrite the container.

        Args:
            key: Metadata key to update.
            value: Metadata value to set.
        """
        with self._lock:
            self.metadata.set_text(key, value)
            self.write_metadata()

    def remove_metadata(self, key: str) -> bool:
        """
        Remove a text entry if it exists.

        Returns:
            True if the key was removed, False if it did not exist.
        """
        with self._lock:
            if key not in self.metadata.text:
                return False
            del self.metadata.text[key]
            self.write_metadata()
            return True

    def clear_metadata(self) -> None:
        """Remove all metadata, text and binary profiles alike."""
        with self._lock:
            if self.metadata.is_empty():
                return
            self.metadata.clear()
            self.write_metadata()

    @classmethod
    def open(cls, source: Union[str, Path, bytes, ContainerHandle],
             external_lock: Optional[threading.Lock] = None) -> 'ImageHandlerBase':
        """
        Factory method to open a handler for whatever format the source holds.

        Every registered sniffer probes the stream without advancing it; the
        first format to recognize the content claims the handle and its
        metadata is read.

        Raises:
            InvalidFormat: No registered format recognizes the content.
        """
        # Import implementations here to avoid circular imports
        import pgf_metadata_tools.pgf_image  # noqa: F401

        handle = open_container(source)
        with handle.open_read() as stream:
            for entry in _REGISTRY:
                if entry.sniffer(stream, False):
                    break
            else:
                raise InvalidFormat(f"Unknown image type: {handle.name}")

        handler = entry.factory(handle, False, external_lock)
        handler.read_metadata()
        return handler
