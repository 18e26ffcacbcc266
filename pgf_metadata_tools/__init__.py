"""
PGF Metadata Tools - read and rewrite metadata embedded in Progressive Graphics File images
"""
from pathlib import Path
from typing import Dict, Union, Optional, Any

__version__ = "0.1.0"

from pgf_metadata_tools.exceptions import (
    PGFError,
    InvalidFormat,
    Unsupported,
    Truncated,
    ReadFailed,
    WriteFailed,
)
from pgf_metadata_tools.container_io import ContainerHandle, FileContainer, MemoryContainer
from pgf_metadata_tools.base_handler import ImageHandlerBase, register_format
from pgf_metadata_tools.metadata_buffer import MetadataBuffer
from pgf_metadata_tools.pgf_header import PGF_MIME_TYPE, HeaderRecord, ByteOrder, is_pgf_type
from pgf_metadata_tools.pgf_image import PGFImage, RewriteState, new_pgf_instance
from pgf_metadata_tools.pgf_inspector import PGFInspector


def _open(filepath: Union[str, Path]) -> PGFImage:
    image = PGFImage(FileContainer(filepath))
    image.read_metadata()
    return image


# Simplified API for common operations
def read(filepath: Union[str, Path]) -> Dict[str, str]:
    """
    Read text metadata from a PGF file.

    Args:
        filepath: Path to the PGF file.

    Returns:
        Dictionary of metadata key-value pairs.
    """
    return _open(filepath).get_metadata()


def write(filepath: Union[str, Path], metadata: Dict[str, Any]) -> None:
    """
    Write multiple metadata key-value pairs to a PGF file in a single rewrite.

    Args:
        filepath: Path to the PGF file.
        metadata: Dictionary of metadata to write.
    """
    image = _open(filepath)
    for key, value in metadata.items():
        image.metadata.set_text(key, str(value))
    image.write_metadata()


def update(filepath: Union[str, Path], key: str, value: Any) -> None:
    """
    Update a single metadata value.

    Args:
        filepath: Path to the PGF file.
        key: Metadata key to update.
        value: Metadata value to set (will be converted to string).
    """
    _open(filepath).update_metadata(key, str(value))


def has_key(filepath: Union[str, Path], key: str) -> bool:
    return _open(filepath).has_metadata_key(key)


def remove(filepath: Union[str, Path], key: str) -> bool:
    """
    Remove a metadata key from a PGF file.

    Returns:
        True if the key was removed, False if it did not exist.
    """
    return _open(filepath).remove_metadata(key)


def clear(filepath: Union[str, Path]) -> None:
    """Clear all metadata from a PGF file."""
    _open(filepath).clear_metadata()


def create(filepath: Union[str, Path], metadata: Optional[Dict[str, Any]] = None,
           width: int = 0, height: int = 0) -> PGFImage:
    """
    Create a new PGF container holding only a header and metadata.

    Any existing file at ``filepath`` is overwritten.
    """
    image = PGFImage(FileContainer(filepath, create=True), create=True)
    image.pixel_width = width
    image.pixel_height = height
    for key, value in (metadata or {}).items():
        image.metadata.set_text(key, str(value))
    image.write_metadata()
    return image


def is_pgf(filepath: Union[str, Path]) -> bool:
    """Check whether a file holds a supported PGF container."""
    with open(filepath, 'rb') as f:
        return is_pgf_type(f, advance=False)


def inspect(filepath: Union[str, Path], detailed: bool = False) -> Dict[str, Any]:
    """
    Inspect a PGF file for header and metadata information.

    Args:
        filepath: Path to the PGF file.
        detailed: If True, prints a detailed summary as well.

    Returns:
        Dictionary with inspection results.
    """
    inspector = PGFInspector(str(filepath))
    if detailed:
        inspector.print_detailed_summary()
    return inspector.metadata


class MetaEditor:
    """
    Context manager for editing PGF metadata.

    All changes are applied in one rewrite when the block exits cleanly.

    Example:
        with pgfmeta.MetaEditor("image.pgf") as meta:
            meta["rating"] = 1500.0
            meta.image.metadata.xmp = packet
    """
    def __init__(self, filepath: Union[str, Path]):
        self.filepath = filepath
        self.image: Optional[PGFImage] = None

    def __enter__(self):
        self.image = _open(self.filepath)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Only write changes if no exception occurred
        if exc_type is None and self.image.metadata.is_modified():
            self.image.write_metadata()

    def __getitem__(self, key):
        return self.image.metadata.text.get(key)

    def __setitem__(self, key, value):
        self.image.metadata.set_text(key, str(value))

    def __delitem__(self, key):
        self.image.metadata.text.pop(key, None)

    def __contains__(self, key):
        return key in self.image.metadata.text


__all__ = [
    # Core classes
    'ImageHandlerBase',
    'PGFImage',
    'MetadataBuffer',
    'HeaderRecord',
    'ByteOrder',
    'RewriteState',
    'ContainerHandle',
    'FileContainer',
    'MemoryContainer',
    'PGFInspector',
    'PGF_MIME_TYPE',
    'register_format',
    'new_pgf_instance',
    'is_pgf_type',

    # Errors
    'PGFError', 'InvalidFormat', 'Unsupported', 'Truncated', 'ReadFailed', 'WriteFailed',

    # Simplified API functions
    'read', 'write', 'update', 'has_key', 'remove', 'clear', 'create', 'is_pgf', 'inspect',

    # Editor classes
    'MetaEditor',
]
