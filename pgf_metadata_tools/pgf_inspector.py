"""
PGF Metadata Inspector with header and embedded metadata summaries
"""
from pathlib import Path
from typing import Dict, Any
from pprint import pprint

from pgf_metadata_tools.container_io import FileContainer
from pgf_metadata_tools.exceptions import PGFError
from pgf_metadata_tools.pgf_image import PGFImage


class PGFInspector:
    def __init__(self, image_path: str):
        self.image_path = image_path
        self.metadata: Dict[str, Any] = {}
        self._load_metadata()

    def _load_metadata(self) -> None:
        """Extract header facts and all embedded metadata."""
        try:
            image = PGFImage(FileContainer(self.image_path))
            image.read_metadata()
        except FileNotFoundError:
            print(f"Error: File not found - {self.image_path}")
            self.metadata['error'] = 'File not found'
            self.metadata['text'] = {}
            return
        except PGFError as e:
            print(f"Error: Not a valid PGF file or corrupted - {self.image_path}: {e}")
            self.metadata['error'] = f'Invalid or corrupted PGF: {e}'
            self.metadata['text'] = {}
            return

        header = image.header
        region = image.metadata_region
        self.metadata['mime_type'] = image.mime_type
        self.metadata['size'] = (header.width, header.height)
        self.metadata['version'] = header.magic_version
        self.metadata['byte_order'] = header.byte_order.name.lower()
        self.metadata['header_size'] = header.header_size
        self.metadata['levels'] = header.levels
        self.metadata['quality'] = header.quality
        self.metadata['bits_per_pixel'] = header.bits_per_pixel
        self.metadata['channels'] = header.channels
        self.metadata['mode'] = header.mode
        self.metadata['metadata_offset'] = region.byte_offset
        self.metadata['metadata_length'] = region.byte_length
        self.metadata['payload_offset'] = header.payload_offset

        self.metadata['text'] = dict(image.metadata.text)
        self.metadata['text_keys'] = list(image.metadata.text)
        self.metadata['exif'] = image.metadata.exif_tags()
        self.metadata['xmp'] = image.metadata.xmp
        self.metadata['iptc_size'] = len(image.metadata.iptc or b'')

    def print_detailed_summary(self) -> None:
        """Print a detailed formatted summary of the metadata."""
        print(f"\n{'='*80}")
        print(f"Detailed Metadata Summary for {Path(self.image_path).name}")
        print(f"{'='*80}")

        if 'error' in self.metadata:
            print(f"\nERROR ENCOUNTERED:")
            print(self.metadata['error'])
            return

        print(f"\nBASIC INFORMATION:")
        print(f"Image Size: {self.metadata['size']}")
        print(f"PGF Version: {self.metadata['version']}")
        print(f"Byte Order: {self.metadata['byte_order']}")
        print(f"Header Size: {self.metadata['header_size']}")
        print(f"Levels/Quality/BPP/Channels/Mode: {self.metadata['levels']}/{self.metadata['quality']}/"
              f"{self.metadata['bits_per_pixel']}/{self.metadata['channels']}/{self.metadata['mode']}")
        print(f"Metadata Region: {self.metadata['metadata_length']} bytes at "
              f"{self.metadata['metadata_offset']}")
        print(f"Payload Offset: {self.metadata['payload_offset']}")

        if self.metadata['text_keys']:
            print(f"\nMETADATA KEYS FOUND: {', '.join(self.metadata['text_keys'])}")

        if self.metadata['exif']:
            print("\nEXIF:")
            pprint(self.metadata['exif'], indent=2)

        if self.metadata['iptc_size']:
            print(f"\nIPTC: {self.metadata['iptc_size']} bytes")

        if self.metadata['xmp']:
            print("\nXMP:")
            print(self.metadata['xmp'])

        print("\nRAW METADATA:")
        pprint(self.metadata['text'], indent=2)


def inspect_file(filepath: str) -> None:
    """Inspect a single PGF file."""
    inspector = PGFInspector(filepath)
    inspector.print_detailed_summary()


if __name__ == "__main__":
    import sys
    if len(sys.argv) != 2:
        print("Usage: python -m pgf_metadata_tools.pgf_inspector <image_path>")
        sys.exit(1)

    inspect_file(sys.argv[1])
