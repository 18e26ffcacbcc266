"""
Descriptive metadata carried inside a PGF container as a small embedded PNG
"""
import io
import logging
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from PIL import Image, ExifTags, PngImagePlugin, UnidentifiedImageError

from pgf_metadata_tools.exceptions import InvalidFormat

logger = logging.getLogger("pgf_metadata_tools.metadata_buffer")

EXIF_HEADER = b'Exif\x00\x00'
XMP_KEY = "XML:com.adobe.xmp"
IPTC_PROFILE_KEY = "Raw profile type iptc"
EXIF_PROFILE_KEYS = ("Raw profile type exif", "Raw profile type APP1")
RESERVED_KEYS = {XMP_KEY, IPTC_PROFILE_KEY, *EXIF_PROFILE_KEYS}

# PNG keywords are 1-79 Latin-1 characters
MAX_KEYWORD_LENGTH = 79


def _encode_raw_profile(name: str, data: bytes) -> str:
    """Encode bytes in the ImageMagick 'Raw profile type' text layout."""
    hex_data = data.hex()
    lines = [hex_data[i:i + 72] for i in range(0, len(hex_data), 72)]
    return f"\n{name}\n{len(data):8d}\n" + "\n".join(lines) + "\n"


def _decode_raw_profile(text: str) -> bytes:
    """Decode an ImageMagick 'Raw profile type' text value back to bytes."""
    lines = text.strip("\n").split("\n")
    if len(lines) < 2:
        raise ValueError("Raw profile too short")
    length = int(lines[1].strip())
    data = bytes.fromhex("".join(line.strip() for line in lines[2:]))
    if len(data) != length:
        raise ValueError(f"Raw profile declares {length} bytes but holds {len(data)}")
    return data


def _strip_exif_header(data: bytes) -> bytes:
    return data[len(EXIF_HEADER):] if data.startswith(EXIF_HEADER) else data


@dataclass
class MetadataBuffer:
    """
    In-memory Exif, IPTC, XMP and text metadata for one container.

    The buffer remembers the exact bytes it was decoded from. Serializing an
    unmodified buffer returns those bytes unchanged, so a read followed by a
    write reproduces the container byte for byte.
    """
    exif: Optional[bytes] = None
    iptc: Optional[bytes] = None
    xmp: Optional[str] = None
    text: Dict[str, str] = field(default_factory=dict)
    _source: Optional[Tuple[Any, bytes]] = field(default=None, init=False, repr=False, compare=False)

    def _state(self) -> Tuple[Any, ...]:
        return (self.exif, self.iptc, self.xmp, tuple(sorted(self.text.items())))

    def is_empty(self) -> bool:
        return not (self.exif or self.iptc or self.xmp or self.text)

    def is_modified(self) -> bool:
        """True when the content differs from what was decoded."""
        if self._source is None:
            return not self.is_empty()
        return self._state() != self._source[0]

    def mark_written(self, data: bytes) -> None:
        """Record ``data`` as the serialization now stored in the container."""
        self._source = (self._state(), bytes(data))

    def clear(self) -> None:
        self.exif = None
        self.iptc = None
        self.xmp = None
        self.text = {}

    def set_exif(self, exif: Union[bytes, Image.Exif, None]) -> None:
        """Set Exif from raw TIFF bytes (with or without the APP1 prefix) or a Pillow Exif."""
        if isinstance(exif, Image.Exif):
            exif = exif.tobytes()
        self.exif = _strip_exif_header(exif) if exif else None

    def set_text(self, key: str, value: str) -> None:
        if not key or len(key) > MAX_KEYWORD_LENGTH:
            raise ValueError(f"Metadata key must be 1-{MAX_KEYWORD_LENGTH} characters: {key!r}")
        if key in RESERVED_KEYS:
            raise ValueError(f"Metadata key is reserved: {key}")
        try:
            key.encode('latin-1')
        except UnicodeEncodeError as e:
            raise ValueError(f"Metadata key must be Latin-1: {key!r}") from e
        self.text[key] = value

    def exif_tags(self) -> Dict[str, Any]:
        """Decoded Exif tags keyed by name, for display."""
        if not self.exif:
            return {}
        exif = Image.Exif()
        exif.load(self.exif)
        return {ExifTags.TAGS.get(tag, str(tag)): value for tag, value in exif.items()}

    @classmethod
    def from_bytes(cls, data: bytes) -> 'MetadataBuffer':
        """
        Decode an embedded metadata PNG.

        Args:
            data: The metadata region; empty for a container without metadata.

        Returns:
            A buffer remembering ``data`` as its unmodified serialization.

        Raises:
            InvalidFormat: The region is not a readable PNG.
        """
        buffer = cls()
        if data:
            try:
                with Image.open(io.BytesIO(data)) as img:
                    img.load()
                    info = dict(img.info)
                    text = dict(img.text)
            except (UnidentifiedImageError, OSError, SyntaxError, ValueError, zlib.error) as e:
                raise InvalidFormat(f"Cannot decode embedded metadata: {e}") from e
            buffer._populate(info, text)
        buffer._source = (buffer._state(), bytes(data))
        return buffer

    def _populate(self, info: Dict[str, Any], text: Dict[str, str]) -> None:
        exif = info.get("exif")
        if exif:
            self.exif = _strip_exif_header(exif)

        for key, value in text.items():
            if key == XMP_KEY:
                self.xmp = str(value)
            elif key == IPTC_PROFILE_KEY:
                self.iptc = self._profile_or_none(key, value)
            elif key in EXIF_PROFILE_KEYS:
                profile = self._profile_or_none(key, value)
                if profile and not self.exif:
                    self.exif = _strip_exif_header(profile)
            else:
                self.text[key] = str(value)

    @staticmethod
    def _profile_or_none(key: str, value: str) -> Optional[bytes]:
        try:
            return _decode_raw_profile(value)
        except ValueError as e:
            logger.warning(f"Ignoring malformed '{key}' chunk: {e}")
            return None

    @staticmethod
    def _check_text_limits(chunks: Dict[str, str]) -> None:
        """Refuse text that Pillow would not decode again when reading the region back."""
        total = 0
        for key, value in chunks.items():
            size = len(value.encode('utf-8'))
            if size > PngImagePlugin.MAX_TEXT_CHUNK:
                raise ValueError(f"Metadata '{key}' is {size} bytes, "
                                 f"over the {PngImagePlugin.MAX_TEXT_CHUNK} byte chunk limit")
            total += size
        if total > PngImagePlugin.MAX_TEXT_MEMORY:
            raise ValueError(f"Metadata text totals {total} bytes, "
                             f"over the {PngImagePlugin.MAX_TEXT_MEMORY} byte limit")

    def to_bytes(self) -> bytes:
        """
        Serialize to an embedded metadata PNG.

        Returns:
            ``b''`` for an empty buffer, the original bytes for an unmodified
            one, otherwise a freshly encoded 1x1 PNG.

        Raises:
            ValueError: A text value exceeds the limits Pillow enforces on read.
        """
        if self._source is not None and self._state() == self._source[0]:
            return self._source[1]
        if self.is_empty():
            return b''

        chunks = dict(self.text)
        if self.iptc:
            chunks[IPTC_PROFILE_KEY] = _encode_raw_profile("iptc", self.iptc)
        if self.xmp:
            chunks[XMP_KEY] = self.xmp
        self._check_text_limits(chunks)

        png_info = PngImagePlugin.PngInfo()
        for key, value in self.text.items():
            png_info.add_text(key, value)
        if self.iptc:
            png_info.add_text(IPTC_PROFILE_KEY, chunks[IPTC_PROFILE_KEY], zip=True)
        if self.xmp:
            png_info.add_itxt(XMP_KEY, self.xmp)

        params = {"pnginfo": png_info}
        if self.exif:
            params["exif"] = self.exif

        output_buffer = io.BytesIO()
        Image.new('L', (1, 1)).save(output_buffer, format="PNG", **params)
        return output_buffer.getvalue()
