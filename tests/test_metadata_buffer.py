"""
Test suite for embedded PGF metadata serialization
"""
import io

import pytest
from PIL import Image, PngImagePlugin
from PIL.PngImagePlugin import PngInfo

from pgf_metadata_tools.exceptions import InvalidFormat
from pgf_metadata_tools.metadata_buffer import (
    IPTC_PROFILE_KEY,
    XMP_KEY,
    MetadataBuffer,
    _encode_raw_profile,
)

XMP_PACKET = ('<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF '
              'xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"/></x:xmpmeta>')
# Record 2:120 (caption), "Hello"
IPTC_RECORD = b'\x1c\x02\x78\x00\x05Hello'


def _exif_with_make(make: str) -> Image.Exif:
    exif = Image.Exif()
    exif[0x010F] = make
    return exif


class TestMetadataBuffer:
    def test_empty_buffer_serializes_to_nothing(self):
        assert MetadataBuffer().to_bytes() == b''
        assert MetadataBuffer.from_bytes(b'').is_empty()

    def test_text_survives_embedding(self):
        buffer = MetadataBuffer()
        buffer.set_text('rating', '1500.0')
        buffer.set_text('title', 'Ünïcödé title ✓')
        data = buffer.to_bytes()

        # The region is a genuine PNG
        with Image.open(io.BytesIO(data)) as img:
            assert img.format == 'PNG'
            assert img.text['rating'] == '1500.0'

        decoded = MetadataBuffer.from_bytes(data)
        assert decoded.text == {'rating': '1500.0', 'title': 'Ünïcödé title ✓'}

    def test_all_profiles_survive_embedding(self):
        buffer = MetadataBuffer(iptc=IPTC_RECORD, xmp=XMP_PACKET)
        buffer.set_exif(_exif_with_make('Proper Camera Co'))
        decoded = MetadataBuffer.from_bytes(buffer.to_bytes())

        assert decoded.exif_tags()['Make'] == 'Proper Camera Co'
        assert not decoded.exif.startswith(b'Exif')
        assert decoded.iptc == IPTC_RECORD
        assert decoded.xmp == XMP_PACKET
        assert decoded.text == {}

    def test_unmodified_buffer_returns_source_bytes(self):
        png_info = PngInfo()
        png_info.add_text('rating', '1500.0')
        output = io.BytesIO()
        Image.new('RGB', (2, 2)).save(output, 'PNG', pnginfo=png_info)
        original = output.getvalue()

        decoded = MetadataBuffer.from_bytes(original)
        assert not decoded.is_modified()
        assert decoded.to_bytes() == original

        decoded.set_text('rating', '1600.0')
        assert decoded.is_modified()
        assert decoded.to_bytes() != original

    def test_cleared_buffer_drops_region(self):
        decoded = MetadataBuffer.from_bytes(MetadataBuffer(text={'a': 'b'}).to_bytes())
        decoded.clear()
        assert decoded.is_modified()
        assert decoded.to_bytes() == b''

    def test_raw_profile_exif_is_read(self):
        """Exif stored the ImageMagick way, as a hex text profile."""
        exif_bytes = _exif_with_make('Legacy Writer').tobytes()
        png_info = PngInfo()
        png_info.add_text('Raw profile type exif', _encode_raw_profile('exif', exif_bytes), zip=True)
        output = io.BytesIO()
        Image.new('L', (1, 1)).save(output, 'PNG', pnginfo=png_info)

        decoded = MetadataBuffer.from_bytes(output.getvalue())
        assert decoded.exif_tags()['Make'] == 'Legacy Writer'
        assert decoded.text == {}

    def test_malformed_profile_is_skipped(self, caplog):
        png_info = PngInfo()
        png_info.add_text(IPTC_PROFILE_KEY, '\niptc\n      99\nzz\n')
        output = io.BytesIO()
        Image.new('L', (1, 1)).save(output, 'PNG', pnginfo=png_info)

        decoded = MetadataBuffer.from_bytes(output.getvalue())
        assert decoded.iptc is None
        assert 'malformed' in caplog.text

    @pytest.mark.parametrize("key", ['', 'k' * 80, XMP_KEY, IPTC_PROFILE_KEY,
                                     '\u0440\u0435\u0439\u0442\u0438\u043d\u0433'])
    def test_invalid_keys_rejected(self, key):
        with pytest.raises(ValueError):
            MetadataBuffer().set_text(key, 'value')

    def test_undecodable_region(self):
        with pytest.raises(InvalidFormat):
            MetadataBuffer.from_bytes(b'\x89PNG\r\n\x1a\n' + b'\x00' * 20)

    def test_text_over_pillow_limit_is_undecodable(self, monkeypatch):
        data = MetadataBuffer(iptc=bytes(200)).to_bytes()
        monkeypatch.setattr(PngImagePlugin, "MAX_TEXT_CHUNK", 64)
        with pytest.raises(InvalidFormat):
            MetadataBuffer.from_bytes(data)

    def test_text_over_pillow_limit_is_not_encoded(self, monkeypatch):
        monkeypatch.setattr(PngImagePlugin, "MAX_TEXT_CHUNK", 64)
        buffer = MetadataBuffer()
        buffer.set_text('notes', 'x' * 65)
        with pytest.raises(ValueError):
            buffer.to_bytes()

        buffer.set_text('notes', 'x' * 64)
        assert MetadataBuffer.from_bytes(buffer.to_bytes()).text == {'notes': 'x' * 64}
