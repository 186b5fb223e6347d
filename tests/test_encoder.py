import base64
import io
from unittest.mock import patch

import pytest
from conftest import make_image, png_header
from PIL import Image

from vchat.encoder import ContentEncoder, sniff_mime
from vchat.errors import FileReadError, UnknownFileTypeError
from vchat.schemas import ImageUrlContent


def _decode(url: str) -> tuple[str, bytes]:
    header, payload = url.split(",", 1)
    assert header.startswith("data:") and header.endswith(";base64")
    return header[5 : -len(";base64")], base64.b64decode(payload)


class TestMimeSniffing:
    """MIME detection looks at the bytes, never at a file name"""

    @pytest.mark.parametrize(
        "fmt, mime",
        [("PNG", "image/png"), ("JPEG", "image/jpeg"), ("GIF", "image/gif")],
    )
    def test_known_formats(self, fmt, mime):
        assert sniff_mime(make_image(fmt)) == mime

    def test_unrecognized_bytes(self):
        assert sniff_mime(b"just some text, not an image") is None
        assert sniff_mime(b"") is None

    def test_non_image_type_rejected(self):
        assert sniff_mime(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n" + b"\x00" * 32) is None

    def test_png_signature_with_truncated_body(self):
        assert sniff_mime(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32) == "image/png"

    def test_multi_frame_jpeg_is_jpeg(self):
        first = Image.new("RGB", (4, 4), (255, 0, 0))
        second = Image.new("RGB", (4, 4), (0, 0, 255))
        buffer = io.BytesIO()
        first.save(buffer, format="MPO", save_all=True, append_images=[second])
        data = buffer.getvalue()

        assert data[:3] == b"\xff\xd8\xff"
        assert sniff_mime(data) == "image/jpeg"

    def test_huge_dimensions_are_not_decoded(self):
        data = png_header(60000, 60000)
        assert sniff_mime(data) == "image/png"


class TestContentEncoder:
    @pytest.mark.asyncio
    async def test_remote_url_passes_through_without_io(self):
        encoder = ContentEncoder()
        url = "https://example.com/cat.png?size=large"

        with patch("vchat.encoder.aiofiles.open") as mock_open, patch(
            "vchat.encoder.filetype.guess_mime"
        ) as mock_guess:
            item = await encoder.encode(url)

        assert isinstance(item, ImageUrlContent)
        assert item.image_url.url == url
        mock_open.assert_not_called()
        mock_guess.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url", ["HTTPS://example.com/a.png", "Http://example.com/b.jpg"]
    )
    async def test_scheme_is_case_insensitive(self, url):
        with patch("vchat.encoder.aiofiles.open") as mock_open:
            item = await ContentEncoder().encode(url)

        assert item.image_url.url == url
        mock_open.assert_not_called()

    @pytest.mark.asyncio
    async def test_plain_http_url(self):
        item = await ContentEncoder().encode("http://example.com/a")
        assert item.image_url.url == "http://example.com/a"

    @pytest.mark.asyncio
    async def test_local_file_is_sniffed_not_guessed_from_extension(
        self, png_file, png_bytes
    ):
        item = await ContentEncoder().encode(str(png_file))

        mime, payload = _decode(item.image_url.url)
        assert mime == "image/png"
        assert payload == png_bytes

    @pytest.mark.asyncio
    async def test_path_object(self, png_file, png_bytes):
        item = await ContentEncoder().encode(png_file)
        assert _decode(item.image_url.url)[1] == png_bytes

    @pytest.mark.asyncio
    async def test_raw_bytes_round_trip(self, jpeg_bytes):
        with patch("vchat.encoder.aiofiles.open") as mock_open:
            item = await ContentEncoder().encode(jpeg_bytes)

        mime, payload = _decode(item.image_url.url)
        assert mime == "image/jpeg"
        assert payload == jpeg_bytes
        mock_open.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FileReadError) as exc_info:
            await ContentEncoder().encode(str(tmp_path / "missing.png"))
        assert "missing.png" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unknown_file_type(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("definitely not an image")

        with pytest.raises(UnknownFileTypeError):
            await ContentEncoder().encode(str(path))

    def test_unknown_raw_bytes(self):
        with pytest.raises(UnknownFileTypeError):
            ContentEncoder().encode_bytes(b"\x00\x01\x02\x03")
