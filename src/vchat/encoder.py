import base64
from pathlib import Path

import aiofiles
import filetype
from loguru import logger

from vchat.errors import FileReadError, UnknownFileTypeError
from vchat.schemas import ImageUrlContent

ImageSource = str | Path | bytes | bytearray

_REMOTE_PREFIXES = ("http://", "https://")


def sniff_mime(data: bytes) -> str | None:
    """
    Detect the MIME type of an image from its leading bytes.

    Only the magic number is inspected, so the result never depends on a
    file name and the image body is never decoded.
    """
    mime = filetype.guess_mime(data)
    if mime is None or not mime.startswith("image/"):
        return None
    return mime


def to_data_url(data: bytes, source: str = "input") -> str:
    mime = sniff_mime(data)
    if mime is None:
        raise UnknownFileTypeError(source)
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{payload}"


def is_remote(source: str) -> bool:
    return source[:8].lower().startswith(_REMOTE_PREFIXES)


class ContentEncoder:
    async def encode(self, source: ImageSource) -> ImageUrlContent:
        if isinstance(source, (bytes, bytearray)):
            return self.encode_bytes(bytes(source))
        if isinstance(source, str) and is_remote(source):
            return ImageUrlContent.from_url(source)
        return await self.encode_file(source)

    async def encode_file(self, path: str | Path) -> ImageUrlContent:
        path = Path(path).expanduser()
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            raise FileReadError(str(path), e.strerror or str(e)) from e
        logger.debug(f"Read {len(data)} bytes from {path}")
        return ImageUrlContent.from_url(to_data_url(data, source=f"`{path}`"))

    def encode_bytes(self, data: bytes) -> ImageUrlContent:
        return ImageUrlContent.from_url(to_data_url(data, source="raw image data"))
