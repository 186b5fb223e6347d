import asyncio
import io

from loguru import logger
from PIL import Image, ImageGrab

from vchat.errors import ClipboardError


def grab_image_bytes(quality: int = 90) -> bytes:
    """Return the clipboard image re-encoded as JPEG."""
    try:
        grabbed = ImageGrab.grabclipboard()
    except (OSError, NotImplementedError) as e:
        raise ClipboardError(f"Clipboard is not accessible: {e}") from e
    if not isinstance(grabbed, Image.Image):
        raise ClipboardError("No image in clipboard")
    return to_jpeg(grabbed, quality=quality)


def to_jpeg(image: Image.Image, quality: int = 90) -> bytes:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    data = buffer.getvalue()
    logger.debug(f"Encoded {image.size[0]}x{image.size[1]} image to {len(data)} bytes")
    return data


async def grab_image_bytes_async() -> bytes:
    return await asyncio.to_thread(grab_image_bytes)
