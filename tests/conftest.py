import io
import json
import struct
import zlib
from typing import Callable

import httpx
import pytest
from PIL import Image

from vchat.llm_client import LLMClient


def make_image(fmt: str, size=(4, 4), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def png_header(width: int, height: int) -> bytes:
    """PNG signature plus an IHDR chunk, with no image data."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    chunk = b"IHDR" + ihdr
    return (
        b"\x89PNG\r\n\x1a\n"
        + struct.pack(">I", len(ihdr))
        + chunk
        + struct.pack(">I", zlib.crc32(chunk))
    )


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    model: str = "test-model",
    base_url: str = "http://test/v1",
) -> LLMClient:
    return LLMClient(
        base_url=base_url,
        api_key="test-key",
        model=model,
        timeout=5,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def sse_response(*chunks: dict) -> httpx.Response:
    body = "".join(f"data: {json.dumps(chunk)}\n\n" for chunk in chunks)
    body += "data: [DONE]\n\n"
    return httpx.Response(
        200, headers={"content-type": "text/event-stream"}, content=body.encode()
    )


def chunk(content=None, finish_reason=None, reasoning=None, usage=None, choices=True):
    delta = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    data = {
        "id": "chunk-1",
        "object": "chat.completion.chunk",
        "created": 1,
        "model": "test-model",
        "choices": (
            [{"index": 0, "delta": delta, "finish_reason": finish_reason}]
            if choices
            else []
        ),
    }
    if usage is not None:
        data["usage"] = usage
    return data


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image("JPEG")


@pytest.fixture
def png_file(tmp_path, png_bytes):
    path = tmp_path / "picture.jpg"  # extension deliberately wrong
    path.write_bytes(png_bytes)
    return path
