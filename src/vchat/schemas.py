import re
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://\S+")
_DATA_URI_RE = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,")


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ImageUrl(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def _check_url(cls, url: str) -> str:
        if not (_SCHEME_RE.match(url) or _DATA_URI_RE.match(url)):
            raise ValueError(
                "image url must be a scheme URL or a base64 data URI, "
                f"got `{url[:40]}`"
            )
        return url


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrlContent(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl

    @classmethod
    def from_url(cls, url: str) -> "ImageUrlContent":
        return cls(image_url=ImageUrl(url=url))


ContentItem = Annotated[TextContent | ImageUrlContent, Field(discriminator="type")]


class Message(BaseModel):
    role: Role
    content: list[ContentItem]

    @classmethod
    def text(cls, role: Role, text: str) -> "Message":
        return cls(role=role, content=[TextContent(text=text)])

    def to_param(self) -> dict:
        return self.model_dump(mode="json")


# Streaming wire format


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "FinishReason":
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self is not FinishReason.UNKNOWN


class Delta(BaseModel):
    content: str | None = None
    reasoning_content: str | None = None


class StreamChoice(BaseModel):
    delta: Delta = Field(default_factory=Delta)
    finish_reason: FinishReason | None = None
    index: int = 0
    logprobs: Any | None = None

    @field_validator("finish_reason", mode="before")
    @classmethod
    def _known_or_unknown(cls, value: Any) -> FinishReason | None:
        if value is None or isinstance(value, FinishReason):
            return value
        return FinishReason(value)


class TokenDetails(BaseModel):
    text_tokens: int | None = None
    image_tokens: int | None = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    completion_tokens_details: TokenDetails | None = None
    prompt_tokens_details: TokenDetails | None = None


class StreamChunk(BaseModel):
    choices: list[StreamChoice] = Field(default_factory=list)
    usage: TokenUsage | None = None
    id: str | None = None
    model: str | None = None
    created: int | None = None
    object: str | None = None
    system_fingerprint: str | None = None
