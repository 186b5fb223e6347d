from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Literal, cast

import httpx
import openai
from loguru import logger
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionChunk, ChatCompletionMessageParam
from pydantic import ValidationError

from vchat.conversation import ConversationState
from vchat.errors import APIError, EmptyResponseError, TransportError
from vchat.schemas import FinishReason, Message, Role, StreamChunk, TokenUsage

EventType = Literal["thinking", "content", "done"]


@dataclass
class StreamEvent:
    type: EventType
    data: str


class StreamAccumulator:
    """
    Folds streamed chunks into the assistant reply.

    Content deltas of the first choice are concatenated in arrival order until
    a chunk carries a terminal finish reason. An unrecognized finish reason
    does not end the reply. Usage is picked up from whichever chunk has it.
    """

    def __init__(self):
        self._contents: list[str] = []
        self._thinking: list[str] = []
        self.finish_reason: FinishReason | None = None
        self.usage: TokenUsage | None = None
        self.received_choice = False

    @property
    def done(self) -> bool:
        return self.finish_reason is not None and self.finish_reason.is_terminal

    @property
    def text(self) -> str:
        return "".join(self._contents)

    @property
    def thinking(self) -> str:
        return "".join(self._thinking)

    def feed(self, chunk: StreamChunk) -> list[StreamEvent]:
        if chunk.usage is not None:
            self.usage = chunk.usage
        if self.done or not chunk.choices:
            return []

        choice = chunk.choices[0]
        self.received_choice = True
        events = []
        if choice.delta.reasoning_content:
            self._thinking.append(choice.delta.reasoning_content)
            events.append(StreamEvent("thinking", choice.delta.reasoning_content))
        if choice.delta.content:
            self._contents.append(choice.delta.content)
            events.append(StreamEvent("content", choice.delta.content))
        if choice.finish_reason is not None:
            self.finish_reason = choice.finish_reason
        return events


class LLMClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self._openai = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=float(timeout),
            max_retries=0,
            http_client=http_client,
        )

    async def list_models(self) -> list[str]:
        try:
            models = await self._openai.models.list()
        except openai.APIStatusError as e:
            raise APIError(e.status_code, _error_detail(e)) from e
        except openai.APIConnectionError as e:
            raise TransportError(str(e)) from e
        return [m.id for m in models.data]

    async def send(
        self,
        state: ConversationState,
        pending: Sequence[Message] = (),
        model: str | None = None,
    ) -> str:
        """
        Request a completion for the conversation plus the pending turns.

        The pending turns and the reply are appended to `state` only after the
        response is parsed, so a failed request leaves the history as it was.
        """
        model = model or self.model
        messages = self._build_messages(state, pending)
        logger.info(f"Sending {len(messages)} messages to {model}")
        try:
            response = await self._openai.chat.completions.create(
                model=model,
                messages=cast(list[ChatCompletionMessageParam], messages),
            )
        except openai.APIStatusError as e:
            logger.warning(f"Request failed with status {e.status_code}")
            raise APIError(e.status_code, _error_detail(e)) from e
        except openai.APIConnectionError as e:
            logger.warning(f"Request failed: {e}")
            raise TransportError(str(e)) from e
        except openai.APIError as e:
            logger.warning(f"Malformed response: {e}")
            raise TransportError(str(e)) from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise EmptyResponseError()
        content = choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        if usage:
            logger.debug(f"Token usage: {usage.total_tokens}")
        self._commit(state, pending, content)
        return content

    async def stream(
        self,
        state: ConversationState,
        pending: Sequence[Message] = (),
        model: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        model = model or self.model
        messages = self._build_messages(state, pending)
        logger.info(f"Streaming {len(messages)} messages to {model}")
        acc = StreamAccumulator()
        try:
            response = await self._openai.chat.completions.create(
                model=model,
                messages=cast(list[ChatCompletionMessageParam], messages),
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in response:
                for event in acc.feed(_parse_chunk(chunk)):
                    yield event
        except openai.APIStatusError as e:
            logger.warning(f"Stream failed with status {e.status_code}")
            raise APIError(e.status_code, _error_detail(e)) from e
        except openai.APIConnectionError as e:
            logger.warning(f"Stream failed: {e}")
            raise TransportError(str(e)) from e
        except openai.APIError as e:
            logger.warning(f"Malformed stream: {e}")
            raise TransportError(str(e)) from e

        if not acc.received_choice:
            raise EmptyResponseError()
        if acc.finish_reason is not FinishReason.STOP:
            logger.warning(f"Stream finished with reason {acc.finish_reason}")
        if acc.usage:
            logger.debug(f"Token usage: {acc.usage.total_tokens}")
        self._commit(state, pending, acc.text)
        reason = acc.finish_reason or FinishReason.UNKNOWN
        yield StreamEvent("done", reason.value)

    def _build_messages(
        self, state: ConversationState, pending: Sequence[Message]
    ) -> list[dict]:
        if not pending and state.last.role == Role.ASSISTANT:
            raise ValueError("No user turn to reply to")
        return [m.to_param() for m in [*state.snapshot(), *pending]]

    def _commit(
        self, state: ConversationState, pending: Sequence[Message], content: str
    ):
        for message in pending:
            state.add_message(message)
        state.add_text(Role.ASSISTANT, content)


def _error_detail(e: openai.APIStatusError) -> str:
    if isinstance(e.body, dict):
        message = e.body.get("message")
        if isinstance(message, str):
            return message
    return ""


def _parse_chunk(chunk: ChatCompletionChunk) -> StreamChunk:
    try:
        return StreamChunk.model_validate(chunk.model_dump(exclude_none=True))
    except ValidationError as e:
        logger.warning(f"Malformed stream chunk: {e}")
        detail = e.errors()[0]
        location = ".".join(str(part) for part in detail["loc"])
        raise TransportError(
            f"Malformed stream chunk: {location}: {detail['msg']}"
        ) from e
