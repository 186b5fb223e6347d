from vchat.encoder import ContentEncoder, ImageSource
from vchat.schemas import Message, Role

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant. Answer strictly according to the user's instructions."
)


class ConversationState:
    """
    Ordered in-memory message history of a single conversation.

    The first entry is always the one system message. History only grows by
    appending, or is truncated and reseeded by `clear`.
    """

    def __init__(
        self,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        encoder: ContentEncoder | None = None,
    ):
        self._system_prompt = system_prompt
        self._encoder = encoder or ContentEncoder()
        self._messages: list[Message] = [self._system_message()]

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Message:
        return self._messages[-1]

    def __len__(self) -> int:
        return len(self._messages)

    def add_text(self, role: Role, text: str) -> Message:
        return self.add_message(Message.text(role, text))

    async def add_image(self, role: Role, source: ImageSource) -> Message:
        item = await self._encoder.encode(source)
        return self.add_message(Message(role=role, content=[item]))

    def add_message(self, message: Message) -> Message:
        if message.role == Role.SYSTEM:
            raise ValueError("Conversation already has a system message")
        if message.role == Role.ASSISTANT and self.last.role == Role.ASSISTANT:
            raise ValueError("Assistant turns must be separated by a user turn")
        self._messages.append(message)
        return message

    def clear(self):
        self._messages = [self._system_message()]

    def snapshot(self) -> list[Message]:
        return list(self._messages)

    def _system_message(self) -> Message:
        return Message.text(Role.SYSTEM, self._system_prompt)
