from loguru import logger
from prompt_toolkit import PromptSession
from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.spinner import Spinner
from rich.text import Text

from vchat.commands import CommandManager
from vchat.config import Config
from vchat.conversation import ConversationState
from vchat.errors import ChatError
from vchat.llm_client import LLMClient
from vchat.progress import ProgressIndicator
from vchat.schemas import FinishReason, Message, Role

CLIP_SHORTCUT = "C"


class Chat:
    def __init__(
        self,
        config: Config,
        console: Console,
        state: ConversationState,
        llm_client: LLMClient,
        command_manager: CommandManager,
        prompt_session: PromptSession,
    ):
        self._config = config
        self._console = console
        self._state = state
        self._llm_client = llm_client
        self._command_manager = command_manager
        self._prompt_session = prompt_session

    async def start(self):
        self._console.print(
            Text("Ask a question or use a command (/help for the list)", style="dim")
        )
        while True:
            try:
                user_input = await self._prompt_session.prompt_async("» ")
            except (EOFError, KeyboardInterrupt):
                return

            user_input = user_input.strip()
            if not user_input:
                continue
            if user_input == CLIP_SHORTCUT:
                user_input = "/clip"
            if user_input.startswith("/"):
                await self._command_manager.execute(user_input)
                continue

            await self.ask(user_input)

    async def ask(self, prompt: str) -> str | None:
        """Send one user turn and render the reply. Errors are reported, not raised."""
        user_turn = Message.text(Role.USER, prompt)
        try:
            if self._config.stream:
                reply = await self._chat_completion_stream(user_turn)
            else:
                reply = await self._chat_completion(user_turn)
        except ChatError as e:
            logger.warning(f"Chat turn failed: {e}")
            self._console.print(
                Panel.fit(
                    Text(str(e)), title="⚡", title_align="right", border_style="red"
                )
            )
            return None
        return reply

    async def _chat_completion(self, user_turn: Message) -> str:
        async with ProgressIndicator(self._console):
            reply = await self._llm_client.send(self._state, [user_turn])
        self._console.print(
            Panel(Markdown(reply), title="📝", title_align="right")
        )
        self._console.print(Rule(style="dim"))
        return reply

    def _build_display_panels(
        self, thinking_contents: list[str], contents: list[str]
    ) -> list:
        panels = []
        if thinking_contents:
            panels.append(
                Panel(
                    "".join(thinking_contents),
                    title="🤔",
                    title_align="right",
                    style="dim italic",
                )
            )
        if contents:
            panels.append(
                Panel(Markdown("".join(contents)), title="📝", title_align="right")
            )
        return panels

    async def _chat_completion_stream(self, user_turn: Message) -> str:
        thinking_contents = []
        contents = []
        finish_reason = FinishReason.STOP
        loading_spinner = Spinner("dots")

        with Live(loading_spinner, console=self._console) as live:
            async for event in self._llm_client.stream(self._state, [user_turn]):
                if event.type == "thinking":
                    thinking_contents.append(event.data)
                elif event.type == "content":
                    contents.append(event.data)
                elif event.type == "done":
                    finish_reason = FinishReason(event.data)

                panels = self._build_display_panels(thinking_contents, contents)
                if panels:
                    live.update(Group(*panels))
            if not contents and not thinking_contents:
                live.update(Text(""))

        if finish_reason is not FinishReason.STOP:
            self._console.print(
                Text(f"Generation stopped ({finish_reason.value})", style="dim")
            )
        self._console.print(Rule(style="dim"))
        return "".join(contents)
