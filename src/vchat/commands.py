import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal

from loguru import logger
from prompt_toolkit.completion import Completer, Completion
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from vchat.clipboard import grab_image_bytes_async
from vchat.conversation import ConversationState
from vchat.errors import ChatError
from vchat.llm_client import LLMClient
from vchat.progress import ProgressIndicator
from vchat.schemas import ImageUrlContent, Role

CommandHandler = Callable[..., Awaitable[str | Text | Markdown | None]]
CommandCategory = Literal["General", "Image", "History", "Model"]
ClipboardReader = Callable[[], Awaitable[bytes]]


@dataclass
class CommandInfo:
    handler: CommandHandler
    description: str
    usage: str
    category: CommandCategory
    # handler receives the rest of the line verbatim as a single argument
    raw_args: bool = False


_command_registry: dict[str, CommandInfo] = {}


def command(
    name: str,
    description: str,
    usage: str,
    category: CommandCategory,
    raw_args: bool = False,
):
    def decorator(func: CommandHandler):
        _command_registry[name] = CommandInfo(
            handler=func,
            description=description,
            usage=usage,
            category=category,
            raw_args=raw_args,
        )
        return func

    return decorator


class CommandManager:
    def __init__(
        self,
        state: ConversationState,
        llm_client: LLMClient,
        console: Console,
        clipboard_reader: ClipboardReader = grab_image_bytes_async,
    ):
        self._state = state
        self._llm_client = llm_client
        self._console = console
        self._clipboard_reader = clipboard_reader

    @command("quit", "Exit application", "/quit", "General")
    @command("exit", "Exit application", "/exit", "General")
    async def quit(self, *args) -> None:
        _ = args
        logger.info("Exiting")
        sys.exit(0)

    @command("help", "Show this help", "/help", "General")
    async def help(self, *args) -> Text:
        _ = args

        categories = {}
        for cmd_name, cmd_info in _command_registry.items():
            if cmd_info.category not in categories:
                categories[cmd_info.category] = []
            categories[cmd_info.category].append((cmd_name, cmd_info))

        max_usage_width = max(
            len(cmd_info.usage) for cmd_info in _command_registry.values()
        )

        lines = []
        category_order: list[CommandCategory] = ["General", "Image", "History", "Model"]
        for category in category_order:
            if category in categories:
                lines.append(Text(f"{category}", style="bold"))
                for _, cmd_info in sorted(categories[category], key=lambda c: c[0]):
                    usage_text = cmd_info.usage.ljust(max_usage_width)
                    lines.append(
                        Text(f"  {usage_text}  {cmd_info.description}", style="dim")
                    )
        lines.append(Text("  C is a shortcut for /clip", style="dim"))

        return Text("\n").join(lines)

    @command(
        "image",
        "Attach an image file or URL",
        "/image <path|url>",
        "Image",
        raw_args=True,
    )
    async def add_image(self, *args) -> str:
        if not args:
            raise ValueError("Usage: /image <path|url>")
        source = args[0]
        await self._state.add_image(Role.USER, source)
        logger.info(f"Attached image {source}")
        return "Image attached"

    @command("clip", "Attach the image in the clipboard", "/clip", "Image")
    async def add_clipboard_image(self, *args) -> str:
        _ = args
        data = await self._clipboard_reader()
        await self._state.add_image(Role.USER, data)
        logger.info(f"Attached clipboard image ({len(data)} bytes)")
        return "Clipboard image attached"

    @command("clear", "Clear history", "/clear", "History")
    async def clear(self, *args) -> str:
        _ = args
        self._state.clear()
        logger.info("Conversation cleared")
        return "Conversation history cleared"

    @command("history", "Show history", "/history", "History")
    async def show_history(self, *args) -> Markdown:
        _ = args
        messages = self._state.messages[1:]
        if not messages:
            raise ValueError("No conversation history")
        lines = []
        for message in messages:
            parts = []
            for item in message.content:
                if isinstance(item, ImageUrlContent):
                    parts.append(_describe_image(item.image_url.url))
                else:
                    parts.append(item.text)
            content = " ".join(parts)
            if message.role == Role.USER:
                lines.append(f"***You***: *{content}*  ")
            else:
                lines.append(f"**AI**: {content}  ")
        lines.append("")
        return Markdown("\n".join(lines))

    @command("system", "Show system prompt", "/system", "History")
    async def show_system(self, *args) -> str:
        _ = args
        return self._state.system_prompt or "(No system prompt set)"

    @command("model", "Show or switch model", "/model [model_name]", "Model")
    async def use_model(self, *args) -> str:
        if args:
            self._llm_client.model = args[0]
            logger.info(f"Switched model to {args[0]}")
        return self._llm_client.model

    @command("models", "List models", "/models", "Model")
    async def list_models(self, *args) -> Text:
        _ = args
        model_list = await self._llm_client.list_models()
        lines = []
        for m in model_list:
            if m == self._llm_client.model:
                lines.append(Text(m, style="green"))
            else:
                lines.append(Text(m))
        return Text("\n").join(lines)

    async def execute(self, command_line: str):
        parts = command_line[1:].split()
        cmd_name = parts[0] if parts else ""
        args = parts[1:] if len(parts) > 1 else []

        if cmd_name not in _command_registry:
            self._console.print(
                self._create_panel(f"Unknown command: /{cmd_name}", error=True)
            )
            return

        command_info = _command_registry[cmd_name]
        if command_info.raw_args:
            rest = command_line[1:].lstrip()[len(cmd_name) :].strip()
            args = [rest] if rest else []

        output, error = None, None
        async with ProgressIndicator(self._console):
            try:
                output = await command_info.handler(self, *args)
            except (ChatError, ValueError) as e:
                logger.warning(f"/{cmd_name} failed: {e}")
                error = Text(str(e))
        if output:
            self._console.print(self._create_panel(output))
        if error:
            self._console.print(self._create_panel(error, error=True))

    def _create_panel(
        self, content: str | Text | Markdown, error: bool = False
    ) -> Panel:
        return Panel.fit(
            content,
            title="⚡",
            title_align="right",
            border_style="red" if error else "default",
        )


def _describe_image(url: str) -> str:
    if url.startswith("data:"):
        mime = url[5:].split(";", 1)[0]
        return f"[{mime} image, {len(url) // 1024} KB]"
    return f"[image: {url}]"


class SmartCommandCompleter(Completer):
    def __init__(self, commands):
        self.commands = commands

    def get_completions(self, document, complete_event):
        _ = complete_event
        text = document.text
        if text.startswith("/") and " " not in text:
            word = text[1:]
            for cmd in self.commands:
                if cmd.startswith(word):
                    yield Completion(cmd, start_position=-len(word))


def create_completer():
    return SmartCommandCompleter(list(_command_registry.keys()))
