import asyncio
import sys

from loguru import logger
from prompt_toolkit import PromptSession
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.panel import Panel

from vchat.chat import Chat
from vchat.commands import CommandManager, create_completer
from vchat.config import Config, load_config
from vchat.conversation import ConversationState
from vchat.llm_client import LLMClient
from vchat.logs import setup_logging


def bootstrap(console: Console, config: Config) -> Chat:
    state = ConversationState(system_prompt=config.system_prompt)
    llm_client = LLMClient(
        base_url=config.base_url,
        api_key=config.api_key,
        model=config.model,
        timeout=config.timeout,
    )
    prompt_session = PromptSession()
    prompt_session.completer = create_completer()
    prompt_session.style = Style.from_dict(
        {
            "completion-menu.completion": "fg:default bg:default",
            "completion-menu.completion.current": "bold",
        }
    )
    command_manager = CommandManager(
        state=state,
        llm_client=llm_client,
        console=console,
    )

    chat = Chat(
        config=config,
        console=console,
        state=state,
        llm_client=llm_client,
        command_manager=command_manager,
        prompt_session=prompt_session,
    )

    return chat


def main():
    console = Console()
    try:
        config = load_config()
        setup_logging(config.log_level)
        logger.info(f"Starting with model {config.model} at {config.base_url}")
        chat = bootstrap(console, config)
        asyncio.run(chat.start())
    except Exception as e:
        console.print(Panel.fit(str(e), border_style="red"))
        sys.exit(1)


if __name__ == "__main__":
    main()
