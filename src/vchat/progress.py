import asyncio

from rich.console import Console
from rich.live import Live
from rich.text import Text

FRAMES = ("-", "\\", "|", "/")


class ProgressIndicator:
    """
    Spinner shown while a request is outstanding.

    Used as `async with ProgressIndicator(console): ...`. The spinner runs as
    a background task and is stopped when the block exits, whether it
    returns or raises.
    """

    def __init__(self, console: Console, label: str = "Loading", interval: float = 0.1):
        self._console = console
        self._label = label
        self._interval = interval
        self._stop = asyncio.Event()
        self._live: Live | None = None
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "ProgressIndicator":
        self._live = Live(
            self._render(), console=self._console, transient=True, auto_refresh=False
        )
        self._live.start()
        self._task = asyncio.create_task(self._spin(), name="progress-indicator")
        return self

    async def __aexit__(self, *exc_info) -> bool:
        self.stop()
        if self._task:
            await self._task
        if self._live:
            self._live.stop()
        return False

    def stop(self):
        self._stop.set()

    async def _spin(self):
        while not self._stop.is_set():
            self._live.update(self._render(), refresh=True)
            self.ticks += 1
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    def _render(self) -> Text:
        return Text(f"{self._label} {FRAMES[self.ticks % len(FRAMES)]}", style="dim")
