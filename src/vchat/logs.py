import os
from pathlib import Path

from loguru import logger


def _get_log_path() -> Path:
    if "XDG_STATE_HOME" in os.environ:
        state_path = Path(os.environ["XDG_STATE_HOME"])
    else:
        state_path = Path.home() / ".local" / "state"
    return state_path / "vchat" / "vchat.log"


def setup_logging(level: str = "INFO", log_path: Path | None = None) -> Path:
    # stderr would interleave with the prompt and the live display
    logger.remove()
    log_path = log_path or _get_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logger.add(log_path, level=level, rotation="5 MB", retention=3)
    return log_path
