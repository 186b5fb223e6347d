import os
import tomllib
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError, field_validator

from vchat.conversation import DEFAULT_SYSTEM_PROMPT
from vchat.errors import ConfigError

DEFAULT_MODEL = "qwen2.5-vl-32b-instruct"
DEFAULT_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
DEFAULT_TIMEOUT = 3 * 60

# environment variable -> config field
ENV_VARS = {
    "API_KEY": "api_key",
    "MODEL": "model",
    "BASE_URL": "base_url",
    "SYSTEM_PROMPT": "system_prompt",
    "STREAM": "stream",
    "TIMEOUT": "timeout",
    "LOG_LEVEL": "log_level",
}


class Config(BaseModel):
    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    timeout: float = DEFAULT_TIMEOUT
    stream: bool = False
    log_level: str = "INFO"

    @field_validator("base_url")
    @classmethod
    def _api_root(cls, base_url: str) -> str:
        base_url = base_url.rstrip("/")
        suffix = "/chat/completions"
        if base_url.endswith(suffix):
            base_url = base_url[: -len(suffix)]
        return base_url

    @field_validator("log_level")
    @classmethod
    def _upper(cls, level: str) -> str:
        return level.upper()


def default_config_file() -> Path:
    if "XDG_CONFIG_HOME" in os.environ:
        config_dir = Path(os.environ["XDG_CONFIG_HOME"])
    else:
        config_dir = Path.home() / ".config"
    return config_dir / "vchat" / "config.toml"


def _read_config_file(config_file: Path) -> dict:
    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid config file {config_file}: {e}")


def _from_env(env: Mapping[str, str | None]) -> dict:
    return {
        field: env[name]
        for name, field in ENV_VARS.items()
        if env.get(name) not in (None, "")
    }


def load_config(
    environ: Mapping[str, str] | None = None,
    config_file: Path | None = None,
    dotenv_path: Path | str | None = ".env",
) -> Config:
    """
    Build the configuration once at startup.

    Later sources override earlier ones: field defaults, the TOML config
    file, the `.env` file, then the process environment.
    """
    values = _read_config_file(config_file or default_config_file())
    if dotenv_path is not None:
        values.update(_from_env(dotenv_values(dotenv_path)))
    values.update(_from_env(os.environ if environ is None else environ))

    if not values.get("api_key"):
        raise ConfigError("API_KEY must be set")
    try:
        return Config(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")
