"""Environment-driven configuration for the agent system."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv
from eth_utils import is_address

from agent_engine.base import DEFAULT_EXPLORER_URL
from llm_adapter.client import DEFAULT_BASE_URL, DEFAULT_MODEL, DEFAULT_TIMEOUT_SECONDS

DEFAULT_SWAP_ADAPTER_ADDRESS = "0x0000000000000000000000000000000000000001"
DEFAULT_STAKING_ADAPTER_ADDRESS = "0x0000000000000000000000000000000000000002"
DEFAULT_VENICE_BASE_URL = "https://api.venice.ai/v1"
DEFAULT_LOG_LEVEL = "INFO"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""


@dataclass(frozen=True)
class AgentSystemConfig:
    openrouter_api_key: str
    openrouter_base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    venice_api_key: Optional[str] = None
    venice_base_url: str = DEFAULT_VENICE_BASE_URL
    explorer_url: str = DEFAULT_EXPLORER_URL
    swap_adapter_address: str = DEFAULT_SWAP_ADAPTER_ADDRESS
    staking_adapter_address: str = DEFAULT_STAKING_ADAPTER_ADDRESS
    llm_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if not self.openrouter_api_key:
            raise ConfigError("OPENROUTER_API_KEY is required.")
        for name in ("swap_adapter_address", "staking_adapter_address"):
            if not is_address(getattr(self, name)):
                raise ConfigError(f"{name} must be a 20-byte hex address.")
        if self.llm_timeout_seconds <= 0:
            raise ConfigError("llm_timeout_seconds must be positive.")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "AgentSystemConfig":
        """Build a config from the process environment.

        When ``env_file`` is given it is loaded first with python-dotenv;
        variables already set in the environment win.
        """

        if env_file is not None:
            load_dotenv(env_file, override=False)
        env = os.environ if environ is None else environ

        timeout_raw = env.get("LLM_TIMEOUT_SECONDS")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SECONDS
        except ValueError as exc:
            raise ConfigError(f"LLM_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}") from exc

        return cls(
            openrouter_api_key=env.get("OPENROUTER_API_KEY", ""),
            openrouter_base_url=env.get("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL,
            model=env.get("AGENT_MODEL") or DEFAULT_MODEL,
            venice_api_key=env.get("VENICE_API_KEY") or None,
            venice_base_url=env.get("VENICE_BASE_URL") or DEFAULT_VENICE_BASE_URL,
            explorer_url=env.get("EXPLORER_URL") or DEFAULT_EXPLORER_URL,
            swap_adapter_address=env.get("SWAP_ADAPTER_ADDRESS") or DEFAULT_SWAP_ADAPTER_ADDRESS,
            staking_adapter_address=env.get("STAKING_ADAPTER_ADDRESS") or DEFAULT_STAKING_ADAPTER_ADDRESS,
            llm_timeout_seconds=timeout,
            log_level=env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL,
        )
