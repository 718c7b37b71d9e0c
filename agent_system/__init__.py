from .config import AgentSystemConfig, ConfigError
from .logging_config import configure_logging
from .system import AgentSystem, create_agent_system

__all__ = [
    "AgentSystem",
    "AgentSystemConfig",
    "ConfigError",
    "configure_logging",
    "create_agent_system",
]
