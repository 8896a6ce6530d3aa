from .llm import LLMFileConfig, AgentConfig
from .manager import ConfigManager
