from __future__ import annotations

from threading import RLock
from typing import Dict

from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from dbtgen.common.settings import settings
from dbtgen.configs import AgentConfig, LLMFileConfig

SCHEMA_AGENT = "schema"
RULES_AGENT = "rules"
CHAT_AGENT = "chat"


class LLMRegistry:
    """
    Builds and caches chat models for the three agents of the tool.

    Handles:
    - Per-agent configuration with fallback to the ``default`` block.
    - API key resolution (config first, then ``OPENAI_API_KEY``).
    - JSON-mode binding for the document generators.
    """

    def __init__(self, config: LLMFileConfig):
        self.config = config
        self._llms: Dict[str, ChatOpenAI] = {}
        self._lock = RLock()

    def _agent_cfg(self, agent: str) -> AgentConfig:
        return (self.config.agents or {}).get(agent) or self.config.default

    def _base_llm(self, agent: str) -> ChatOpenAI:
        cfg = self._agent_cfg(agent)
        if cfg.provider != "openai":
            raise ValueError(f"Unsupported LLM provider: {cfg.provider}")

        key_val = cfg.api_key.get_secret_value() if cfg.api_key else settings.openai_api_key
        if not key_val:
            raise RuntimeError("OPENAI_API_KEY is not set and no api_key provided in config.")

        return ChatOpenAI(
            model=cfg.model,
            temperature=cfg.temperature,
            api_key=key_val,
            base_url=cfg.base_url,
            streaming=True,
            tags=[agent],
        )

    def get_llm(self, agent: str) -> ChatOpenAI:
        """Returns the (cached) chat model for an agent."""
        with self._lock:
            if agent not in self._llms:
                self._llms[agent] = self._base_llm(agent)
            return self._llms[agent]

    def json_llm(self, agent: str) -> Runnable:
        """Returns the agent's model constrained to emit a single JSON object."""
        return self.get_llm(agent).bind(response_format={"type": "json_object"})

    def get_llm_config(self, agent: str) -> dict:
        return self._agent_cfg(agent).model_dump(exclude={"api_key"})
