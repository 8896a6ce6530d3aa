from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, SecretStr, model_validator


class AgentConfig(BaseModel):
    """Configuration for a specific agent's LLM."""
    provider: str = "openai"
    model: str = "gpt-4.1-mini"
    temperature: float = 0.0
    api_key: Optional[SecretStr] = None
    base_url: Optional[str] = None


class LLMFileConfig(BaseModel):
    """Global LLM configuration (File Envelope).

    Agent blocks only need the keys they override; everything else is
    inherited from ``default``.
    """
    version: int = Field(1, description="Schema version")
    default: AgentConfig
    agents: Optional[Dict[str, AgentConfig]] = None

    @model_validator(mode="before")
    @classmethod
    def inherit_default(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        default = data.get("default")
        agents = data.get("agents")
        if not isinstance(default, dict) or not isinstance(agents, dict):
            return data
        merged = {}
        for name, overrides in agents.items():
            if isinstance(overrides, dict):
                merged[name] = {**default, **overrides}
            else:
                merged[name] = overrides
        return {**data, "agents": merged}
