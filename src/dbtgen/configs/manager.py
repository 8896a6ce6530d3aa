import pathlib
from typing import Optional

import yaml
from pydantic import ValidationError

from dbtgen.common.settings import settings
from .llm import AgentConfig, LLMFileConfig


class ConfigManager:
    """
    Reads LLM configuration files.

    When no file exists, the configuration is built from environment settings
    so the tool works with only ``OPENAI_API_KEY`` set.
    """

    def __init__(self, project_root: Optional[pathlib.Path] = None):
        root = project_root or pathlib.Path.cwd()
        self._llm_path = root / settings.llm_config_path

    def load_llm(self, path: Optional[pathlib.Path] = None) -> LLMFileConfig:
        """
        Loads LLM configuration from YAML.

        Raises:
            FileNotFoundError: If an explicit path does not exist.
            ValueError: If the YAML is malformed or fails validation.
        """
        target_path = path or self._llm_path

        if not target_path.exists():
            if path is None:
                return self.default_llm_config()
            raise FileNotFoundError(f"LLM config not found: {target_path}")

        try:
            data = yaml.safe_load(target_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML from {target_path}: {e}")

        try:
            return LLMFileConfig.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"LLM Configuration Invalid: {e}")

    @staticmethod
    def default_llm_config() -> LLMFileConfig:
        return LLMFileConfig(
            default=AgentConfig(
                provider="openai",
                model=settings.llm_model,
                base_url=settings.llm_base_url,
            )
        )
