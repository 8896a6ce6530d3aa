from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Application configuration settings backed by environment variables."""

    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    llm_config_path: str = Field(default="configs/llm.yaml", validation_alias="LLM_CONFIG")
    llm_model: str = Field(
        default="gpt-4.1-mini",
        validation_alias="LLM_MODEL",
        description="Model used when no LLM config file is present."
    )
    llm_base_url: Optional[str] = Field(
        default=None,
        validation_alias="LLM_BASE_URL",
        description="OpenAI-compatible base URL (OpenAI, OpenRouter, Ollama...)."
    )

    sample_rows_per_sheet: int = Field(
        default=5,
        validation_alias="SAMPLE_ROWS_PER_SHEET",
        description="Number of sample rows per sheet included in the schema prompt."
    )

    patch_sentinel: str = Field(
        default="DBT_RULE_JSON:",
        validation_alias="PATCH_SENTINEL",
        description="Marker preceding the inline JSON patch in a chat response."
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit JSON log lines instead of plain text."
    )

    llm_breaker_fail_max: int = Field(
        default=5,
        validation_alias="LLM_BREAKER_FAIL_MAX",
        description="Consecutive LLM stream failures before the breaker opens."
    )
    llm_breaker_reset_sec: int = Field(
        default=60,
        validation_alias="LLM_BREAKER_RESET_SEC",
        description="Seconds the LLM breaker stays open before a trial call."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)

settings = Settings()

# Configure logging during import
from dbtgen.common.logger import configure_logging
configure_logging(
    level=settings.log_level,
    json_format=settings.log_json
)
