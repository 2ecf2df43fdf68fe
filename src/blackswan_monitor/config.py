from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from pathlib import Path
from typing import Optional

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    OPENROUTER_API_KEY: Optional[str] = Field(None, description="Bearer credential for the reasoning endpoint")
    OPENROUTER_BASE_URL: str = Field("https://openrouter.ai/api/v1", description="OpenAI-compatible API base URL")
    MODEL: str = "openai/gpt-5-mini"
    TEMPERATURE: float = 0.3
    MAX_TOKENS: int = 50000
    REQUEST_TIMEOUT_SECONDS: float = Field(120.0, description="Upper bound for one analysis request")

    DB_PATH: str = Field("./blackswan.sqlite", description="Path to SQLite database")
    RESULTS_TABLE: str = "blackswan_analyses"
    HISTORY_LIMIT: int = 5
    RECENT_DEFAULT_LIMIT: int = 10
    RECENT_MAX_LIMIT: int = 50

    FEED_POLL_INTERVAL_SECONDS: float = 5.0
    ANALYSIS_INTERVAL_HOURS: int = 1
    SCHEDULER_ENABLED: bool = True

    PROMPTS_DIR: str = Field(str(PACKAGE_DIR / "data" / "prompts"), description="Prompt template directory")
    SERVICE_NAME: str = "macro-blackswan-analysis-service"
    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # MLflow settings
    MLFLOW_TRACKING_URI: str = Field("http://127.0.0.1:5000", description="MLflow tracking server URI")
    MLFLOW_ENABLE_TRACING: bool = Field(False, description="Enable MLflow tracing")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

@lru_cache()
def get_settings() -> Settings:
    return Settings()
