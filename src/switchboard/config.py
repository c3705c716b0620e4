"""Configuration settings for the orchestrator."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the orchestrator."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 3001
    DEBUG: bool = True
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: List[str] = ["*"]

    # LLM Configuration
    PLANNER: str = "azure"  # Options: openai, azure, anthropic
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    AZURE_ENDPOINT: str | None = None
    AZURE_DEPLOYMENT_NAME: str | None = None
    AZURE_API_VERSION: str = "2024-02-15-preview"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    LLM_TEMPERATURE: float = 0.4
    LLM_MAX_TOKENS: int = 1500

    # Agent micro-services
    FLIGHT_AGENT_URL: str = "http://localhost:5002"
    TEAMS_AGENT_URL: str = "http://localhost:7000"
    WEATHER_AGENT_URL: str = "http://localhost:5003"
    LOCATION_AGENT_URL: str = "http://localhost:5004"
    POSTGRES_AGENT_URL: str = "http://localhost:5008"
    AGENT_TIMEOUT: float = 30.0

    # Sessions
    SESSION_TTL_MINUTES: int = 30
    SESSION_SWEEP_MINUTES: int = 10
    SESSION_HISTORY_TURNS: int = 40

    # Defaults used when a plan leaves something unresolved
    DEFAULT_TIMEZONE: str = "Asia/Kolkata"
    SELF_EMAIL_ADDRESSES: List[str] = []

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
