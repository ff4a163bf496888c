"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com"
    TGI_ENDPOINT: str | None = None  # e.g. http://tgi:8080/generate
    DEFAULT_MODEL: str = "gpt-4o"
    LLM_TIMEOUT: float = 120.0
    LLM_MAX_RETRIES: int = 0  # retries belong to the transport, not the agent loop

    # Agent loop
    MAX_ITERATIONS: int = 5
    HISTORY_LIMIT: int = 20

    # Research tools
    GOOGLE_SEARCH_API_KEY: str | None = None
    GOOGLE_SEARCH_ENGINE_ID: str | None = None
    GOOGLE_SEARCH_URL: str = "https://customsearch.googleapis.com/customsearch/v1"
    SEARCH_COUNTRY: str = "countryDK"
    SEARCH_RESULTS: int = 5
    TOOL_TIMEOUT: float = 30.0
    FETCH_MAX_CHARS: int = 5000

    # Aula school portal
    AULA_USERNAME: str | None = None
    AULA_PASSWORD: str | None = None
    AULA_API_URL: str = "https://www.aula.dk/api/v20"
    AULA_LOGIN_URL: str = "https://login.aula.dk/auth/authenticate"
    AULA_SESSION_TTL: int = 3600

    # Conversation audit trail (JSON lines); disabled when unset
    AUDIT_LOG_PATH: str | None = None

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
