from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central settings object.
    Read from environment variables; locally you can use backend/.env.
    Values are read-only after startup.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Generative estimator (Gemini)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_RETRIES: int = 1
    GEMINI_MAX_BACKOFF_SECONDS: float = 2.0
    ESTIMATOR_TIMEOUT_SECONDS: float = 6.0

    # Web search (Brave)
    BRAVE_API_KEY: str = ""
    WEB_SEARCH_TIMEOUT_SECONDS: float = 4.0

    # Product database (Open Food Facts)
    OFF_BASE_URL: str = "https://world.openfoodfacts.org"
    OFF_TIMEOUT_SECONDS: float = 10.0
    OFF_USER_AGENT: str = "GreenScanner/1.0 (sustainability lookup)"

    # Append query/image diagnostics to the narrative
    NARRATIVE_DIAGNOSTICS: bool = True

    LOG_LEVEL: str = "INFO"

    # Versioning
    APP_VERSION: str = "1.0.0"
    BUILD_ID: str = "dev"


# other modules import this
settings = Settings()
