from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "BrandScope"
    debug: bool = False
    log_level: str = "INFO"

    gemini_api_key: Optional[str] = None
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_verification_model: str = "gemini-2.5-flash"

    openai_api_key: Optional[str] = None
    openai_api_base: str = "https://api.openai.com/v1"

    perplexity_api_key: Optional[str] = None
    perplexity_api_base: str = "https://api.perplexity.ai"
    perplexity_verification_model: str = "sonar"

    websearch_analysis_model: str = "gpt-4o-mini"

    analysis_max_retries: int = 2
    analysis_retry_base_delay: float = 1.0
    http_timeout_seconds: float = 120.0

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False


settings = Settings()
