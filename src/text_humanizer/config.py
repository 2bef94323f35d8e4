from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_version: str = "0.1.0"
    database_path: str = "data/humanizer.db"
    log_level: str = "INFO"

    humanizer_api_key: str = ""
    humanizer_base_url: str = "https://humanize.undetectable.ai"
    humanizer_readability: str = "High School"
    humanizer_purpose: str = "General Writing"
    humanizer_strength: str = "More Human"
    humanizer_model: str = "v2"
    humanizer_user_agent: str = "text-humanizer/0.1"
    humanizer_document_type: str = "Text"
    humanizer_document_url: str = "https://example.com/"

    poll_max_attempts: int = 10
    poll_interval_sec: float = 3.0
    http_timeout_sec: int = 30

    default_credits: int = 1000

    admin_api_token: str = ""


settings = Settings()
