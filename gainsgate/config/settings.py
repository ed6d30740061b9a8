"""Runtime settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GAINS_", extra="ignore")

    app_name: str = "GainsGate"
    log_level: str = "info"
    # DEBUG only: print the whole callable body (image data URLs are still elided)
    log_full_request_body: bool = False
    # the hosting platform collects stderr; the rotating file is for local runs
    log_to_file: bool = False
    log_dir: str = "logs"
    log_file_name: str = "gainsgate.log"
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    upstream_base_url: str = "https://api.openai.com/v1"
    upstream_timeout_seconds: float = 60.0
    upstream_max_connections: int = 100
    upstream_max_keepalive_connections: int = 20
    # secret injected by the platform, deliberately outside the GAINS_ prefix
    upstream_api_key_env: str = "OPENAI_API_KEY"

    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    conversational_max_tokens: int = 1000
    structured_max_tokens: int = 4000
    invocation_timeout_seconds: float = 60.0

    auth_token_secret: str = ""
    auth_token_leeway_seconds: int = 30


settings = Settings()
