from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:5000/api"
    api_token: str = ""
    date_default_dayfirst: bool = False
    log_level: str = "INFO"

    # File intake
    upload_max_file_size_mb: int = 50
    preview_json_records: int = 5
    preview_text_lines: int = 6

    # Upload / retry
    upload_timeout_seconds: int = 300  # Hard wall-clock limit for a single upload
    upload_progress_interval_ms: int = 200  # Minimum gap between progress reports
    retry_max_attempts: int = 3
    default_scoring_engine: str = "default"

    # Mapping profile store calls
    request_timeout_seconds: int = 30

    model_config = ConfigDict(env_file=".env", env_prefix="CREDIT_INGEST_", extra="ignore")


settings = Settings()
