"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    gemini_api_key: str = ""
    phiscan_env: str = "development"
    phiscan_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Critique endpoint
    gemini_model: str = "gemini-2.5-flash-preview-09-2025"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    critique_max_attempts: int = 5
    critique_backoff_base_s: float = 1.0
    critique_timeout_s: float = 60.0
    critique_max_output_tokens: int = 1000

    # Image preparation
    max_image_width: int = 1024
    image_decode_timeout_s: float = 10.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
