"""
Configuration management with Pydantic Settings
Loads from .env file with validation and defaults
"""

import os
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation"""

    # Storage
    upload_dir: str = Field(default="uploads", description="Directory for uploads and derived audio")
    static_dir: str = Field(
        default=os.path.join(os.path.dirname(__file__), "static"),
        description="Directory with the upload page"
    )

    # Size limits
    max_upload_size_bytes: int = Field(
        default=100 * 1024 * 1024,
        description="Max accepted upload size"
    )
    max_openai_file_size_bytes: int = Field(
        default=25 * 1024 * 1024,  # 25MB Whisper limit
        description="Max payload size for one transcription call"
    )
    max_split_parts: int = Field(default=4, description="Upper bound on split parts")
    reduced_bitrate: str = Field(default="64k", description="Bitrate for compressed and split audio")

    # OpenAI Whisper
    openai_api_url: str = Field(
        default="https://api.openai.com/v1/audio/transcriptions",
        description="Whisper transcription endpoint"
    )
    openai_model: str = Field(default="whisper-1", description="Transcription model")
    openai_request_timeout_seconds: float = Field(
        default=300.0,  # 5 minutes for large uploads
        description="Timeout for one transcription request"
    )
    transcription_max_retries: int = Field(default=4, description="Retries on connection errors")
    transcription_retry_delay_seconds: float = Field(default=1.0, description="First retry delay")
    transcription_backoff_factor: float = Field(default=2.0, description="Backoff multiplier")
    transcription_concurrency: int = Field(
        default=1,
        description="Parts transcribed at once (1 = strictly sequential)"
    )

    # Lifecycle
    persist_transcripts: bool = Field(default=True, description="Write .txt next to the upload")
    cleanup_on_startup: bool = Field(default=True, description="Sweep leftovers on startup")
    stale_file_max_age_seconds: int = Field(
        default=7200,  # longer than one request with every retry exhausted
        description="Age after which leftover audio and transcripts are swept"
    )

    # Environment
    environment: str = Field(default="development", description="Environment")
    log_level: str = Field(default="INFO", description="Log level")
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, description="Bind port")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        if v not in ["development", "production", "testing"]:
            raise ValueError("Environment must be development, production, or testing")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("Invalid log level")
        return v

    @field_validator("max_split_parts", "transcription_concurrency")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def create_directories(self):
        """Create necessary directories"""
        os.makedirs(self.upload_dir, exist_ok=True)

    model_config = {
        "extra": "ignore",  # Ignore extra fields from .env
        "env_file": ".env",
        "case_sensitive": False
    }


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings"""
    return settings
