"""Application configuration using Pydantic Settings"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional
import os


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database (token registry backend)
    DATABASE_URL: str = "sqlite:///./data/tokens.db"

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None  # Defaults to backend/data/logs

    # API
    API_V1_PREFIX: str = "/api/v1"

    # HTTP Basic Auth for every API route
    API_AUTH_USER: str = "admin"
    API_AUTH_PASS: str  # Required - no default for security

    # APNS Configuration
    APNS_KEY_FILE: Optional[str] = None  # Path to .p8 auth key file
    APNS_KEY_ID: Optional[str] = None  # 10-character key identifier
    APNS_TEAM_ID: Optional[str] = None  # 10-character team identifier
    APNS_BUNDLE_ID: Optional[str] = None  # App bundle ID, sent as apns-topic
    APNS_USE_SANDBOX: bool = True  # Default environment when a request omits server_type
    APNS_CA_BUNDLE: Optional[str] = None  # PEM trust bundle; certifi when unset

    # Response polling: 150 rounds x 0.1s ~= 15s budget per delivery
    APNS_POLL_INTERVAL_SECONDS: float = 0.1
    APNS_MAX_POLL_ROUNDS: int = 150

    @field_validator('APNS_POLL_INTERVAL_SECONDS', mode='after')
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Poll interval must be positive."""
        if v <= 0:
            raise ValueError("APNS_POLL_INTERVAL_SECONDS must be positive")
        return v

    @field_validator('APNS_MAX_POLL_ROUNDS', mode='after')
    @classmethod
    def validate_poll_rounds(cls, v: int) -> int:
        """At least one poll round is required."""
        if v < 1:
            raise ValueError("APNS_MAX_POLL_ROUNDS must be at least 1")
        return v

    @field_validator('APNS_CA_BUNDLE', mode='after')
    @classmethod
    def validate_ca_bundle(cls, v: Optional[str]) -> Optional[str]:
        """Validate the CA bundle path exists when provided."""
        if v is not None and v.strip() and not os.path.exists(v):
            raise ValueError(f"APNS CA bundle not found: {v}")
        return v

    @property
    def apns_ready(self) -> bool:
        """Check if APNS is properly configured and ready to use."""
        return (
            self.APNS_KEY_FILE is not None
            and self.APNS_KEY_ID is not None
            and self.APNS_TEAM_ID is not None
            and self.APNS_BUNDLE_ID is not None
            and os.path.exists(self.APNS_KEY_FILE)
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


# Global settings instance
settings = Settings()
