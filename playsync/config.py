from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # HTTP
    HTTP_SERVER_HOST: str = "0.0.0.0"
    HTTP_SERVER_PORT: int = 9000
    CONTENT_DIR: str = "./content"

    # Sync Logic
    START_TIME_WINDOW_SIZE: int = Field(20, ge=1)
    EPOCH_WRAP_THRESHOLD: int = Field(100, ge=0)
    SYNC_MISMATCH_POLICY: Literal["log", "reset"] = "log"

    # System
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
