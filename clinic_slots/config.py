import os
from typing import Optional

from pydantic import BaseModel


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    backend_base_url: str = os.getenv("BACKEND_BASE_URL", "http://localhost:8000/")
    backend_token: Optional[str] = os.getenv("BACKEND_TOKEN")
    request_timeout: float = float(os.getenv("BACKEND_TIMEOUT", "25"))
    ws_base_url: str = os.getenv("WS_BASE_URL", "ws://localhost:8080")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = _split_origins(os.getenv("CORS_ORIGINS", "*"))


settings = Settings()
