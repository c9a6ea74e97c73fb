from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    PORT: int = 8787

    # Sliding window rate limit, per client address
    RATE_LIMIT_WINDOW_MS: int = 60000
    RATE_LIMIT_RPM: int = 30

    # Comma-separated origins, "*" allowed. Unset = allow all
    ALLOWED_ORIGIN: Optional[str] = None

    # Unset = no app-level auth
    APP_AUTH_TOKEN: Optional[str] = None

    # Provider keys
    OPENAI_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    COHERE_API_KEY: Optional[str] = None

    OPENAI_MODEL: str = "gpt-3.5-turbo"
    GEMINI_MODEL: str = "gemini-1.5-flash"
    COHERE_MODEL: str = "command-r"

    REALTIME_MODEL: str = "gpt-4o-realtime-preview-2024-12-17"
    REALTIME_VOICE: str = "alloy"

    PROVIDER_TIMEOUT_SECONDS: float = 30.0

    REDIS_URL: Optional[str] = None

    # Debug flag
    RELAY_LOG_PAYLOADS: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def allowed_origins(self) -> Optional[List[str]]:
        if not self.ALLOWED_ORIGIN:
            return None
        origins = [o.strip() for o in self.ALLOWED_ORIGIN.split(",") if o.strip()]
        return origins or None

    @property
    def auth_token(self) -> Optional[str]:
        return self.APP_AUTH_TOKEN or None

    def provider_key(self, name: str) -> Optional[str]:
        key = getattr(self, f"{name.upper()}_API_KEY", None)
        if key and key.strip():
            return key.strip()
        return None


settings = Settings()
