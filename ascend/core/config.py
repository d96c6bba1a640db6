from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://ascend:ascend@db:5432/ascend"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://ascend.app,https://api.ascend.app"
    CORS_ORIGINS: str = "*"

    # Bearer token required by POST /admin/daily-rollup
    ADMIN_SECRET: str = "changeme-admin-secret"

    # Rollup tuning
    GRACE_TOKENS: int = 3
    SNAPSHOT_STALE_SECONDS: int = 3600
    INSIGHT_TTL_DAYS: int = 7
    INSIGHT_PERSISTENCE: Literal["best_effort", "strict"] = "best_effort"

    # Weekly narrative enrichment
    NARRATIVE_BACKEND: Literal["template", "http", "none"] = "template"
    NARRATIVE_SERVICE_URL: Optional[str] = None
    NARRATIVE_TIMEOUT_SECONDS: float = 5.0

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
