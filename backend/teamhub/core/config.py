from functools import lru_cache
from typing import List, Optional

from json import loads as json_loads, JSONDecodeError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the teamhub backend.

    All values come from environment variables or backend/.env.
    This is the single source of truth for:
    - environment (dev/staging/prod)
    - database URL
    - CORS / allowed origins
    - auth / token settings
    - invite email delivery (self-host mode, provider, sender)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # High-level environment flags
    environment: str = Field(
        default="dev",
        description="Deployment environment identifier (dev|staging|prod)",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./teamhub.db",
        description="SQLAlchemy-style DB URL (SQLite for dev, Postgres in prod).",
    )

    # Auth / tokens
    jwt_secret: str = Field(
        default="supersecret",
        description="JWT signing secret; override in all non-dev environments.",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm. HS256 by default.",
    )

    # CORS / frontends
    allowed_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        description=(
            "Allowed frontend origins. Either a comma-separated string or a JSON list."
        ),
    )

    # API docs toggle
    enable_docs: bool = Field(
        default=False,
        description="If true, exposes /api/docs and /api/redoc.",
    )

    # Invites
    self_host_mode: bool = Field(
        default=False,
        description="Self-hosted deployments create invites without sending emails.",
    )
    app_login_url: str = Field(
        default="https://deco.chat",
        description="URL invited users are pointed at to log in.",
    )
    invite_email_workers: int = Field(
        default=8,
        description="Max parallel invite email sends per request.",
    )

    # Email delivery
    email_provider: str = Field(default="log", description="log | resend | smtp")
    email_from: Optional[str] = Field(default=None)
    resend_api_key: Optional[str] = Field(default=None)

    # Performance budgets (warnings only)
    slow_http_ms: float = Field(default=1500.0)
    slow_db_query_ms: float = Field(default=250.0)

    def origins_list(self) -> List[str]:
        """
        Normalize ALLOWED_ORIGINS into a clean List[str] for CORSMiddleware.

        Supports two formats:
        - Comma-separated string:
            ALLOWED_ORIGINS=http://127.0.0.1:5173,http://localhost:5173
        - JSON array:
            ALLOWED_ORIGINS=["http://127.0.0.1:5173","http://localhost:5173"]
        """
        raw = self.allowed_origins
        if not raw:
            return []

        raw_str = str(raw).strip()

        if raw_str.startswith("[") and raw_str.endswith("]"):
            try:
                parsed = json_loads(raw_str)
                if isinstance(parsed, list):
                    return [str(o).strip() for o in parsed if str(o).strip()]
            except JSONDecodeError:
                # Fall back to naive split if JSON is malformed
                pass

        return [o.strip() for o in raw_str.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the app only parses env once.
    """
    return Settings()


settings = get_settings()
