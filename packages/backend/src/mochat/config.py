"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with MOCHAT_ prefix.
The module-level `settings` object holds the defaults; create_app() accepts
an explicit Settings instance so tests can point at a throwaway database.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via MOCHAT_* env vars."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./mochat.db"
    create_tables: bool = True
    db_echo: bool = False  # log every SQL statement

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Realtime
    ws_send_queue_size: int = 256  # outbound frames buffered per connection

    # History reads
    history_page_max: int = 100

    model_config = {"env_prefix": "MOCHAT_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "MOCHAT_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        return self


# Defaults; create_app() falls back to this when no Settings is passed
settings = Settings()
