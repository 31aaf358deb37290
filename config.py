import logging
import os

from pydantic import BaseModel, ConfigDict


class Settings(BaseModel):
    """Process-wide configuration, read from the environment once at start-up."""

    model_config = ConfigDict(frozen=True)

    database_url: str = "mongodb://localhost:27017"
    database_name: str = "data-vista"
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7
    frontend_url: str = "http://localhost:5173"
    environment: str = "production"
    port: int = 4001
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            database_name=os.getenv("DATABASE_NAME", defaults.database_name),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            token_ttl_days=int(os.getenv("TOKEN_TTL_DAYS", defaults.token_ttl_days)),
            frontend_url=os.getenv("FRONTEND_URL", defaults.frontend_url),
            environment=os.getenv("APP_ENV", defaults.environment),
            port=int(os.getenv("PORT", defaults.port)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def allowed_origin(self) -> str:
        return self.frontend_url.rstrip("/")


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
