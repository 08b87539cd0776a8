# backend/config.py
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import ClassVar, List
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./database_labflow.db"

    # Which routers this instance serves: "auth", "lab" or both
    ENABLED_SERVICES: str = "auth,lab"

    # JWT issuance / verification
    JWT_ISSUER: str = "ms-auth"
    JWT_EXPIRATION_MINUTES: int = Field(60, ge=1)
    JWT_RSA_PUBLIC: str = ""
    JWT_RSA_PRIVATE: str = ""
    JWT_JWKS_URI: str = ""
    JWT_ALLOWED_SKEW_SECONDS: int = Field(0, ge=0)

    BCRYPT_ROUNDS: int = Field(12, ge=4, le=31)

    # CORS: explicit origins plus localhost on any port
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"
    CORS_ORIGIN_REGEX: str = r"http://(localhost|127\.0\.0\.1)(:\d+)?"

    # Optional first administrator, created once if missing
    BOOTSTRAP_ADMIN_USERNAME: str = ""
    BOOTSTRAP_ADMIN_EMAIL: str = ""
    BOOTSTRAP_ADMIN_PASSWORD: str = ""

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

    @property
    def enabled_services(self) -> List[str]:
        return [s.strip().lower() for s in self.ENABLED_SERVICES.split(",") if s.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
