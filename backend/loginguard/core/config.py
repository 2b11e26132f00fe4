import os
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

from loginguard.models.principal import Role


def _get_version() -> str:
    """Read version from pyproject.toml or environment variable."""
    # First check environment variable (for Docker/CI overrides)
    if env_version := os.getenv("LOGINGUARD_VERSION"):
        return env_version

    try:
        pyproject_path = Path(__file__).parent.parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            content = pyproject_path.read_text()
            for line in content.split("\n"):
                if line.startswith("version"):
                    # Parse: version = "0.1.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
    except OSError:
        pass

    return "0.0.0-dev"


APP_VERSION = _get_version()

DEFAULT_LOCK_TIERS_MS = [60_000, 300_000, 900_000, 3_600_000]


class Settings(BaseSettings):
    # App
    APP_NAME: str = "loginguard"
    ENVIRONMENT: Literal["development", "test", "production"] = "production"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Per-user limiter (key = normalized email)
    USER_MAX_ATTEMPTS: int = 5
    USER_LOCK_TIERS_MS: list[int] = DEFAULT_LOCK_TIERS_MS
    USER_RECORD_TTL_SECONDS: int = 24 * 60 * 60
    USER_MAX_TRACKED_KEYS: int = 50_000

    # Per-address limiter (key = client IP). A shared address (NAT, office
    # egress) gets a higher free-attempt ceiling than a single account.
    IP_MAX_ATTEMPTS: int = 10
    IP_LOCK_TIERS_MS: list[int] = DEFAULT_LOCK_TIERS_MS
    IP_RECORD_TTL_SECONDS: int = 60 * 60
    IP_MAX_TRACKED_KEYS: int = 10_000

    # Idle records are swept opportunistically every N writes
    SWEEP_EVERY_N_WRITES: int = 100

    # Admin API. SECURITY_API_TOKEN is always an admin principal; API_TOKENS
    # maps additional bearer tokens to roles, e.g. {"tok": "moderator"}
    SECURITY_API_TOKEN: str | None = None
    API_TOKENS: dict[str, Role] = {}

    # email -> passlib hash, used by /api/auth/login
    LOGIN_ACCOUNTS: dict[str, str] = {}

    # Trust X-Forwarded-For / X-Real-IP / CF-Connecting-IP. Enable only behind a
    # proxy that overwrites them; otherwise clients pick their own address key.
    TRUST_PROXY_HEADERS: bool = False

    MAX_REQUEST_SIZE: int = 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @field_validator("USER_MAX_ATTEMPTS", "IP_MAX_ATTEMPTS")
    @classmethod
    def validate_threshold(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("USER_LOCK_TIERS_MS", "IP_LOCK_TIERS_MS")
    @classmethod
    def validate_tiers(cls, v: list[int], info) -> list[int]:
        """Tiers must be a non-empty, positive, non-decreasing schedule."""
        if not v:
            raise ValueError(f"{info.field_name} must contain at least one tier")
        if any(tier <= 0 for tier in v):
            raise ValueError(f"{info.field_name} tiers must be positive")
        if any(later < earlier for earlier, later in zip(v, v[1:])):
            raise ValueError(f"{info.field_name} tiers must be non-decreasing")
        return v

    @field_validator("USER_RECORD_TTL_SECONDS", "IP_RECORD_TTL_SECONDS", "USER_MAX_TRACKED_KEYS",
                     "IP_MAX_TRACKED_KEYS", "SWEEP_EVERY_N_WRITES")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator("LOGIN_ACCOUNTS")
    @classmethod
    def normalize_accounts(cls, v: dict[str, str]) -> dict[str, str]:
        return {email.strip().lower(): password_hash for email, password_hash in v.items()}

    @field_validator("SECURITY_API_TOKEN")
    @classmethod
    def validate_security_token(cls, v: str | None, info) -> str | None:
        """Reject short admin tokens outside development and test."""
        if v is None or v.strip() == "":
            return None

        environment = info.data.get("ENVIRONMENT", "production")
        if environment == "production" and len(v) < 32:
            raise ValueError(
                "SECURITY_API_TOKEN must be at least 32 characters long in production. "
                "Generate a secure token using: openssl rand -base64 32"
            )
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
