import logging
from typing import Any, ClassVar, FrozenSet

from pydantic_settings import BaseSettings, SettingsConfigDict

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./ndrop.db"

    # Database pool (applies to client/server DBs like Postgres; SQLite uses NullPool)
    DB_POOL_PRE_PING: bool = True
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_POOL_RECYCLE_SECONDS: int = 1800

    # Applied for Postgres connections only.
    DB_POSTGRES_ISOLATION_LEVEL: str = "READ COMMITTED"

    # JWT (tokens are issued by the identity gateway; we only validate them)
    # NOTE: This default is intentionally insecure and must never be used outside dev/test.
    DEFAULT_JWT_SECRET: ClassVar[str] = "dev-secret-change-me-please-32chars!!"
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Application
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Environment
    # Suggested values: dev|staging|prod.
    ENV: str = "dev"

    # Redis (shared rate-limit counters across workers)
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_ENABLED: bool = False

    # Rate limiting (Redis when enabled, otherwise per-process)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_REQUESTS_PER_WINDOW: int = 120

    # Observability
    METRICS_ENABLED: bool = True

    # Notifications
    # Privileged path writes notifications without row-level policy checks.
    # Disable it where no service-role credentials are available; delivery then
    # falls back to the standard (policy-checked) path.
    NOTIFICATIONS_PRIVILEGED_ENABLED: bool = True
    # Optional separate connection for the privileged path (service role).
    # Empty = reuse DATABASE_URL.
    NOTIFICATIONS_PRIVILEGED_DATABASE_URL: str = ""
    CHAT_NOTIFICATION_PREVIEW_CHARS: int = 50

    # Matching batch defaults (used when an event has no stored config)
    MATCHING_DEFAULT_MAX_REQUESTS_PER_USER: int = 5
    MATCHING_DEFAULT_INTEREST_WEIGHT: int = 10
    MATCHING_DEFAULT_SAME_WORK_FIELD_WEIGHT: int = 5
    # Upper bound (exclusive) of the random tie-breaking perturbation.
    MATCHING_SCORE_JITTER: float = 5.0

    # --- Guardrails ---
    # Fail-fast on obviously insecure secrets outside dev/test.
    _SAFE_ENVS: ClassVar[FrozenSet[str]] = frozenset({"dev", "development", "test", "testing"})
    _UNSAFE_PLACEHOLDERS: ClassVar[FrozenSet[str]] = frozenset(
        {
            "change-me-in-production",
            "change-me",
            "changeme",
            "",
        }
    )

    def model_post_init(self, __context: Any) -> None:
        # Runs on every Settings() instantiation (including module-level `settings = Settings()`).
        self._guardrail_default_secrets()
        self._guardrail_matching_defaults()

    def _guardrail_default_secrets(self) -> None:
        env = (self.ENV or "").strip().lower()
        if env in self._SAFE_ENVS:
            return

        v = (self.JWT_SECRET or "").strip()
        vl = v.lower()
        if v == self.DEFAULT_JWT_SECRET or vl in self._UNSAFE_PLACEHOLDERS or "change-me" in vl:
            raise RuntimeError(
                "Refusing to start with insecure default/placeholder secrets outside dev/test: "
                "JWT_SECRET. "
                f"Got ENV={self.ENV!r}. "
                "Set a secure value via the JWT_SECRET environment variable, "
                "or run with ENV=dev/test."
            )

    def _guardrail_matching_defaults(self) -> None:
        if self.MATCHING_DEFAULT_MAX_REQUESTS_PER_USER < 1:
            raise RuntimeError("MATCHING_DEFAULT_MAX_REQUESTS_PER_USER must be >= 1")
        if self.MATCHING_SCORE_JITTER < 0:
            raise RuntimeError("MATCHING_SCORE_JITTER must be >= 0")
        if self.MATCHING_SCORE_JITTER > 5:
            # Larger jitter can reorder candidates with a real scoring difference.
            _logger.warning(
                "config.matching_jitter_large value=%s", self.MATCHING_SCORE_JITTER
            )


settings = Settings()


def get_settings() -> Settings:
    """Return the global settings instance.

    Provided as a callable for FastAPI Depends() and test mocking convenience.
    """
    return settings
