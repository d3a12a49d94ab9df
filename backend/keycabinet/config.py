from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str

    # CORS
    frontend_url: str = "http://localhost:8081"

    # Sessions are issued by the external auth service; we only validate them.
    session_cookie_name: str = "keycabinet_session"
    session_max_age_hours: int = 168  # 7 days

    # Loan duration bounds (hours)
    loan_min_hours: int = 1
    loan_max_hours: int = 12
    loan_default_hours: int = 1

    # Overdue monitor
    scheduler_enabled: bool = True
    overdue_sweep_enabled: bool = True
    overdue_sweep_interval_seconds: int = 60

    # Overdue notifications. When no webhook is configured the event is only logged.
    overdue_webhook_url: Optional[str] = None
    overdue_webhook_timeout_seconds: float = 10.0

    # Flask environment
    flask_env: str = "development"

    def is_dev(self) -> bool:
        """True when running in development mode."""
        return (self.flask_env or "").strip().lower() == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("overdue_webhook_url", mode="before")
    @classmethod
    def blank_webhook_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = str(value).strip()
        return normalized or None

    @field_validator("overdue_sweep_interval_seconds")
    @classmethod
    def validate_sweep_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("overdue_sweep_interval_seconds must be > 0")
        return value


settings = Settings()
