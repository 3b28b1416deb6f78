from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    service_name: str = "cleaner-dispatch"
    service_version: str = "0.1.0"
    log_level: str = "INFO"

    # Database
    expected_schema_version: str = "002_add_waitlist_entries.sql"  # Update on deploy when new migrations are added
    database_url: str | None = None
    pghost: str = "localhost"
    pgport: int = 5432
    pguser: str = "postgres"
    pgpassword: str = ""
    pgdatabase: str = "postgres"
    pg_pool_min: int = 2
    pg_pool_max: int = 20
    pg_command_timeout: float = 10.0

    # Every storage call made by the core is bounded by this (seconds)
    storage_timeout_seconds: float = 5.0

    # Pricing
    hourly_rate: float = 45.0  # currency units per hour, charged in cents

    # Dispatch
    dispatch_max_radius_km: float | None = None  # None = no radius cut-off
    dispatch_exclusive_workers: bool = False  # Skip workers already holding an accepted job

    # Security
    allowed_origins: list[str] = ["*"]

    # Monitoring & Metrics
    enable_metrics: bool = True

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url

        return (
            f"postgresql://{self.pguser}:{self.pgpassword}"
            f"@{self.pghost}:{self.pgport}/{self.pgdatabase}"
        )

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []

        required_fields = [
            ("database_url", self.database_url),
        ]

        for field_name, value in required_fields:
            if not value:
                missing.append(field_name)

        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if s.storage_timeout_seconds <= 0:
        warnings.append("storage_timeout_seconds <= 0: storage calls will time out immediately.")

    if s.storage_timeout_seconds > s.pg_command_timeout:
        warnings.append(
            "storage_timeout_seconds exceeds pg_command_timeout: the pool will cancel "
            "queries before the core gives up on them."
        )

    if s.hourly_rate <= 0:
        warnings.append("hourly_rate <= 0: every job will be priced at the 1 cent minimum.")

    if s.dispatch_max_radius_km is not None and s.dispatch_max_radius_km <= 0:
        warnings.append("dispatch_max_radius_km <= 0: no cleaner will ever be matched.")

    if s.dispatch_exclusive_workers:
        warnings.append(
            "dispatch_exclusive_workers=True: cleaners stay busy until their accepted "
            "job leaves the 'accepted' status."
        )

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")

settings = Settings()
validate_or_warn(settings)
