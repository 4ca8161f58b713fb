# notifier/config.py
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
    log_level: str = "INFO"

    # Security
    allowed_origins: list[str] = ["*"]
    metrics_token: str | None = None  # Bearer token for /metrics (open in dev when unset)

    # Firebase Realtime Database (recipient directory)
    firebase_database_url: str | None = None  # e.g. https://my-project-default-rtdb.firebaseio.com
    firebase_database_auth: str | None = None  # Database secret or ID token, sent as ?auth=
    recipients_path: str = "usuarios"
    groups_path: str = "comunidades"
    # Group member token lookups: sequential (one round trip after another) by default.
    # Results are identical either way, only latency changes.
    directory_parallel_lookups: bool = False

    # Firebase Cloud Messaging (HTTP v1)
    fcm_project_id: str | None = None
    fcm_access_token: str | None = None  # OAuth2 bearer token minted outside this service
    fcm_api_base: str = "https://fcm.googleapis.com"
    push_dry_run: bool = False  # validate_only=true: FCM checks the message but does not deliver it

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
    def directory_enabled(self) -> bool:
        """Check if the Realtime Database directory is configured"""
        return bool(self.firebase_database_url)

    @property
    def fcm_enabled(self) -> bool:
        """Check if FCM credentials are configured"""
        return bool(self.fcm_project_id and self.fcm_access_token)

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        required_fields = [
            ("firebase_database_url", self.firebase_database_url),
            ("fcm_project_id", self.fcm_project_id),
            ("fcm_access_token", self.fcm_access_token),
        ]

        return [name for name, value in required_fields if not value]


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if s.enable_metrics and not s.metrics_token and s.is_production:
        warnings.append("prod: enable_metrics=True but metrics_token is not set (/metrics will refuse access).")

    if not s.directory_enabled:
        warnings.append("firebase_database_url is not set (every notify request will fail with a directory error).")
    elif not s.firebase_database_auth:
        warnings.append("firebase_database_auth is not set (directory reads rely on public database rules).")

    if not s.fcm_enabled:
        warnings.append("fcm_project_id/fcm_access_token missing (every push send will fail).")

    if s.push_dry_run:
        warnings.append("push_dry_run=True: FCM validates messages but nothing is delivered.")

    return warnings


def validate_or_warn(s: "Settings") -> list[str]:
    """
    In prod: enforce required settings (hard fail).
    In all envs: return warnings for the caller to log.
    """
    missing = s.validate_required_for_production()
    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    return warn_on_risky_config(s)


settings = Settings()
