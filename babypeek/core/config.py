"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings

WEAK_SECRETS = ("changeme", "secret", "password", "admin")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:3000,https://babypeek.io). Empty = default list in main.
    cors_origins: str = ""
    # Public base URL used to build signed download links
    public_base_url: str = "http://localhost:8000"
    # Root directory of the local object store (uploads/{job_id}/, results/{job_id}/)
    storage_base_path: str = "/data"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # JOBS & RETENTION
    # ===========================================
    job_retention_days: int = 30
    # HD downloads stay available this long after the purchase completed
    download_window_days: int = 30
    # Downloads per IP hash per hour before an abuse warning is logged (not blocked)
    download_abuse_threshold: int = 10
    # Signed preview links on public share pages
    share_preview_ttl_seconds: int = 24 * 3600
    session_token_bytes: int = 32
    # Style variants attempted per job, in variant_index order
    variant_descriptors: str = "v3,v3-json,v4,v4-json"

    # ===========================================
    # GENERATION PROVIDER (external)
    # ===========================================
    generation_api_url: str = ""
    generation_api_key: str = ""
    generation_timeout: float = 180.0
    generation_retry_max_attempts: int = 2
    generation_retry_backoff_seconds: float = 2.0

    # ===========================================
    # SHARED SECRETS
    # ===========================================
    worker_callback_secret: str  # Required, no default
    payment_webhook_secret: str  # Required, no default
    signed_url_secret: str  # Required, no default
    signed_url_ttl_seconds: int = 3600
    admin_api_key: str | None = None  # Optional, protects /cleanup/run

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("variant_descriptors")
    @classmethod
    def validate_variant_descriptors(cls, v: str) -> str:
        """At least one variant must be attempted."""
        if not [d for d in v.split(",") if d.strip()]:
            raise ValueError("variant_descriptors must list at least one descriptor")
        return v.strip()

    @field_validator("worker_callback_secret", "payment_webhook_secret", "signed_url_secret")
    @classmethod
    def validate_shared_secret(cls, v: str) -> str:
        """Ensure shared secrets are reasonably secure."""
        if len(v) < 16:
            raise ValueError("shared secrets must be at least 16 characters")
        if v in WEAK_SECRETS:
            raise ValueError("shared secret is too weak, please change it")
        return v

    @property
    def variant_descriptors_list(self) -> list[str]:
        """Variant descriptors in variant_index order."""
        return [d.strip() for d in self.variant_descriptors.split(",") if d.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
