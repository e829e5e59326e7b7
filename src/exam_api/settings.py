"""Settings for the examination portal API."""

from typing import List
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the examination portal API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) reads
    configuration values from environment variables and validates them.

    This class automatically reads from:
    1. Environment variables (production)
    2. .env file (local development)

    Environment variable names are treated case-insensitively.
    """

    # Relational store
    domain_db_connection_string: str
    """PostgreSQL connection string for the portal database (required)."""

    # Blob store
    azure_storage_connection_string: Optional[str] = None
    """Azure Storage Account connection string for attachments (preferred)."""

    azure_storage_account_url: Optional[str] = None
    """Azure Storage Account URL, used with DefaultAzureCredential when no connection string is set."""

    # Email provider (server side only)
    brevo_api_key: Optional[str] = None
    """Brevo transactional email API key. Deliveries fail while unset."""

    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    """Brevo transactional email endpoint."""

    email_timeout_seconds: float = 10.0
    """Timeout for a single provider call."""

    notification_sender_email: str = "examcontrol@srmist.edu.in"
    """From address for notifications."""

    notification_sender_name: str = "SRMIST Examination Control Team"
    """From display name for notifications."""

    portal_name: str = "SRM Examination Control Portal"
    """Header text of notification emails."""

    institution_name: str = "SRMIST Examination Control Team"
    """Signature used in notification bodies."""

    # Identity
    allowed_email_domains: List[str] = ["@srmist.edu.in", "@srmist.in"]
    """Email suffixes accepted from the identity provider."""

    gateway_shared_secret: Optional[str] = None
    """When set, callers must present it in X-Gateway-Secret."""

    # Notification sweep
    notification_sweep_limit: int = 10
    """Default number of pending notifications handled per sweep."""

    enable_notification_sweeper: bool = False
    """Run a periodic sweep task inside the web process."""

    notification_sweep_interval_seconds: float = 60.0
    """Interval of the periodic sweep task."""

    notification_claim_seconds: float = 300.0
    """Lease a sender holds on a notification while delivering it; expired leases are retried."""

    log_level: str = "INFO"
    """Minimum level for the stdout log sink."""

    log_json: bool = False
    """Emit one JSON document per log line instead of the console format."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )
