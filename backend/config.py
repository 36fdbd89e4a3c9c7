"""TeslaDash application configuration."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "TeslaDash"
    app_version: str = "0.4.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Storage
    data_dir: str = os.environ.get("TESLADASH_DATA_DIR", str(Path(__file__).parent.parent / "data"))
    database_url: str = ""
    setup_file: str = ""

    # Vehicle credentials (the setup store takes precedence)
    provider: str = ""  # "tessie" | "fleet"
    api_key: str = ""
    tessie_api_key: str = ""
    fleet_api_key: str = ""
    vehicle_id: str = ""

    # Provider endpoints
    tessie_api_base_url: str = "https://api.tessie.com"
    fleet_api_base_url: str = "https://fleet-api.prd.na.vn.cloud.tesla.com"
    http_timeout_seconds: float = 30.0

    # Rate limits
    tessie_rate_limit_calls: int = 200
    tessie_rate_limit_window_seconds: int = 900  # 15 minutes
    fleet_rate_limit_calls: int = 1000
    fleet_rate_limit_window_seconds: int = 86400  # 24 hours
    wake_rate_limit_calls: int = 5
    wake_rate_limit_window_seconds: int = 900

    # Gateway
    vehicle_cache_ttl_seconds: float = 30.0
    wake_settle_seconds: float = 5.0

    # Automation
    automation_interval_seconds: int = 60
    automation_action_delay_seconds: float = 1.0

    # Notifications
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = ""
    notification_email: str = ""
    webhook_url: str = ""

    model_config = {
        "env_prefix": "TESLADASH_",
        "env_file": ".env",
        "extra": "ignore",
    }

    def model_post_init(self, __context):
        """Set computed defaults after init."""
        if not self.database_url:
            self.database_url = f"sqlite+aiosqlite:///{self.data_dir}/tesladash.db"
        if not self.setup_file:
            self.setup_file = os.path.join(self.data_dir, "setup.json")

    def credential_fallbacks(self) -> dict:
        """Environment-provided values for keys the setup store may not hold yet."""
        return {
            "provider": self.provider,
            "api_key": self.api_key,
            "tessie_api_key": self.tessie_api_key,
            "fleet_api_key": self.fleet_api_key,
            "vehicle_id": self.vehicle_id,
            "notify_webhook_url": self.webhook_url,
            "notify_smtp_host": self.smtp_host,
            "notify_smtp_port": self.smtp_port,
            "notify_smtp_username": self.smtp_username,
            "notify_smtp_password": self.smtp_password,
            "notify_smtp_from": self.smtp_from_email,
            "notify_email": self.notification_email,
        }


settings = Settings()
