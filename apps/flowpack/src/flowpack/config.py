from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

from .packaging.metadata import PublisherInfo

# Connection id written into connection references when no live id is configured
DEFAULT_CONNECTION_ID = "80cc3634317c459aa3a4a5c587617484"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ------------------------------------------------------------------
    # Publisher identity (solution.xml <Publisher> block)
    # ------------------------------------------------------------------
    publisher_unique_name: str = "yourname"
    publisher_localized_name: str = "YourFullName"
    publisher_prefix: str = "yourprefix"
    publisher_option_value_prefix: int = 12345

    # ------------------------------------------------------------------
    # Connector logical names
    # ------------------------------------------------------------------
    sharepoint_connection: str = "shared_sharepointonline"
    outlook_connection: str = "shared_office365"
    sendmail_connection: str = "shared_sendmail"

    # Actual connection id used for every connection reference
    default_connection_id: str = DEFAULT_CONNECTION_ID

    # ------------------------------------------------------------------
    # Notification routing
    # ------------------------------------------------------------------
    # "dev":  every notification goes to admin_email
    # "prod": notifications go to the configured recipients
    admin_email: str = "your.email@example.com"
    environment_mode: Literal["dev", "prod"] = "dev"

    output_dir: Path = Path("output")
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def publisher_info(self) -> PublisherInfo:
        return PublisherInfo(
            unique_name=self.publisher_unique_name,
            localized_name=self.publisher_localized_name,
            prefix=self.publisher_prefix,
            option_value_prefix=self.publisher_option_value_prefix,
        )

    def environment_recipients(self, emails: str) -> str:
        """Return emails in prod mode, otherwise the admin address."""
        return emails if self.environment_mode == "prod" else self.admin_email


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
