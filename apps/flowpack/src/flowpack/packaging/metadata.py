"""Solution and publisher metadata shared by the package serializers."""

from pydantic import BaseModel

# Friendly names for well-known connectors; anything else uses its logical name
CONNECTOR_DISPLAY_NAMES: dict[str, str] = {
    "shared_sharepointonline": "SharePoint",
    "shared_office365": "Office 365 Outlook",
    "shared_sendmail": "Mail",
}


class PublisherInfo(BaseModel):
    """Publisher block of solution.xml."""

    unique_name: str
    localized_name: str
    prefix: str
    option_value_prefix: int = 10000


class SolutionInfo(BaseModel):
    """Solution manifest fields of solution.xml."""

    unique_name: str
    localized_name: str
    version: str = "1.0.0.0"
    description: str | None = None
    managed: bool = False


def connector_display_name(connector_name: str) -> str:
    return CONNECTOR_DISPLAY_NAMES.get(connector_name, connector_name)
