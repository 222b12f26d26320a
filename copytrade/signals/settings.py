"""Settings for the signal source."""

from pydantic import BaseModel, Field


class SignalSourceSettings(BaseModel):
    """Configuration for SignalSourceClient."""

    base_url: str = "https://nof1.ai"
    positions_path: str = "/api/account-totals"
    timeout_seconds: float = Field(default=30.0, gt=0)
