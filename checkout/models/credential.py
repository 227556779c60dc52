"""
Domain models for gateway credential persistence.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GatewayCredential(BaseModel):
    """The bearer token currently trusted for calls to Pesapal."""

    access_token: str = Field(..., min_length=1, repr=False)
    expires_at: datetime = Field(
        ..., description="Instant after which the token must not be used."
    )
    notification_id: Optional[str] = Field(
        None, description="Registered IPN identifier carried alongside the token."
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_valid_at(self, moment: datetime) -> bool:
        """Return True while ``moment`` is strictly before the expiry."""
        return self.expires_at > moment


__all__ = ["GatewayCredential"]
