"""
Business event model.

Events are immutable and live only for the duration of the logging call.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BusinessEvent(BaseModel):
    """A business-level occurrence worth auditing."""

    event_type: str = Field(description="Event family, e.g. product or inventory")
    event_name: str = Field(description="Specific event, e.g. product_created")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the event occurred")
    correlation_id: Optional[str] = Field(default=None, description="Correlation id of the request")
    request_id: Optional[str] = Field(default=None, description="Request id of the request")
    user_id: Optional[str] = Field(default=None, description="Acting user, when known")
    entity_id: Optional[int] = Field(default=None, description="Identifier of the affected entity")
    entity_name: Optional[str] = Field(default=None, description="Name of the affected entity")
    category: Optional[str] = Field(default=None, description="Entity category")
    price: Optional[float] = Field(default=None, description="Entity price")
    stock: Optional[int] = Field(default=None, description="Entity stock")
    old_value: Optional[Dict[str, Any]] = Field(default=None, description="Snapshot before the change")
    new_value: Optional[Dict[str, Any]] = Field(default=None, description="Snapshot after the change")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form key/value data")

    model_config = ConfigDict(frozen=True)

    def to_fields(self) -> Dict[str, Any]:
        """Flat log fields; the marker lets log queries select business events."""
        return {
            "business_event": True,
            "event_type": self.event_type,
            "event_name": self.event_name,
            "event_timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "category": self.category,
            "price": self.price,
            "stock": self.stock,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "metadata": self.metadata,
        }
