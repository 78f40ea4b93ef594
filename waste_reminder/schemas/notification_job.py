"""Delivery job produced by the matcher and consumed by the delivery worker (camelCase on the wire)."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from waste_reminder.models.notification_preference import NotificationType


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobWasteType(_WireModel):
    waste_type_id: int
    waste_type_name: str


class NotificationJob(_WireModel):
    user_id: int
    phone: str  # compact "+48DDDDDDDDD"
    address_id: int
    city_id: int
    street_id: int
    city_name: str
    street_name: str
    notification_preference_id: int
    notification_type: NotificationType
    waste_types: list[JobWasteType] = Field(default_factory=list)
    scheduled_date: str  # collection day, YYYY-MM-DD
    language: str = "pl"

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys (queue envelope body)."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_wire(cls, data: dict) -> "NotificationJob":
        return cls.model_validate(data)
