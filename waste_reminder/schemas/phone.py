"""Pydantic schema for the profile phone edit."""

from pydantic import BaseModel, field_validator

from waste_reminder.core.phone import normalize_phone


class PhoneUpdate(BaseModel):
    phone: str

    @field_validator("phone", mode="before")
    @classmethod
    def _normalize(cls, value: object) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Phone number is required")
        return normalize_phone(value)
