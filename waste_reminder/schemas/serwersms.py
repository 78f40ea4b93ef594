"""Pydantic schemas for SerwerSMS send_sms.json responses and the client's result type."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


class SerwerSmsItem(BaseModel):
    """One message record from an immediate-send response."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    parts: int
    phone: str | None = None
    text: str | None = None
    queued: str | None = None
    error_code: int | None = None


class SerwerSmsError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    type: str
    message: str


class SerwerSmsResponse(BaseModel):
    """
    Union of every shape send_sms.json returns:
    queued accept {success, queued, unsent}, immediate {items: [...]}, or {error: {...}}.
    """

    model_config = ConfigDict(extra="allow")

    success: bool | None = None
    queued: int | None = None
    unsent: int | None = None
    items: list[SerwerSmsItem] | None = None
    error: SerwerSmsError | None = None


@dataclass(frozen=True)
class SmsSent:
    message_id: str
    parts: int
    status: str


@dataclass(frozen=True)
class SmsFailed:
    error: str


SmsSendResult = SmsSent | SmsFailed

QUEUED_RESULT = SmsSent(message_id="queued", parts=1, status="queued")
