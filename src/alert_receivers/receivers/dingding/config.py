"""DingDing receiver settings."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alert_receivers.templates.default import (
    DEFAULT_MESSAGE_EMBED,
    DEFAULT_MESSAGE_TITLE_EMBED,
)


class MessageType(str, Enum):
    """Shape of the DingDing robot message."""

    LINK = "link"
    ACTION_CARD = "actionCard"


DEFAULT_MESSAGE_TYPE = MessageType.LINK


class At(BaseModel):
    """Who to mention in the target chat."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    at_mobiles: list[str] = Field(default_factory=list, alias="atMobiles")
    at_user_ids: list[str] = Field(default_factory=list, alias="atUserIds")
    is_at_all: bool = Field(default=False, alias="isAtAll")

    @field_validator("at_mobiles", "at_user_ids", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_payload(self) -> dict[str, Any]:
        return {
            "atMobiles": list(self.at_mobiles),
            "atUserIds": list(self.at_user_ids),
            "isAtAll": self.is_at_all,
        }


class DingDingConfig(BaseModel):
    """Validated DingDing receiver settings.

    Loaded from the receiver's JSON settings document:

        {"url": "...", "msgType": "link", "title": "...", "message": "...",
         "at": {"atMobiles": [], "atUserIds": [], "isAtAll": false}}

    Unknown message types are rejected here so a notifier never builds a
    payload for a shape it does not support.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    url: str = Field(description="DingDing robot webhook URL")
    message_type: MessageType = Field(default=DEFAULT_MESSAGE_TYPE, alias="msgType")
    title: str = Field(default=DEFAULT_MESSAGE_TITLE_EMBED)
    message: str = Field(default=DEFAULT_MESSAGE_EMBED)
    at: At = Field(default_factory=At)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require a non-empty webhook URL."""
        if not v.strip():
            raise ValueError("could not find url property in settings")
        return v

    @field_validator("message_type", mode="before")
    @classmethod
    def default_message_type(cls, v: Any) -> Any:
        if v is None or v == "":
            return DEFAULT_MESSAGE_TYPE
        return v

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> Any:
        return DEFAULT_MESSAGE_TITLE_EMBED if v is None or v == "" else v

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, v: Any) -> Any:
        return DEFAULT_MESSAGE_EMBED if v is None or v == "" else v

    @field_validator("at", mode="before")
    @classmethod
    def default_at(cls, v: Any) -> Any:
        return {} if v is None else v

    @classmethod
    def from_json(cls, raw: str | bytes) -> DingDingConfig:
        """Load settings from a JSON document.

        Raises:
            ValidationError: If the URL is missing or msgType is unsupported.
        """
        return cls.model_validate_json(raw)
