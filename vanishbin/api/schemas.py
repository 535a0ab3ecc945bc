from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PasteCreateRequest(BaseModel):
    content: str = Field(..., description="Paste content")
    language: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Syntax-highlighting hint; defaults to plaintext",
    )
    ttl_minutes: Optional[Union[int, float, str]] = Field(
        default=None,
        validation_alias=AliasChoices("ttlMinutes", "expiry", "ttl_minutes"),
        description="Minutes until expiry; values off the menu fall back to 60",
    )
    redacted: bool = Field(
        default=False,
        description="Scrub sensitive-looking data before storing and on every read",
    )
    password: Optional[str] = Field(
        default=None,
        description="Optional password gating raw reads",
    )

    @field_validator("ttl_minutes", mode="before")
    @classmethod
    def _keep_unrecognized_ttl(cls, value: object) -> object:
        # Anything unusable becomes None and is defaulted downstream.
        if value is None or isinstance(value, (int, float, str)):
            return value
        return None


class PasswordRequest(BaseModel):
    password: Optional[str] = None


class PasteCreateResponse(BaseModel):
    id: str
    expires_at: datetime = Field(serialization_alias="expiresAt")


class PasteMetadataResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    language: str
    redacted: bool
    created_at: datetime = Field(serialization_alias="createdAt")
    expires_at: datetime = Field(serialization_alias="expiresAt")
    password_present: bool = Field(serialization_alias="passwordPresent")


class StatsResponse(BaseModel):
    total: int = Field(serialization_alias="totalPastes")
    daily: int = Field(serialization_alias="dailyPastes")
    all_time: int = Field(serialization_alias="allTimePastes")


class HealthResponse(BaseModel):
    status: str = "ok"
