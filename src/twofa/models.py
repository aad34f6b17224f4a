"""Pydantic models shared by the registry, provisioning and display layers."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Band(StrEnum):
    FRESH = "fresh"
    CAUTION = "caution"
    URGENT = "urgent"


class Account(BaseModel):
    """A named TOTP key, as decoded from the registry."""

    model_config = ConfigDict(frozen=True)

    name: str
    secret: bytes
    issuer: str | None = None
    digits: int = Field(default=6, ge=1, le=8)
    period: int = Field(default=30, gt=0)

    @property
    def label(self) -> str:
        if self.issuer:
            return f"{self.issuer} - {self.name}"
        return self.name
