"""
Pydantic schemas for the listing API.

Stored property records are passed through as plain dicts; only the
envelopes around them are typed.
"""

from __future__ import annotations

from pydantic import BaseModel


class PropertyCreatedResponse(BaseModel):
    message: str
    property: dict


class PropertyUpdatedResponse(BaseModel):
    message: str
    property: dict


class MessageResponse(BaseModel):
    message: str


class TokenResponse(BaseModel):
    token: str
