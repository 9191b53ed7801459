"""Client models for the per-barbershop contact directory."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

from utils.validation import normalize_phone


class Client(BaseModel):
    """Client model."""

    id: Optional[str] = None
    barbershop_id: str
    name: str
    phone: str
    email: Optional[EmailStr] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClientCreate(BaseModel):
    """Client creation model. The phone is stored as digits only."""

    barbershop_id: str
    name: str
    phone: str
    email: Optional[EmailStr] = None

    @field_validator("phone")
    @classmethod
    def _digits_only(cls, v: str) -> str:
        digits = normalize_phone(v)
        if not digits:
            raise ValueError("phone must contain digits")
        return digits
