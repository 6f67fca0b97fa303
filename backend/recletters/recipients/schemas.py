"""Recipient request/response schemas."""

from pydantic import BaseModel, EmailStr, Field


class RecipientCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    title: str = Field("", max_length=255)
    institution: str = Field("", max_length=255)
    department: str = Field("", max_length=255)
    phone: str = Field("", max_length=50)
    prefers_drafts: bool = False
    notes: str = ""


class RecipientResponse(BaseModel):
    id: str
    name: str
    email: str
    title: str
    institution: str
    department: str
    prefers_drafts: bool
