"""
Email template schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class EmailTemplateUpdate(BaseModel):
    """Template source for saving or previewing"""
    subject: str = Field(..., max_length=200)
    html_body: str = Field(..., max_length=50000)
    text_body: str = Field(..., max_length=50000)

    @field_validator("subject", "html_body", "text_body")
    @classmethod
    def _required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Subject, HTML body, and text body are required")
        return v


class EmailTemplateResponse(BaseModel):
    name: str
    subject: str
    html_body: str
    text_body: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmailPreviewResponse(BaseModel):
    subject: str
    html_body: str
    text_body: str
