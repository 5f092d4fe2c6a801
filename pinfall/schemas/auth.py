"""Authentication schemas"""
from pydantic import BaseModel, Field


class AdminLoginRequest(BaseModel):
    """Admin password login"""
    password: str = Field(..., min_length=1, description="Admin password")


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    token_type: str = "bearer"
    is_admin: bool = False
