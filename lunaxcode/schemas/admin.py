"""
Pydantic schemas for the admin AI settings endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class AISettingRequest(BaseModel):
    """Create or replace a provider setting."""
    provider: Optional[str] = Field(None, description="Provider id")
    api_key: Optional[str] = Field(None, alias="apiKey", description="Provider API key")
    model: Optional[str] = Field(None, description="Model id; defaults to the provider's default model")
    max_generations_per_user: Optional[int] = Field(None, alias="maxGenerationsPerUser", description="Per-user ceiling (default 3)")
    is_active: Optional[bool] = Field(None, alias="isActive", description="Activate this provider (default true)")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "provider": "google",
                "apiKey": "AIza...",
                "model": "gemini-1.5-flash",
                "maxGenerationsPerUser": 3,
                "isActive": True
            }
        }


class AISettingPatch(BaseModel):
    """Toggle a provider or change its ceiling."""
    provider: Optional[str] = Field(None, description="Provider id")
    is_active: Optional[bool] = Field(None, alias="isActive")
    max_generations_per_user: Optional[int] = Field(None, alias="maxGenerationsPerUser", description="Floored at 1")

    class Config:
        populate_by_name = True
