"""
Pydantic schemas for the client-side provider configuration document.
"""
from typing import Optional, Dict
from pydantic import BaseModel, Field

CONFIG_VERSION = 1


class ClientProviderConfig(BaseModel):
    """Credential and model chosen for one provider."""
    api_key: str = Field(..., alias="apiKey")
    model: str
    last_tested: Optional[str] = Field(None, alias="lastTested", description="ISO timestamp of the last connection test")
    test_status: Optional[str] = Field(None, alias="testStatus", description="success or failed")
    test_error: Optional[str] = Field(None, alias="testError")

    class Config:
        populate_by_name = True


class ProviderConfigDocument(BaseModel):
    """Versioned multi-provider configuration."""
    version: int = CONFIG_VERSION
    providers: Dict[str, ClientProviderConfig] = Field(default_factory=dict)
    default_provider: Optional[str] = Field(None, alias="defaultProvider")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "version": 1,
                "providers": {
                    "google": {"apiKey": "AIza...", "model": "gemini-1.5-flash"}
                },
                "defaultProvider": "google",
                "lastUpdated": "2025-01-01T00:00:00+00:00"
            }
        }
