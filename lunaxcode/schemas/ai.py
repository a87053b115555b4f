"""
Pydantic schemas for AI generation and proxy endpoints.

Wire field names are camelCase (the portal frontend's convention); Python
attributes stay snake_case through aliases.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

GENERATION_TYPES: List[str] = [
    "prd",
    "tasks",
    "description_suggestion",
    "description_enhance",
]

MESSAGE_ROLES = ("system", "user", "assistant")


# ============================================
# Universal proxy request/response
# ============================================

class ChatMessage(BaseModel):
    """Message format shared by every provider."""
    role: str = Field(..., description="system, user or assistant")
    content: str = Field(..., description="Message text")


class AIProxyRequest(BaseModel):
    """Provider-independent chat request."""
    provider: str = Field(..., description="Provider id (openai, anthropic, google, deepseek, groq, together)")
    model: str = Field(..., description="Provider model identifier")
    messages: List[ChatMessage] = Field(..., description="Conversation messages")
    api_key: str = Field(..., alias="apiKey", description="Provider API key")
    temperature: Optional[float] = Field(None, description="Sampling temperature (0-2)")
    max_tokens: Optional[int] = Field(None, alias="maxTokens", description="Maximum tokens to generate")

    class Config:
        populate_by_name = True


class TokenUsage(BaseModel):
    """Token counts reported by the provider."""
    prompt_tokens: int = Field(0, alias="promptTokens")
    completion_tokens: int = Field(0, alias="completionTokens")
    total_tokens: int = Field(0, alias="totalTokens")

    class Config:
        populate_by_name = True


class AIProxyResponse(BaseModel):
    """Normalized provider reply."""
    text: str = Field(..., description="Generated text")
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = Field(..., description="Model that produced the reply")
    provider: str = Field(..., description="Provider id")
    finish_reason: Optional[str] = Field(None, alias="finishReason")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "text": "OK",
                "usage": {"promptTokens": 12, "completionTokens": 1, "totalTokens": 13},
                "model": "gpt-4o-mini",
                "provider": "openai",
                "finishReason": "stop"
            }
        }


class ValidateKeyRequest(BaseModel):
    """Request model for API key validation."""
    provider: Optional[str] = Field(None, description="Provider id")
    api_key: Optional[str] = Field(None, alias="apiKey", description="API key to validate")

    class Config:
        populate_by_name = True


class ValidateKeyResponse(BaseModel):
    """Response model for API key validation."""
    valid: bool
    provider: str
    error: Optional[str] = None


# ============================================
# Generation
# ============================================

class GenerateData(BaseModel):
    """Operation-specific payload for POST /ai/generate."""
    service_name: Optional[str] = Field(None, alias="serviceName", description="Service being ordered (PRD)")
    description: Optional[str] = Field(None, description="Client's project description (PRD)")
    question_answers: Optional[Dict[str, Any]] = Field(None, alias="questionAnswers", description="Onboarding answers (PRD)")
    prd: Optional[str] = Field(None, description="PRD markdown (tasks)")
    service_type: Optional[str] = Field(None, alias="serviceType", description="Service type (descriptions)")
    current_description: Optional[str] = Field(None, alias="currentDescription", description="Current draft (descriptions)")

    class Config:
        populate_by_name = True


class GenerateRequest(BaseModel):
    """Request model for POST /ai/generate."""
    type: Optional[str] = Field(None, description="prd, tasks, description_suggestion or description_enhance")
    project_id: Optional[int] = Field(None, alias="projectId", description="Project the generation belongs to")
    data: GenerateData = Field(default_factory=GenerateData)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "type": "prd",
                "projectId": 12,
                "data": {
                    "serviceName": "Landing Page",
                    "description": "Promote a bakery",
                    "questionAnswers": {"target_audience": "local families"}
                }
            }
        }


class GeneratedTask(BaseModel):
    """One development task drafted from a PRD."""
    title: str
    description: str
    section: str
    priority: str = Field(..., description="low, medium or high")
    estimated_hours: float = Field(..., alias="estimatedHours")
    dependencies: str = Field(..., description="JSON array of task indices")
    order: int

    class Config:
        populate_by_name = True
