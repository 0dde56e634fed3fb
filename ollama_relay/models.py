"""
Data Models Module

Pydantic models for the wire formats exchanged between the relay client,
the gateway and the upstream inference server.

Models are organized by functional area:
- Chat models (messages, multimodal content parts, request payload)
- Authorization models (decision returned by the access check)
- Adapter models (usage and model listings)
- Error models
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field


# ============================================================================
# Chat Models
# ============================================================================

class ImageUrl(BaseModel):
    """Image reference inside a multimodal content part."""
    url: str = Field(..., description="Image URL or data URI")


class MultimodalContent(BaseModel):
    """One part of a multimodal message."""
    type: Literal["text", "image_url"] = Field(..., description="Content part type")
    text: Optional[str] = Field(None, description="Text for 'text' parts")
    image_url: Optional[ImageUrl] = Field(None, description="Image for 'image_url' parts")


class ChatMessage(BaseModel):
    """Role-tagged chat message."""
    role: Literal["system", "user", "assistant"] = Field(..., description="Message author role")
    content: Union[str, List[MultimodalContent]] = Field(
        ..., description="Plain text or a sequence of multimodal content parts"
    )


class ChatRequestPayload(BaseModel):
    """Body the relay client sends to the gateway."""
    messages: List[ChatMessage] = Field(..., description="Ordered conversation")
    model: str = Field(..., description="Target model identifier")
    stream: bool = Field(default=True, description="Request a server-sent-event stream")


# ============================================================================
# Authorization Models
# ============================================================================

class AuthDecision(BaseModel):
    """Outcome of the access check; ``error`` is True when denied."""
    error: bool = Field(default=False, description="Whether the request is denied")
    msg: Optional[str] = Field(None, description="Reason for the denial")
    status: Optional[int] = Field(None, description="Optional status hint")


# ============================================================================
# Adapter Models
# ============================================================================

class LLMUsage(BaseModel):
    """Account usage summary."""
    used: float = Field(default=0, description="Units consumed")
    total: float = Field(default=0, description="Units available")


class LLMModel(BaseModel):
    """Model listing entry."""
    name: str = Field(..., description="Model identifier")
    available: bool = Field(default=True, description="Whether the model can be used")
    provider: Optional[str] = Field(None, description="Provider tag")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body returned by the gateway."""
    error: bool = Field(default=True, description="Always true")
    msg: str = Field(..., description="Human-readable error message")
