"""
Pydantic schemas for the Morrow API.

Defines request/response models for the brain, intent, knowledge,
audit and notification endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Constants
# =============================================================================

MAX_PROMPT_LENGTH = 10000
MAX_DOCUMENT_LENGTH = 200000


# =============================================================================
# Brain Schemas
# =============================================================================


class BrainRequest(BaseModel):
    """Request to run the tool-calling loop."""

    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    conversation_id: Optional[str] = Field(default=None, max_length=128)
    provider: Optional[str] = None
    model: Optional[str] = None
    tools_allow: Optional[list[str]] = None
    max_steps: Optional[int] = Field(default=None, ge=1, le=20)
    time_budget_seconds: Optional[float] = Field(default=None, gt=0, le=300)

    class Config:
        json_schema_extra = {
            "example": {
                "prompt": "Audit https://downtownpizza.example and summarize the top fixes",
                "conversation_id": None,
                "tools_allow": ["website_intel", "search_knowledge"],
                "max_steps": 5,
            }
        }


class ToolTraceItem(BaseModel):
    """One tool attempt recorded during a run."""

    step: int
    tool: str
    input: dict[str, Any]
    output: Any = None
    success: bool
    error: Optional[str] = None
    timestamp: Optional[str] = None


class BrainResponse(BaseModel):
    """Result of one run."""

    final_text: str
    tool_trace: list[ToolTraceItem] = []
    steps_used: int
    provider: str
    model: str
    conversation_id: str
    duration_ms: int
    state: str
    usage: dict[str, int] = {}
    timestamp: Optional[str] = None


# =============================================================================
# Intent Schemas
# =============================================================================


class IntentRequest(BaseModel):
    """Free text to classify, with optional caller context."""

    text: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    context: Optional[dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "text": "Run an audit for Downtown Pizza in Riverside, CA",
                "context": {"website": "https://downtownpizza.example"},
            }
        }


class IntentResponse(BaseModel):
    """Parsed intent plus the follow-up text a UI would show."""

    intent: str
    action: str
    confidence: float
    parameters: dict[str, Any] = {}
    missing_fields: list[str] = []
    raw_input: str = ""
    clarification: Optional[str] = None
    confirmation: str


# =============================================================================
# Knowledge Schemas
# =============================================================================


class KnowledgeSearchRequest(BaseModel):
    """Keyword search over the knowledge folder."""

    query: str = Field(..., min_length=1, max_length=1000)
    limit: int = Field(default=3, ge=1, le=50)


class KnowledgeAddRequest(BaseModel):
    """New knowledge document."""

    filename: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., max_length=MAX_DOCUMENT_LENGTH)

    class Config:
        json_schema_extra = {
            "example": {
                "filename": "gbp-checklist.md",
                "content": "# Google Business Profile checklist\n...",
            }
        }


class EmbeddingsBuildRequest(BaseModel):
    """Chunking options for an index rebuild."""

    size: int = Field(default=800, ge=50, le=8000)
    overlap: int = Field(default=100, ge=0, le=4000)


class EmbeddingsQueryRequest(BaseModel):
    """Nearest-neighbour query against the vector index."""

    query: str = Field(..., min_length=1, max_length=1000)
    k: int = Field(default=5, ge=1, le=50)


class SearchResponse(BaseModel):
    """Search hits."""

    results: list[dict[str, Any]]
    count: int
    query: str


# =============================================================================
# Audit & Notification Schemas
# =============================================================================


class AuditRequest(BaseModel):
    """Request to run a full audit."""

    business_name: str = Field(..., min_length=1, max_length=200)
    website: Optional[str] = Field(default=None, max_length=2048)
    location: Optional[str] = Field(default=None, max_length=200)
    industry: Optional[str] = Field(default=None, max_length=100)
    profile_id: Optional[str] = Field(default=None, max_length=128)

    class Config:
        json_schema_extra = {
            "example": {
                "business_name": "Sunset Plumbing",
                "website": "https://sunsetplumbing.example",
                "location": "San Diego, CA",
                "industry": "plumbing",
            }
        }


class NotifyRequest(BaseModel):
    """Send a portal link or message by email or SMS."""

    channel: str = Field(..., pattern="^(email|sms)$")
    target: str = Field(..., min_length=1, max_length=320)
    link: Optional[str] = Field(default=None, max_length=2048)
    message: Optional[str] = Field(default=None, max_length=5000)
    subject: Optional[str] = Field(default=None, max_length=200)


class HealthResponse(BaseModel):
    """Liveness and active provider."""

    status: str = "ok"
    provider: str
    model: str
