"""
Pydantic models for the EUR-Lex RAG FastAPI backend.
"""

from typing import Optional
from pydantic import BaseModel, Field, model_validator

from .vector_store import MAX_TOP_K


class AskRequest(BaseModel):
    """Request body for the ask endpoint. `query` is accepted as a legacy alias."""
    question: Optional[str] = Field(default=None, max_length=2000)
    query: Optional[str] = Field(default=None, max_length=2000)
    k: Optional[int] = Field(default=None, ge=1, le=MAX_TOP_K)

    @model_validator(mode="after")
    def require_question(self):
        if not self.text:
            raise ValueError("question (or query) must be a non-empty string")
        return self

    @property
    def text(self) -> str:
        return (self.question or "").strip() or (self.query or "").strip()


class CitationInfo(BaseModel):
    """A cited passage in an answer."""
    tag: str
    score: float


class AskResponse(BaseModel):
    """Response body for the ask endpoint."""
    text: str
    citations: list[CitationInfo]


class ErrorResponse(BaseModel):
    error: str
    details: Optional[list] = None


class HealthResponse(BaseModel):
    """Response body for health check."""
    status: str
    version: str
    database: str


CHAT_MAX_K = 20
CHAT_DEFAULT_K = 10


class ChatRequest(BaseModel):
    """Request body for the legacy chat endpoint."""
    message: str = Field(min_length=1, max_length=2000)
    k: Optional[int] = Field(default=None, ge=1, le=CHAT_MAX_K)

    @model_validator(mode="after")
    def require_message(self):
        if not self.message.strip():
            raise ValueError("message must be a non-empty string")
        return self


class ChatSource(BaseModel):
    celex: str
    chunk_id: int
    relevance: float


class ChatResponse(BaseModel):
    """Response body for the legacy chat endpoint."""
    answer: str
    sources: list[ChatSource]
