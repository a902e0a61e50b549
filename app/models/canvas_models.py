from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads exchanged with the automation webhook (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationRef(CamelModel):
    """Identity of the conversation a Canvas request refers to. Built once per request."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    conversation_id: Optional[str] = None
    customer_email: str = "unknown@example.com"
    agent_email: Optional[str] = None
    workspace_id: Optional[str] = None


class MessageRecord(CamelModel):
    id: Optional[str] = None
    type: str = "initial"
    author_type: Optional[str] = None
    author_email: Optional[str] = None
    author_name: Optional[str] = None
    text: str = ""
    timestamp: Optional[int] = None


class ConversationSummary(CamelModel):
    id: Optional[str] = None
    state: Optional[str] = None
    title: Optional[str] = None
    priority: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    waiting_since: Optional[int] = None


class JobMetadata(CamelModel):
    total_messages: int = 0
    waiting_since: Optional[int] = None


class RecommendationJobPayload(CamelModel):
    """Body POSTed verbatim to the automation webhook."""
    conversation_id: str
    customer_email: str
    agent_email: Optional[str] = None
    workspace_id: Optional[str] = None
    conversation: ConversationSummary = Field(default_factory=ConversationSummary)
    messages: List[MessageRecord] = Field(default_factory=list)
    metadata: JobMetadata = Field(default_factory=JobMetadata)
    customer_profile: Optional[Dict[str, Any]] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# --- Downstream response (canonical shape uses snake_case keys) ---

class Reply(BaseModel):
    id: str
    text: str
    confidence: Optional[float] = None
    tone: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
        return min(max(value, 0.0), 1.0)


class ContextAnalysis(BaseModel):
    sentiment: Optional[str] = None
    urgency: Optional[str] = None
    category: Optional[str] = None


class RecommendationSet(BaseModel):
    """Canonical recommendation result: {recommended_replies, context_analysis?}."""
    recommended_replies: List[Reply] = Field(default_factory=list)
    context_analysis: Optional[ContextAnalysis] = None


class CacheEntry(BaseModel):
    """
    Outcome of one recommendation job.
    Only authoritative while now < expires_at; a missing or expired entry means Pending.
    """
    model_config = ConfigDict(frozen=True)

    status: Literal["ready", "failed"]
    recommendations: Optional[RecommendationSet] = None
    error: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    generation: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at
