"""Data models for the Email Sync Engine.

This module contains Pydantic models for data validation and serialization.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from email_sync_engine.models.message import (
    Address,
    Attachment,
    LabelInfo,
    ListPage,
    Message,
    OutgoingAttachment,
    SendResult,
)


class CacheEntry(BaseModel):
    """A cached payload stamped with its write time and owning profile.

    One entry type serves list pages, single messages and thread lookups;
    the cache kind decides which payload model it holds.
    """

    payload: Any = Field(description="Cached value")
    timestamp: int = Field(description="Write time in epoch milliseconds")
    profile_id: str | None = Field(default=None, description="Profile the entry belongs to")
    key: str = Field(description="Query string or id the entry is stored under")
    continuation_token: str | None = Field(default=None, description="Next page token")


class LabelNode(BaseModel):
    """A node in the counted label forest."""

    label_id: str | None = Field(default=None, description="None for synthesized nodes")
    name: str = Field(description="Last path segment")
    full_path: str = Field(description="Complete '/'-delimited label name")
    count: int = Field(default=0, ge=0, description="Distinct threads, children included")
    is_leaf: bool = Field(default=True)
    children: list[LabelNode] = Field(default_factory=list)
    depth: int = Field(default=0, ge=0)


class ConversationView(BaseModel):
    """Display-ready projection of one thread. Never persisted."""

    thread_id: str
    messages: list[Message] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def attachment_count(self) -> int:
        return len(self.attachments)


__all__ = [
    "Address",
    "Attachment",
    "CacheEntry",
    "ConversationView",
    "LabelInfo",
    "LabelNode",
    "ListPage",
    "Message",
    "OutgoingAttachment",
    "SendResult",
]
