"""Provider message models.

A `Message` is a snapshot of one provider message as parsed from the Gmail API.
Cached copies are only ever mutated for read/starred flips after the server
acknowledged the change.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from email_sync_engine.utils import epoch_ms


class Address(BaseModel):
    """A display name and email address pair."""

    name: str = Field(default="", description="Display name")
    email: str = Field(default="", description="Email address")

    def __str__(self) -> str:
        if self.name and self.name != self.email:
            return f"{self.name} <{self.email}>"
        return self.email


class Attachment(BaseModel):
    """Attachment metadata. Content is fetched separately by attachment id."""

    name: str = Field(default="", description="File name")
    mime_type: str = Field(default="application/octet-stream", description="MIME type")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    attachment_id: str | None = Field(default=None, description="Gmail attachment id")
    part_id: str | None = Field(default=None, description="MIME part id")
    content_id: str | None = Field(
        default=None, description="Content-ID header without angle brackets"
    )
    message_id: str | None = Field(default=None, description="Owning message id")


class Message(BaseModel):
    """A single email as returned by the remote mail API."""

    id: str = Field(description="Provider-assigned message id")
    thread_id: str = Field(description="Conversation grouping key")
    sender: Address = Field(default_factory=Address, description="From address")
    to: list[Address] = Field(default_factory=list, description="To recipients")
    cc: list[Address] = Field(default_factory=list, description="Cc recipients")
    subject: str = Field(default="", description="Subject header")
    body: str = Field(default="", description="Raw body markup")
    date: datetime = Field(
        default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc),
        description="Message timestamp",
    )
    is_read: bool = Field(default=True, description="Whether the message has been read")
    is_important: bool = Field(default=False, description="Whether Gmail marked it important")
    is_starred: bool = Field(default=False, description="Whether the message is starred")
    label_ids: list[str] = Field(default_factory=list, description="Gmail label ids")
    attachments: list[Attachment] = Field(default_factory=list, description="Attachments")
    snippet: str = Field(default="", description="Provider snippet")
    preview: str = Field(default="", description="Plain-text excerpt for display")
    quoted_content: str | None = Field(
        default=None, description="Quoted history removed from the body, for a show-quoted toggle"
    )

    @property
    def timestamp_ms(self) -> int:
        return epoch_ms(self.date)

    @property
    def sender_email(self) -> str:
        return self.sender.email.strip().lower()


class ListPage(BaseModel):
    """One page of a message list."""

    messages: list[Message] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None)
    result_size_estimate: int = Field(default=0)


class SendResult(BaseModel):
    """Outcome of a send call."""

    success: bool = Field(default=False)
    thread_id: str | None = Field(default=None)
    message_id: str | None = Field(default=None)


class LabelInfo(BaseModel):
    """A Gmail label as returned by labels.list."""

    id: str
    name: str
    type: str | None = None


class OutgoingAttachment(BaseModel):
    """A file attached to an outgoing message."""

    name: str
    mime_type: str = Field(default="application/octet-stream")
    data: bytes = Field(default=b"", repr=False)
