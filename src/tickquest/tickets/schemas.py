"""Request/response schemas for ticket endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from tickquest.schemas import CamelModel

TicketStatus = Literal["backlog", "todo", "in_progress", "review", "done"]
TicketPriority = Literal["low", "medium", "high", "urgent"]
TicketType = Literal["bug", "feature", "task", "improvement"]


class CreateTicketRequest(CamelModel):
    project_id: str = Field(..., min_length=1, max_length=36)
    title: str = Field(..., min_length=1, max_length=256)
    description: str = ""
    status: TicketStatus = "backlog"
    priority: TicketPriority = "medium"
    type: TicketType = "task"
    assignee_id: str | None = None
    due_date: datetime | None = None


class UpdateStatusRequest(CamelModel):
    status: TicketStatus


class UpdateDetailsRequest(CamelModel):
    """Partial edit. Omitted fields stay as they are; ``assigneeId: null`` unassigns."""

    title: str | None = Field(None, min_length=1, max_length=256)
    description: str | None = None
    priority: TicketPriority | None = None
    type: TicketType | None = None
    assignee_id: str | None = None
    due_date: datetime | None = None


class CommentRequest(CamelModel):
    text: str = Field(..., min_length=1)


class CommentResponse(CamelModel):
    id: str
    ticket_id: str
    author_id: str
    author: str
    text: str
    timestamp: datetime


class TicketResponse(CamelModel):
    id: str
    project_id: str
    title: str
    description: str
    status: str
    priority: str
    type: str
    reporter_id: str
    assignee_id: str | None = None
    assignee_name: str | None = None
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime
    comments: list[CommentResponse] = []
