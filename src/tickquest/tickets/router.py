"""Ticket endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.auth.dependencies import get_current_user
from tickquest.db.models import Ticket, TicketComment, User
from tickquest.dependencies import get_db
from tickquest.errors import APIError
from tickquest.pagination import clamp_limit
from tickquest.schemas import DataResponse, PageResponse
from tickquest.tickets.schemas import (
    CommentRequest,
    CommentResponse,
    CreateTicketRequest,
    TicketResponse,
    UpdateDetailsRequest,
    UpdateStatusRequest,
)
from tickquest.tickets.service import (
    TicketForbidden,
    UnknownAssignee,
    add_comment,
    create_ticket,
    delete_comment,
    delete_ticket,
    get_ticket,
    list_tickets,
    update_comment,
    update_details,
    update_status,
)

router = APIRouter(prefix="/api/v1/tickets", tags=["Tickets"])


def _ticket_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse(
        id=ticket.id,
        project_id=ticket.project_id,
        title=ticket.title,
        description=ticket.description,
        status=ticket.status,
        priority=ticket.priority,
        type=ticket.type,
        reporter_id=ticket.reporter_id,
        assignee_id=ticket.assignee_id,
        assignee_name=ticket.assignee.name if ticket.assignee else None,
        due_date=ticket.due_date,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        comments=[_comment_response(c) for c in ticket.comments],
    )


@router.post("", response_model=DataResponse[TicketResponse], status_code=201)
async def create(
    body: CreateTicketRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[TicketResponse]:
    """Open a ticket. The caller becomes its reporter."""
    try:
        ticket = await create_ticket(
            db,
            user,
            project_id=body.project_id,
            title=body.title,
            description=body.description,
            status=body.status,
            priority=body.priority,
            type_=body.type,
            assignee_id=body.assignee_id,
            due_date=body.due_date,
        )
    except UnknownAssignee as e:
        raise APIError(400, "validation_error", str(e)) from e
    return DataResponse(data=_ticket_response(ticket))


@router.get("", response_model=PageResponse[TicketResponse])
async def list_(
    project_id: str | None = Query(None, alias="projectId"),
    assignee_id: str | None = Query(None, alias="assigneeId"),
    status: str | None = Query(None),
    limit: int = Query(50),
    cursor: str | None = Query(None),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PageResponse[TicketResponse]:
    """List tickets, newest first."""
    limit = clamp_limit(limit)
    tickets, next_cursor = await list_tickets(
        db,
        project_id=project_id,
        assignee_id=assignee_id,
        status=status,
        limit=limit,
        cursor=cursor,
    )
    return PageResponse(
        data=[_ticket_response(t) for t in tickets],
        limit=limit,
        next_cursor=next_cursor,
    )


@router.get("/{ticket_id}", response_model=DataResponse[TicketResponse])
async def get(
    ticket_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[TicketResponse]:
    """Fetch one ticket."""
    ticket = await get_ticket(db, ticket_id)
    if ticket is None:
        raise APIError(404, "not_found", "ticket not found")
    return DataResponse(data=_ticket_response(ticket))


@router.patch("/{ticket_id}/status", response_model=DataResponse[TicketResponse])
async def change_status(
    ticket_id: str,
    body: UpdateStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[TicketResponse]:
    """Move a ticket through the workflow. Closing it awards XP."""
    try:
        ticket = await update_status(db, user, ticket_id, body.status)
    except TicketForbidden as e:
        raise APIError(403, "forbidden", "forbidden") from e
    if ticket is None:
        raise APIError(404, "not_found", "ticket not found")
    return DataResponse(data=_ticket_response(ticket))


@router.patch("/{ticket_id}/details", response_model=DataResponse[TicketResponse])
async def change_details(
    ticket_id: str,
    body: UpdateDetailsRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[TicketResponse]:
    """Edit ticket fields, including reassignment. Omitted fields are untouched."""
    try:
        ticket = await update_details(db, user, ticket_id, body.model_dump(exclude_unset=True))
    except TicketForbidden as e:
        raise APIError(403, "forbidden", "forbidden") from e
    except UnknownAssignee as e:
        raise APIError(400, "validation_error", str(e)) from e
    if ticket is None:
        raise APIError(404, "not_found", "ticket not found")
    return DataResponse(data=_ticket_response(ticket))


@router.delete("/{ticket_id}", status_code=204)
async def delete(
    ticket_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        deleted = await delete_ticket(db, user, ticket_id)
    except TicketForbidden as e:
        raise APIError(403, "forbidden", "forbidden") from e
    if not deleted:
        raise APIError(404, "not_found", "ticket not found")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def _comment_response(comment: TicketComment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        ticket_id=comment.ticket_id,
        author_id=comment.author_id,
        author=comment.author.name if comment.author else "",
        text=comment.text,
        timestamp=comment.created_at,
    )


@router.post("/{ticket_id}/comments", response_model=DataResponse[CommentResponse], status_code=201)
async def comment(
    ticket_id: str,
    body: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[CommentResponse]:
    created = await add_comment(db, user, ticket_id, body.text)
    if created is None:
        raise APIError(404, "not_found", "ticket not found")
    return DataResponse(data=_comment_response(created))


@router.patch("/comments/{comment_id}", response_model=DataResponse[CommentResponse])
async def edit_comment(
    comment_id: str,
    body: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[CommentResponse]:
    """Edit your own comment."""
    try:
        updated = await update_comment(db, user, comment_id, body.text)
    except TicketForbidden as e:
        raise APIError(403, "forbidden", "forbidden") from e
    if updated is None:
        raise APIError(404, "not_found", "comment not found")
    return DataResponse(data=_comment_response(updated))


@router.delete("/comments/{comment_id}", status_code=204)
async def remove_comment(
    comment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Delete your own comment."""
    try:
        deleted = await delete_comment(db, user, comment_id)
    except TicketForbidden as e:
        raise APIError(403, "forbidden", "forbidden") from e
    if not deleted:
        raise APIError(404, "not_found", "comment not found")
    return Response(status_code=204)
