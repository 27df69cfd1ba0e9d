"""
Ticket workflow: creation, edits, comments, and status changes that feed the XP ledger.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from tickquest.db.models import Ticket, TicketComment, User
from tickquest.gamification.ledger import adjust, refresh_closed_count
from tickquest.gamification.levels import xp_for_priority
from tickquest.pagination import clamp_limit, format_cursor, parse_cursor, split_page

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DONE = "done"
MANAGER_ROLES = frozenset({"admin", "project_manager"})
EDITABLE_FIELDS = frozenset({"title", "description", "priority", "type", "assignee_id", "due_date"})
NULLABLE_FIELDS = frozenset({"assignee_id", "due_date"})


class TicketForbidden(Exception):
    """The actor may not modify this ticket or comment."""


class UnknownAssignee(ValueError):
    """The requested assignee does not exist."""


def can_modify(actor: User, ticket: Ticket) -> bool:
    """Admins and project managers may change any ticket; others only their own."""
    if actor.role in MANAGER_ROLES:
        return True
    if ticket.assignee_id and ticket.assignee_id == actor.id:
        return True
    return ticket.reporter_id == actor.id


async def get_ticket(db: AsyncSession, ticket_id: str) -> Ticket | None:
    """Fetch a ticket by ID."""
    result = await db.execute(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def create_ticket(
    db: AsyncSession,
    actor: User,
    project_id: str,
    title: str,
    description: str = "",
    status: str = "backlog",
    priority: str = "medium",
    type_: str = "task",
    assignee_id: str | None = None,
    due_date: datetime | None = None,
) -> Ticket:
    """Open a ticket reported by ``actor``.

    Raises:
        UnknownAssignee: If ``assignee_id`` names no user.
    """
    if assignee_id and await db.get(User, assignee_id) is None:
        msg = f"Unknown assignee '{assignee_id}'"
        raise UnknownAssignee(msg)

    now = datetime.now(timezone.utc)
    ticket = Ticket(
        project_id=project_id,
        title=title,
        description=description,
        status=status,
        priority=priority,
        type=type_,
        reporter_id=actor.id,
        assignee_id=assignee_id or None,
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )
    db.add(ticket)
    await db.commit()
    logger.info("ticket_created", ticket_id=ticket.id, project_id=project_id, actor_id=actor.id)
    return await get_ticket(db, ticket.id)  # type: ignore[return-value]


async def list_tickets(
    db: AsyncSession,
    project_id: str | None = None,
    assignee_id: str | None = None,
    status: str | None = None,
    limit: int | None = 50,
    cursor: str | None = None,
) -> tuple[list[Ticket], str | None]:
    """Page through tickets, newest first, keyed on ``created_at``.

    A ``project_id`` of ``"all"`` disables the project filter. Malformed
    cursors are ignored.
    """
    limit = clamp_limit(limit)

    query = select(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc())
    if project_id and project_id.lower() != "all":
        query = query.where(Ticket.project_id == project_id)
    if assignee_id:
        query = query.where(Ticket.assignee_id == assignee_id)
    if status:
        query = query.where(Ticket.status == status)
    cursor_time = parse_cursor(cursor)
    if cursor_time is not None:
        query = query.where(Ticket.created_at < cursor_time)

    result = await db.execute(query.limit(limit + 1))
    tickets, has_more = split_page(list(result.unique().scalars().all()), limit)

    next_cursor = None
    if has_more and tickets:
        next_cursor = format_cursor(tickets[-1].created_at)
    return tickets, next_cursor


async def update_status(db: AsyncSession, actor: User, ticket_id: str, status: str) -> Ticket | None:
    """Move a ticket to ``status`` and credit or debit XP.

    Entering ``done`` awards the ticket's priority XP to the assignee (or the
    actor when unassigned); leaving ``done`` takes it back. The XP step runs
    after the ticket change is committed and never fails the request.

    Returns None when the ticket does not exist.

    Raises:
        TicketForbidden: If ``actor`` may not modify the ticket.
    """
    ticket = await get_ticket(db, ticket_id)
    if ticket is None:
        return None
    if not can_modify(actor, ticket):
        raise TicketForbidden

    was_done = ticket.status == DONE
    ticket.status = status
    ticket.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("ticket_status_changed", ticket_id=ticket.id, status=status, actor_id=actor.id)

    if status == DONE and not was_done:
        await _apply_xp(db, actor, ticket, sign=1, note=f"ticket {ticket.title} completed")
    elif was_done and status != DONE:
        await _apply_xp(db, actor, ticket, sign=-1, note=f"ticket {ticket.title} reopened")

    return await get_ticket(db, ticket_id)


async def _apply_xp(db: AsyncSession, actor: User, ticket: Ticket, sign: int, note: str) -> None:
    # Read everything up front; a rollback below expires the ORM objects
    ticket_id = ticket.id
    priority = ticket.priority
    user_id = ticket.assignee_id or actor.id
    xp = sign * xp_for_priority(priority)
    try:
        await adjust(
            db,
            user_id=user_id,
            ticket_id=ticket_id,
            priority=priority,
            xp_delta=xp,
            note=note,
            closed_delta=sign,
        )
        await refresh_closed_count(db, user_id)
    except Exception:
        logger.exception("xp_award_failed", ticket_id=ticket_id, user_id=user_id, xp=xp)
        await db.rollback()


async def _refresh_closed_counts(db: AsyncSession, ticket_id: str, user_ids: list[str | None]) -> None:
    """Reconcile closed-ticket counts after a done ticket changed hands or vanished."""
    for user_id in dict.fromkeys(u for u in user_ids if u):
        try:
            await refresh_closed_count(db, user_id)
        except Exception:
            logger.exception("closed_count_refresh_failed", ticket_id=ticket_id, user_id=user_id)
            await db.rollback()


async def update_details(
    db: AsyncSession,
    actor: User,
    ticket_id: str,
    changes: dict[str, Any],
) -> Ticket | None:
    """Apply a partial edit (title, description, priority, type, assignee, due date).

    Reassigning a done ticket reconciles the closed counts of both the old and
    the new assignee. XP already awarded stays where it is.

    Returns None when the ticket does not exist.

    Raises:
        TicketForbidden: If ``actor`` may not modify the ticket.
        UnknownAssignee: If the new assignee names no user.
    """
    ticket = await get_ticket(db, ticket_id)
    if ticket is None:
        return None
    if not can_modify(actor, ticket):
        raise TicketForbidden

    updates = {
        field: value
        for field, value in changes.items()
        if field in EDITABLE_FIELDS and (value is not None or field in NULLABLE_FIELDS)
    }
    if "assignee_id" in updates:
        updates["assignee_id"] = updates["assignee_id"] or None
        if updates["assignee_id"] and await db.get(User, updates["assignee_id"]) is None:
            msg = f"Unknown assignee '{updates['assignee_id']}'"
            raise UnknownAssignee(msg)
    if not updates:
        return ticket

    previous_assignee = ticket.assignee_id
    for field, value in updates.items():
        setattr(ticket, field, value)
    ticket.updated_at = datetime.now(timezone.utc)
    is_done = ticket.status == DONE
    new_assignee = ticket.assignee_id
    await db.commit()
    logger.info("ticket_updated", ticket_id=ticket_id, fields=sorted(updates), actor_id=actor.id)

    if is_done and new_assignee != previous_assignee:
        await _refresh_closed_counts(db, ticket_id, [previous_assignee, new_assignee])

    return await get_ticket(db, ticket_id)


async def delete_ticket(db: AsyncSession, actor: User, ticket_id: str) -> bool:
    """Delete a ticket and its comments. Returns False when it does not exist.

    XP events for the ticket are kept; the assignee's closed count is
    reconciled if the ticket was done.

    Raises:
        TicketForbidden: If ``actor`` may not modify the ticket.
    """
    ticket = await get_ticket(db, ticket_id)
    if ticket is None:
        return False
    if not can_modify(actor, ticket):
        raise TicketForbidden

    done_assignee = ticket.assignee_id if ticket.status == DONE else None
    await db.delete(ticket)
    await db.commit()
    logger.info("ticket_deleted", ticket_id=ticket_id, actor_id=actor.id)

    await _refresh_closed_counts(db, ticket_id, [done_assignee])
    return True


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def get_comment(db: AsyncSession, comment_id: str) -> TicketComment | None:
    result = await db.execute(
        select(TicketComment)
        .where(TicketComment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def add_comment(db: AsyncSession, actor: User, ticket_id: str, text: str) -> TicketComment | None:
    """Comment on a ticket as ``actor``. Returns None when the ticket does not exist."""
    if await get_ticket(db, ticket_id) is None:
        return None

    now = datetime.now(timezone.utc)
    comment = TicketComment(
        ticket_id=ticket_id,
        author_id=actor.id,
        text=text,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    await db.commit()
    logger.info("ticket_commented", ticket_id=ticket_id, comment_id=comment.id, actor_id=actor.id)
    return await get_comment(db, comment.id)


async def update_comment(db: AsyncSession, actor: User, comment_id: str, text: str) -> TicketComment | None:
    """Edit a comment's text. Returns None when the comment does not exist.

    Raises:
        TicketForbidden: If ``actor`` is not the author.
    """
    comment = await get_comment(db, comment_id)
    if comment is None:
        return None
    if comment.author_id != actor.id:
        raise TicketForbidden

    comment.text = text
    comment.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return await get_comment(db, comment_id)


async def delete_comment(db: AsyncSession, actor: User, comment_id: str) -> bool:
    """Delete a comment. Returns False when it does not exist.

    Raises:
        TicketForbidden: If ``actor`` is not the author.
    """
    comment = await get_comment(db, comment_id)
    if comment is None:
        return False
    if comment.author_id != actor.id:
        raise TicketForbidden

    await db.delete(comment)
    await db.commit()
    logger.info("ticket_comment_deleted", comment_id=comment_id, actor_id=actor.id)
    return True
