"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from tickquest.schemas import CamelModel


class StatsResponse(CamelModel):
    user_id: str
    xp_total: int
    level: int
    next_level_threshold: int
    tickets_closed: int
    streak_days: int
    last_ticket_closed_at: datetime | None = None


class XPEventResponse(CamelModel):
    id: str
    user_id: str
    ticket_id: str | None = None
    priority: str
    xp: int
    note: str
    created_at: datetime


class LeaderboardEntry(CamelModel):
    id: str
    name: str
    username: str
    role: str
    xp: int
    level: int
    tickets_closed_count: int
    rank: int
    xp_gap: int
