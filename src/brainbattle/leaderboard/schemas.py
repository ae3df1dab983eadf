"""Response models for the leaderboard."""

from __future__ import annotations

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    username: str | None
    avatar_url: str | None
    total_points: int
    is_current_user: bool


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    total: int
    my_rank: int | None = None
    my_exact_rank: int | None = None
    my_points: int | None = None
