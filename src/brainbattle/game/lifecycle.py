"""Session status state machine.

State progression: waiting -> starting -> in_progress -> completed
Transitions are validated (no skipping back to waiting) and applied with a
compare-and-swap so concurrent writers cannot both win the same transition.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import GameSession

logger = structlog.get_logger()

VALID_TRANSITIONS: dict[str, list[str]] = {
    "waiting": ["starting"],
    "starting": ["in_progress", "completed"],
    "in_progress": ["completed"],
    "completed": [],
}


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise ValueError(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


async def transition_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    from_statuses: str | tuple[str, ...],
    to_status: str,
) -> bool:
    """
    Move a session to ``to_status`` only if it is currently in ``from_statuses``.

    Commits. Returns True when this call performed the transition; False means
    another writer got there first (or the session is elsewhere).
    """
    if isinstance(from_statuses, str):
        from_statuses = (from_statuses,)
    for current in from_statuses:
        validate_transition(current, to_status)

    values: dict[str, object] = {"status": to_status}
    now = datetime.now(timezone.utc)
    if to_status == "starting":
        values["started_at"] = now
    elif to_status == "completed":
        values["ended_at"] = now

    result = await db.execute(
        update(GameSession)
        .where(GameSession.id == session_id, GameSession.status.in_(from_statuses))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    won = result.rowcount == 1
    if won:
        logger.info("session_transition", session_id=str(session_id), to_status=to_status)
    return won
