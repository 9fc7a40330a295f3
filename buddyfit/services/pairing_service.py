"""
buddyfit.services.pairing_service — Buddy Pairings
===================================================

A pairing starts as a request from ``user1`` to ``user2`` (``pending``),
becomes ``active`` when ``user2`` accepts, and ``ended`` when either member
leaves.  A user has at most one active pairing; the active pairing is what
earns the buddy bonus and the ``buddy`` comeback competition.

Rejected or cancelled requests are deleted.  Ended pairings stay for
history; a new request between the same two users re-opens the old row.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buddyfit.constants import as_utc
from buddyfit.database.models import Pairing, PairingStatus, Streak, User
from buddyfit.errors import ConflictError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _involves(user_id: int):
    return or_(Pairing.user1_id == user_id, Pairing.user2_id == user_id)


def _user_dict(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "avatar_url": user.avatar_url,
    }


def pairing_dict(p: Pairing) -> dict:
    return {
        "id": p.id,
        "user1_id": p.user1_id,
        "user2_id": p.user2_id,
        "status": p.status,
        "started_at": as_utc(p.started_at).isoformat() if p.started_at else None,
        "ended_at": as_utc(p.ended_at).isoformat() if p.ended_at else None,
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def find_active_pairing(session: Session, user_id: int) -> Pairing | None:
    """The user's active buddy pairing; None when unpaired or the lookup fails."""
    try:
        with session.begin_nested():
            return session.scalar(
                select(Pairing)
                .where(Pairing.status == PairingStatus.ACTIVE.value, _involves(user_id))
                .order_by(Pairing.id)
                .limit(1)
            )
    except SQLAlchemyError:
        logger.warning("Pairing lookup failed for user %d — scoring as solo", user_id, exc_info=True)
        return None


def _has_active(session: Session, user_id: int) -> bool:
    return session.scalar(
        select(Pairing.id)
        .where(Pairing.status == PairingStatus.ACTIVE.value, _involves(user_id))
        .limit(1)
    ) is not None


def get_current_pairing(engine: Engine, user_id: int) -> dict | None:
    """The active pairing with the buddy's profile and streak, or None."""
    with Session(engine) as session:
        pairing = find_active_pairing(session, user_id)
        if pairing is None:
            return None
        buddy_id = pairing.buddy_of(user_id)
        streak = session.get(Streak, buddy_id)
        return {
            **pairing_dict(pairing),
            "buddy": _user_dict(session.get(User, buddy_id)),
            "buddy_stats": {
                "current_streak": streak.current_streak if streak else 0,
                "longest_streak": streak.longest_streak if streak else 0,
            },
        }


def list_requests(engine: Engine, user_id: int) -> dict:
    """Pending requests the user has received and sent, newest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Pairing)
            .where(Pairing.status == PairingStatus.PENDING.value, _involves(user_id))
            .order_by(Pairing.created_at.desc(), Pairing.id.desc())
        ).all()
        incoming, sent = [], []
        for p in rows:
            if p.user2_id == user_id:
                incoming.append({**pairing_dict(p), "from": _user_dict(session.get(User, p.user1_id))})
            else:
                sent.append({**pairing_dict(p), "to": _user_dict(session.get(User, p.user2_id))})
        return {"incoming": incoming, "sent": sent}


# ---------------------------------------------------------------------------
# Request lifecycle
# ---------------------------------------------------------------------------
def send_request(engine: Engine, user_id: int, to_user_id: int) -> dict:
    """Ask *to_user_id* to become the caller's buddy.

    Raises
    ------
    ValueError
        If the caller asks themselves.
    NotFoundError
        If the other user does not exist.
    ConflictError
        If the caller already has a buddy, or a pending or active pairing
        between the two already exists.
    """
    if user_id == to_user_id:
        raise ValueError("You cannot pair with yourself")

    with Session(engine) as session:
        if session.get(User, to_user_id) is None:
            raise NotFoundError(f"User {to_user_id} not found")
        if _has_active(session, user_id):
            raise ConflictError("You already have an active gym buddy")

        between = or_(
            and_(Pairing.user1_id == user_id, Pairing.user2_id == to_user_id),
            and_(Pairing.user1_id == to_user_id, Pairing.user2_id == user_id),
        )
        existing = session.scalars(select(Pairing).where(between)).all()
        if any(p.status != PairingStatus.ENDED for p in existing):
            raise ConflictError("Request already exists")

        pairing = next((p for p in existing if p.user1_id == user_id), None)
        if pairing is None:
            pairing = Pairing(user1_id=user_id, user2_id=to_user_id)
            session.add(pairing)
        pairing.status = PairingStatus.PENDING.value
        pairing.started_at = None
        pairing.ended_at = None
        session.commit()
        logger.info("Pairing request %d: user %d → user %d", pairing.id, user_id, to_user_id)
        return pairing_dict(pairing)


def _pending_for(session: Session, pairing_id: int, user_id: int, *, sent: bool) -> Pairing:
    """A pending request the caller received (or, with *sent*, sent)."""
    pairing = session.get(Pairing, pairing_id)
    owner = None
    if pairing is not None:
        owner = pairing.user1_id if sent else pairing.user2_id
    if pairing is None or pairing.status != PairingStatus.PENDING or owner != user_id:
        raise NotFoundError("Request not found")
    return pairing


def accept_request(
    engine: Engine, user_id: int, pairing_id: int, now: datetime | None = None,
) -> dict:
    """Accept a pending request addressed to the caller.

    Raises
    ------
    NotFoundError
        If there is no pending request *pairing_id* addressed to the caller.
    ConflictError
        If either user already has an active buddy.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        pairing = _pending_for(session, pairing_id, user_id, sent=False)
        if _has_active(session, pairing.user1_id) or _has_active(session, pairing.user2_id):
            raise ConflictError("One of you already has an active gym buddy")
        pairing.status = PairingStatus.ACTIVE.value
        pairing.started_at = now
        session.commit()
        logger.info("Pairing %d active: %d <-> %d", pairing.id, pairing.user1_id, pairing.user2_id)
        return pairing_dict(pairing)


def reject_request(engine: Engine, user_id: int, pairing_id: int) -> None:
    """Decline a pending request addressed to the caller."""
    with Session(engine) as session:
        session.delete(_pending_for(session, pairing_id, user_id, sent=False))
        session.commit()


def cancel_request(engine: Engine, user_id: int, pairing_id: int) -> None:
    """Withdraw a pending request the caller sent."""
    with Session(engine) as session:
        session.delete(_pending_for(session, pairing_id, user_id, sent=True))
        session.commit()


def end_pairing(
    engine: Engine, user_id: int, pairing_id: int, now: datetime | None = None,
) -> dict:
    """End the caller's active pairing *pairing_id*."""
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        pairing = session.get(Pairing, pairing_id)
        if (
            pairing is None
            or pairing.status != PairingStatus.ACTIVE
            or pairing.buddy_of(user_id) is None
        ):
            raise NotFoundError("Active pairing not found")
        pairing.status = PairingStatus.ENDED.value
        pairing.ended_at = now
        session.commit()
        logger.info("Pairing %d ended by user %d", pairing.id, user_id)
        return pairing_dict(pairing)
