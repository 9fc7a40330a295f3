"""
buddyfit.services.comeback_service — Comeback Bonus Calculation
================================================================

Measures how far a user trails the leader of one competition and stores
the resulting time-boxed multiplier.  There is exactly one row per
``(user, competition_type, competition_id)``; recalculating updates it.

Competition metrics:

* ``challenge`` — the participant's progress score (volume or workout
  count), falling back to ``points_earned``.  Only challenges with
  ``comeback_enabled`` grant a multiplier.
* ``seasonal``  — ``points_earned`` in the competition.
* ``buddy``     — weekly points of the two members of an active pairing.

Challenges and seasonal competitions only grant a multiplier while their
status is ``active`` and *now* falls inside their date window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from buddyfit.constants import as_utc
from buddyfit.database.models import (
    Challenge,
    ChallengeParticipant,
    ChallengeStatus,
    ComebackMechanic,
    CompetitionType,
    Pairing,
    PairingStatus,
    SeasonalCompetition,
    SeasonalCompetitionParticipant,
    UserStats,
)
from buddyfit.engine.challenges import progress_score
from buddyfit.engine.comeback import (
    behind_by_percentage,
    bonus_duration,
    comeback_multiplier,
    in_cooldown,
    is_bonus_active,
)
from buddyfit.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from buddyfit.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ComebackResult:
    multiplier: float
    active: bool
    behind_by_percentage: float
    expires_at: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "multiplier": self.multiplier,
            "active": self.active,
            "behind_by_percentage": self.behind_by_percentage,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


# ---------------------------------------------------------------------------
# Metric collection — each returns (my_score, leader_score, eligible)
# ---------------------------------------------------------------------------
def _challenge_scores(
    session: Session, user_id: int, challenge_id: int, now: datetime,
) -> tuple[float, float, bool]:
    challenge = session.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError(f"Challenge {challenge_id} not found")
    rows = session.scalars(
        select(ChallengeParticipant).where(ChallengeParticipant.challenge_id == challenge_id)
    ).all()

    def score(p: ChallengeParticipant) -> float:
        progress = p.progress or {}
        if "total_volume" in progress or "workout_count" in progress:
            return progress_score(progress)
        return float(p.points_earned or 0)

    scores = {p.user_id: score(p) for p in rows}
    if user_id not in scores:
        raise NotFoundError(f"User {user_id} is not in challenge {challenge_id}")
    running = (
        challenge.status == ChallengeStatus.ACTIVE
        and as_utc(challenge.start_date) <= now <= as_utc(challenge.end_date)
    )
    return scores[user_id], max(scores.values()), running and bool(challenge.comeback_enabled)


def _seasonal_scores(
    session: Session, user_id: int, competition_id: int, now: datetime,
) -> tuple[float, float, bool]:
    competition = session.get(SeasonalCompetition, competition_id)
    if competition is None:
        raise NotFoundError(f"Seasonal competition {competition_id} not found")
    rows = session.execute(
        select(
            SeasonalCompetitionParticipant.user_id,
            SeasonalCompetitionParticipant.points_earned,
        ).where(SeasonalCompetitionParticipant.competition_id == competition_id)
    ).all()
    scores = {uid: float(points or 0) for uid, points in rows}
    if user_id not in scores:
        raise NotFoundError(f"User {user_id} is not in seasonal competition {competition_id}")
    running = (
        competition.status == ChallengeStatus.ACTIVE
        and competition.start_date <= now.date() <= competition.end_date
    )
    return scores[user_id], max(scores.values()), running


def _buddy_scores(
    session: Session, user_id: int, pairing_id: int, now: datetime,
) -> tuple[float, float, bool]:
    pairing = session.get(Pairing, pairing_id)
    if (
        pairing is None
        or pairing.status != PairingStatus.ACTIVE
        or pairing.buddy_of(user_id) is None
    ):
        raise NotFoundError(f"Active pairing {pairing_id} not found for user {user_id}")
    buddy_id = pairing.buddy_of(user_id)
    weekly = dict(session.execute(
        select(UserStats.user_id, UserStats.weekly_points).where(
            UserStats.user_id.in_([user_id, buddy_id])
        )
    ).all())
    mine = float(weekly.get(user_id) or 0)
    theirs = float(weekly.get(buddy_id) or 0)
    return mine, max(mine, theirs), True


_SCORERS = {
    CompetitionType.CHALLENGE: _challenge_scores,
    CompetitionType.SEASONAL: _seasonal_scores,
    CompetitionType.BUDDY: _buddy_scores,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def calculate_comeback(
    engine: Engine,
    user_id: int,
    competition_type: str,
    competition_id: int,
    *,
    now: datetime | None = None,
    cache: ConfigCache | None = None,
) -> ComebackResult:
    """Recalculate and store the comeback bonus for one competition.

    A bonus that switches on gets a fresh expiry and one that is already
    live keeps its original expiry.  An expired bonus cannot re-arm until
    ``comeback.cooldown_hours`` have passed.  Closing the gap, or the
    competition no longer running, switches the bonus off.

    Raises
    ------
    NotFoundError
        If the competition does not exist, the user is not in it, or a
        buddy pairing is not active.
    ValueError
        If *competition_type* is not recognised.
    """
    now = as_utc(now or datetime.now(UTC))
    try:
        kind = CompetitionType(competition_type)
    except ValueError:
        raise ValueError(f"Unknown competition type: {competition_type!r}") from None
    competition_type = kind.value
    scorer = _SCORERS[kind]

    with Session(engine, expire_on_commit=False) as session:
        mine, leader, eligible = scorer(session, user_id, competition_id, now)
        behind = behind_by_percentage(mine, leader)
        multiplier = comeback_multiplier(behind, cache) if eligible else 1.0

        row = session.scalar(
            select(ComebackMechanic).where(
                ComebackMechanic.user_id == user_id,
                ComebackMechanic.competition_type == competition_type,
                ComebackMechanic.competition_id == competition_id,
            )
        )
        if row is None:
            row = ComebackMechanic(
                user_id=user_id,
                competition_type=competition_type,
                competition_id=competition_id,
                bonus_active=False,
            )
            session.add(row)

        was_live = is_bonus_active(bool(row.bonus_active), row.bonus_expires_at, now)
        row.behind_by_percentage = behind
        row.last_calculated = now
        if multiplier > 1.0 and was_live:
            row.multiplier = multiplier
        elif multiplier > 1.0 and not in_cooldown(row.bonus_expires_at, now, cache):
            row.multiplier = multiplier
            row.bonus_active = True
            row.bonus_expires_at = now + bonus_duration(cache)
            logger.info(
                "Comeback bonus x%.2f activated for user %d in %s:%d (%.1f%% behind)",
                multiplier, user_id, competition_type, competition_id, behind,
            )
        elif multiplier > 1.0:
            # expired and still cooling down; keep the old expiry as the anchor
            row.multiplier = 1.0
            row.bonus_active = False
        else:
            row.multiplier = 1.0
            row.bonus_active = False
            row.bonus_expires_at = None

        _mirror_on_participant(session, row)
        session.commit()

        expires_at = (
            as_utc(row.bonus_expires_at) if row.bonus_active and row.bonus_expires_at else None
        )
        return ComebackResult(
            multiplier=row.multiplier if row.bonus_active else 1.0,
            active=bool(row.bonus_active),
            behind_by_percentage=behind,
            expires_at=expires_at,
        )


def _mirror_on_participant(session: Session, row: ComebackMechanic) -> None:
    """Copy the bonus onto the competition's participant row for display."""
    if row.competition_type == CompetitionType.SEASONAL:
        participant = session.scalar(
            select(SeasonalCompetitionParticipant).where(
                SeasonalCompetitionParticipant.competition_id == row.competition_id,
                SeasonalCompetitionParticipant.user_id == row.user_id,
            )
        )
        if participant is not None:
            participant.comeback_multiplier = row.multiplier if row.bonus_active else 1.0
    elif row.competition_type == CompetitionType.CHALLENGE:
        participant = session.scalar(
            select(ChallengeParticipant).where(
                ChallengeParticipant.challenge_id == row.competition_id,
                ChallengeParticipant.user_id == row.user_id,
            )
        )
        if participant is not None:
            participant.comeback_bonus_applied = bool(row.bonus_active)
