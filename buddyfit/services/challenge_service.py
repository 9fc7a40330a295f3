"""
buddyfit.services.challenge_service — Challenges & Seasonal Competitions
=========================================================================

Join/progress flows for timed challenges and the monthly seasonal
competition.  Progress evaluation is delegated to the pure handlers in
:mod:`buddyfit.engine.challenges`; completion pays ``points_reward`` once
through the ledger (source key ``challenge:<id>:<user>``).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buddyfit.database.models import (
    Challenge,
    ChallengeParticipant,
    ChallengeStatus,
    SeasonalCompetition,
    SeasonalCompetitionParticipant,
    User,
    Workout,
)
from buddyfit.engine.challenges import ChallengeWorkout, apply_workout
from buddyfit.errors import ConflictError, NotFoundError
from buddyfit.services.leaderboard_service import get_seasonal_leaderboard
from buddyfit.services.points_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _challenge_dict(c: Challenge) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "challenge_type": c.challenge_type,
        "category": c.category,
        "icon": c.icon,
        "start_date": _iso(c.start_date),
        "end_date": _iso(c.end_date),
        "requirements": c.requirements,
        "points_reward": c.points_reward,
        "comeback_enabled": c.comeback_enabled,
        "max_participants": c.max_participants,
        "status": c.status,
    }


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
def get_active_challenges(engine: Engine, user_id: int, now: datetime | None = None) -> list[dict]:
    """Running challenges with participant counts and the caller's progress."""
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        challenges = session.scalars(
            select(Challenge)
            .where(
                Challenge.status == ChallengeStatus.ACTIVE.value,
                Challenge.start_date <= now,
                Challenge.end_date >= now,
            )
            .order_by(Challenge.end_date, Challenge.id)
        ).all()
        ids = [c.id for c in challenges]
        if not ids:
            return []

        counts = dict(session.execute(
            select(ChallengeParticipant.challenge_id, func.count())
            .where(ChallengeParticipant.challenge_id.in_(ids))
            .group_by(ChallengeParticipant.challenge_id)
        ).all())
        mine = {
            p.challenge_id: p
            for p in session.scalars(
                select(ChallengeParticipant).where(
                    ChallengeParticipant.challenge_id.in_(ids),
                    ChallengeParticipant.user_id == user_id,
                )
            )
        }
        return [
            {
                **_challenge_dict(c),
                "is_joined": c.id in mine,
                "participant_count": counts.get(c.id, 0),
                "user_progress": mine[c.id].progress if c.id in mine else None,
            }
            for c in challenges
        ]


def join_challenge(engine: Engine, user_id: int, challenge_id: int) -> dict:
    """Enter *user_id* into an active challenge.

    Raises
    ------
    NotFoundError
        If the challenge does not exist or is not active.
    ConflictError
        If the user already joined, or the challenge is full.
    """
    with Session(engine) as session:
        challenge = session.get(Challenge, challenge_id)
        if challenge is None or challenge.status != ChallengeStatus.ACTIVE:
            raise NotFoundError("Challenge not found or not active")

        if challenge.max_participants is not None:
            joined = session.scalar(
                select(func.count()).select_from(ChallengeParticipant).where(
                    ChallengeParticipant.challenge_id == challenge_id
                )
            ) or 0
            if joined >= challenge.max_participants:
                raise ConflictError("Challenge is full")

        try:
            with session.begin_nested():
                session.add(ChallengeParticipant(
                    challenge_id=challenge_id, user_id=user_id, progress={},
                ))
                session.flush()
        except IntegrityError:
            raise ConflictError("Already joined this challenge") from None
        session.commit()
    logger.info("User %d joined challenge %d", user_id, challenge_id)
    return {"success": True}


def update_challenge_progress(
    engine: Engine,
    user_id: int,
    challenge_id: int,
    workout_id: int,
    now: datetime | None = None,
) -> dict:
    """Count one of the caller's workouts toward a challenge.

    Returns ``{"progress", "completed", "points_earned"}`` where
    ``points_earned`` is non-zero only on the call that completes it.

    Raises
    ------
    NotFoundError
        If the challenge, the caller's participation or the workout is missing.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        challenge = session.get(Challenge, challenge_id)
        participant = session.scalar(
            select(ChallengeParticipant).where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.user_id == user_id,
            )
        )
        workout = session.get(Workout, workout_id)
        if challenge is None or participant is None or workout is None or workout.user_id != user_id:
            raise NotFoundError("Challenge, participant, or workout not found")

        user = session.get(User, user_id)
        update = apply_workout(
            challenge.challenge_type,
            challenge.requirements,
            participant.progress,
            ChallengeWorkout(
                id=workout.id,
                exercises=list(workout.exercises or []),
                total_volume=workout.total_volume or 0.0,
            ),
            body_weight=user.starting_weight if user else None,
            now=now,
        )
        participant.progress = update.progress

        points_earned = 0
        if update.newly_completed:
            if participant.completed_at is None:
                participant.completed_at = now
            awarded = award_points(
                session,
                user_id,
                challenge.points_reward,
                f"Completed challenge: {challenge.name}",
                {"challenge_id": challenge.id, "workout_id": workout.id},
                source_key=f"challenge:{challenge.id}:{user_id}",
                now=now,
            )
            if awarded:
                points_earned = challenge.points_reward
                participant.points_earned = (participant.points_earned or 0) + points_earned
                logger.info("User %d completed challenge %d", user_id, challenge.id)

        session.commit()
        return {
            "progress": update.progress,
            "completed": bool(update.progress.get("completed")),
            "points_earned": points_earned,
        }


# ---------------------------------------------------------------------------
# Seasonal competitions
# ---------------------------------------------------------------------------
def _competition_dict(c: SeasonalCompetition) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "theme": c.theme,
        "month": c.month,
        "year": c.year,
        "start_date": _iso(c.start_date),
        "end_date": _iso(c.end_date),
        "scoring_rules": c.scoring_rules,
        "prizes": c.prizes,
        "min_participants": c.min_participants,
        "status": c.status,
    }


def get_current_seasonal_competition(
    engine: Engine, user_id: int, now: datetime | None = None,
) -> dict | None:
    """The running seasonal competition with its top 10 and the caller's entry."""
    today = (now or datetime.now(UTC)).date()
    with Session(engine) as session:
        competition = session.scalar(
            select(SeasonalCompetition)
            .where(
                SeasonalCompetition.status == ChallengeStatus.ACTIVE.value,
                SeasonalCompetition.start_date <= today,
                SeasonalCompetition.end_date >= today,
            )
            .order_by(SeasonalCompetition.start_date.desc())
            .limit(1)
        )
        if competition is None:
            return None
        info = _competition_dict(competition)
        entry = session.scalar(
            select(SeasonalCompetitionParticipant).where(
                SeasonalCompetitionParticipant.competition_id == competition.id,
                SeasonalCompetitionParticipant.user_id == user_id,
            )
        )
        participation = None
        if entry is not None:
            participation = {
                "points_earned": entry.points_earned,
                "rank": entry.rank,
                "comeback_multiplier": entry.comeback_multiplier,
                "last_activity": _iso(entry.last_activity),
                "stats": entry.stats,
            }

    board = get_seasonal_leaderboard(engine, info["id"], limit=10, viewer_id=user_id)
    return {
        **info,
        "user_participation": participation,
        "leaderboard": [e.as_dict() for e in board.entries],
        "viewer_position": board.viewer_position.as_dict() if board.viewer_position else None,
    }


def join_seasonal_competition(engine: Engine, user_id: int, competition_id: int) -> dict:
    """Enter *user_id* into a seasonal competition.

    Raises
    ------
    NotFoundError
        If the competition does not exist.
    ConflictError
        If the user already joined.
    """
    with Session(engine) as session:
        if session.get(SeasonalCompetition, competition_id) is None:
            raise NotFoundError(f"Seasonal competition {competition_id} not found")
        try:
            with session.begin_nested():
                session.add(SeasonalCompetitionParticipant(
                    competition_id=competition_id, user_id=user_id, stats={},
                ))
                session.flush()
        except IntegrityError:
            raise ConflictError("Already joined this competition") from None
        session.commit()
    logger.info("User %d joined seasonal competition %d", user_id, competition_id)
    return {"success": True}
