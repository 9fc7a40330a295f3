"""
BuddyFit — Fitness Accountability with a Buddy
================================================
Users log workouts, pair up with a buddy, and are kept consistent through
streaks, points, badges, leaderboards, seasonal competitions and
AI-generated motivation (or shame).

Package layout::

    buddyfit/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Leveling table, medals, rarity glyphs
    ├── errors.py          # Domain exceptions
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings + badge catalog
    ├── engine/
    │   ├── streaks.py     # Streak computation
    │   ├── points.py      # Workout points calculation
    │   ├── comeback.py    # Comeback multiplier curve
    │   ├── badges.py      # Badge criteria + progress
    │   ├── leaderboard.py # Ranking + podium
    │   ├── challenges.py  # Challenge progress handlers
    │   └── cache.py       # In-memory settings/badge cache
    ├── services/
    │   ├── workout_service.py   # Workout create/update/delete unit of work
    │   ├── streak_service.py    # Streak persistence + workout stats
    │   ├── points_service.py    # Ledger, stats, personal records
    │   ├── comeback_service.py  # Behind-the-leader bonus
    │   ├── badge_service.py     # Badge progress + awards
    │   ├── leaderboard_service.py
    │   ├── challenge_service.py # Challenges + seasonal competitions
    │   ├── motivation_service.py # AI messages with local fallback
    │   └── settings_service.py
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT auth + DB dependencies
        └── routes/        # Workouts, gamification, badges, motivation, admin
"""

__version__ = "0.1.0"
