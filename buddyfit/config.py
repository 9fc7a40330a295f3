"""
buddyfit.config — YAML Configuration Loader
============================================

This module reads ``config.yaml`` for **infrastructure-only** settings
(identity, API port, AI model).  All gameplay tuning values
(base points, bonuses, comeback curve) live in the ``settings`` database
table and are read through :class:`~buddyfit.engine.cache.ConfigCache`.

Usage::

    from buddyfit.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "BuddyFit"
    print(cfg.api_port)          # 8000
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# Gameplay tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BuddyFitConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str
    tagline: str

    # API
    api_port: int

    # Motivation messages
    motivation_model: str = "claude-3-haiku-20240307"
    motivation_timeout_seconds: float = 8.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> BuddyFitConfig:
    """Read *path* and return a :class:`BuddyFitConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return BuddyFitConfig(
        app_name=raw["app_name"],
        tagline=raw["tagline"],
        api_port=int(raw["api_port"]),
        motivation_model=raw.get("motivation_model") or "claude-3-haiku-20240307",
        motivation_timeout_seconds=float(raw.get("motivation_timeout_seconds", 8.0)),
    )
