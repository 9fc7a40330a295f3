"""
buddyfit.__main__ — Entry point for ``python -m buddyfit``
==========================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (identity and port).
3. Create the SQLAlchemy engine, ensure tables exist and seed defaults.
4. Serve the FastAPI app with uvicorn (blocking).

Run with::

    python -m buddyfit
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from buddyfit.config import load_config
from buddyfit.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("buddyfit")


def main() -> None:
    """Bootstrap the database and run the BuddyFit API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — %s: %s", cfg.app_name, cfg.tagline)

    # 3. Database: tables, default settings, badge catalog (idempotent).
    engine = create_db_engine()
    init_db(engine)
    engine.dispose()

    # 4. API.
    logger.info("Starting BuddyFit API on port %d…", cfg.api_port)
    uvicorn.run("buddyfit.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()
