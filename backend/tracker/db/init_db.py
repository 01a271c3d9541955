"""
Create the tables and optionally seed the demonstration sessions.

Usage: python -m tracker.db.init_db [--seed] [--force]
"""
import logging
import sys

from tracker.db.session import SessionLocal, init_db
from tracker.db.sample_data import seed_sample_sessions

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("Creating tables...")
    init_db()
    if "--seed" in sys.argv:
        db = SessionLocal()
        try:
            created = seed_sample_sessions(db, force="--force" in sys.argv)
            logger.info(f"Seeded {created} sample sessions")
        finally:
            db.close()
    logger.info("Database ready")
