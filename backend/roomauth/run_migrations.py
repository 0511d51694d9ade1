"""
Run Alembic migrations programmatically.

Can be called before uvicorn starts to ensure the database schema is up to
date. Safe to call multiple times; Alembic is a no-op when already at head.
"""
import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from .core.config import Settings

logger = logging.getLogger(__name__)


def run_migrations(settings: Optional[Settings] = None) -> None:
    """Run Alembic migrations up to head using settings.DATABASE_URL."""
    settings = settings or Settings.from_env()

    # This file is at backend/roomauth/run_migrations.py; alembic.ini is at backend/alembic.ini
    project_root = Path(__file__).resolve().parents[1]
    alembic_ini = project_root / "alembic.ini"

    if not alembic_ini.exists():
        logger.error(f"Alembic config not found at {alembic_ini}")
        raise FileNotFoundError(f"Alembic config not found at {alembic_ini}")

    cfg = Config(str(alembic_ini))
    database_url = settings.DATABASE_URL
    cfg.set_main_option("sqlalchemy.url", database_url)

    db_url_safe = database_url.split("@")[-1] if "@" in database_url else database_url
    logger.info(f"Running Alembic migrations to head on {db_url_safe}")
    try:
        command.upgrade(cfg, "head")
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        raise
    logger.info("Alembic migrations complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_migrations()
