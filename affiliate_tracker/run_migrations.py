"""
Run Alembic migrations programmatically.

Called on startup outside local/dev so the database schema is at head before
the first request. Safe to call multiple times; Alembic is a no-op at head.
"""
from pathlib import Path
import logging

from alembic import command
from alembic.config import Config

from .config import settings

logger = logging.getLogger(__name__)


def run_migrations(database_url: str = None) -> None:
    """
    Run Alembic migrations up to head.

    Args:
        database_url: Target database; defaults to DATABASE_URL from settings
    """
    # alembic.ini lives at the project root, one level above this package
    project_root = Path(__file__).resolve().parents[1]
    alembic_ini = project_root / "alembic.ini"

    if not alembic_ini.exists():
        logger.error(f"Alembic config not found at {alembic_ini}")
        raise FileNotFoundError(f"Alembic config not found at {alembic_ini}")

    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(project_root / "alembic"))

    database_url = database_url or settings.database_url
    cfg.set_main_option("sqlalchemy.url", database_url)

    logger.info(f"Running Alembic migrations to head on {database_url.split('@')[-1]}")
    try:
        command.upgrade(cfg, "head")
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        raise
    logger.info("Alembic migrations complete.")
