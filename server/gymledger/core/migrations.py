from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from gymledger.core.config import settings

logger = logging.getLogger(__name__)

SERVER_DIR = Path(__file__).resolve().parent.parent.parent
ALEMBIC_INI = SERVER_DIR / "alembic.ini"
ALEMBIC_DIR = SERVER_DIR / "alembic"


def alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", database_url or settings.DATABASE_URL)
    config.attributes["configure_logger"] = False
    return config


def run_migrations(database_url: str | None = None) -> None:
    """Upgrade the schema to the newest revision.

    Each revision runs at most once; ``alembic_version`` records the applied
    head.
    """

    logger.info("schema_upgrade_started", extra={"target": "head"})
    command.upgrade(alembic_config(database_url), "head")
    logger.info("schema_upgrade_finished")
