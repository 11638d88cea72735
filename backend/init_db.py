from database import engine, Base
from sqlalchemy import inspect, text
import logging

import models  # noqa: F401 - registers the tables on Base.metadata

logger = logging.getLogger(__name__)


def _check_column_exists(inspector, table: str, column: str) -> bool:
    """Check if a column exists in a table"""
    columns = [col['name'] for col in inspector.get_columns(table)]
    return column in columns


def _add_column_if_missing(inspector, table: str, column: str, column_def: str):
    """Add a column to a table if it doesn't exist"""
    if not _check_column_exists(inspector, table, column):
        logger.info(f"Running migration: Adding '{column}' column to {table} table...")
        with engine.connect() as conn:
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {column_def}"))
            conn.commit()
        logger.info(f"Migration complete: '{column}' column added to {table}")
        return True
    return False


def _run_essential_migrations():
    """
    Upgrade databases created before a column was added.

    Only additive, nullable columns are handled here; create_all takes care
    of new tables.
    """
    inspector = inspect(engine)
    tables = inspector.get_table_names()
    migrations_run = 0

    if 'workspaces' in tables:
        # Reason recorded on dissolution, needed to tell cancellations apart on reactivation
        if _add_column_if_missing(inspector, 'workspaces', 'dissolution_reason', "VARCHAR"):
            migrations_run += 1
        if _add_column_if_missing(inspector, 'workspaces', 'template_id', "VARCHAR"):
            migrations_run += 1

    if 'team_members' in tables:
        if _add_column_if_missing(inspector, 'team_members', 'invited_by', "VARCHAR"):
            migrations_run += 1

    if 'workspace_tasks' in tables:
        if _add_column_if_missing(inspector, 'workspace_tasks', 'completed_at', "DATETIME"):
            migrations_run += 1

    if migrations_run > 0:
        logger.info(f"Database schema updated: {migrations_run} migration(s) applied")
    else:
        logger.debug("Database schema is up to date")

    return migrations_run


def init_database():
    """Create all tables and apply pending column migrations"""
    Base.metadata.create_all(bind=engine)

    try:
        _run_essential_migrations()
    except Exception as e:
        logger.warning(f"Migration warning (non-fatal): {e}")

    logger.info("Database initialized successfully")


if __name__ == "__main__":
    init_database()
