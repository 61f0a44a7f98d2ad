"""
Database initialization.

Creates all tables known to SQLModel metadata.
"""

from sqlmodel import SQLModel

from app.core.logging import get_logger
from app.db.session import engine

log = get_logger(__name__)


def init_db() -> None:
    """Create every table registered on ``SQLModel.metadata``."""

    # Import all models so SQLModel.metadata has them
    import app.db.base  # noqa: F401

    log.info("creating_tables", tables=sorted(SQLModel.metadata.tables))
    SQLModel.metadata.create_all(engine)
    log.info("tables_created")


if __name__ == "__main__":
    init_db()
