"""Database engine utilities.

All SQLAlchemy connectivity for the ledger is created here.
"""

from sqlalchemy import Engine, create_engine


def db_create_engine(database_url: str, pool_size: int = 5) -> Engine:
    """Create the SQLAlchemy engine for ledger database access.

    Args:
        database_url: SQLAlchemy database URL.
        pool_size: Connection pool size shared by concurrent position syncs.

    Returns:
        Engine: Configured SQLAlchemy engine.

    Raises:
        ValueError: Raised when the database URL is blank or pool size is invalid.
    """

    if not database_url.strip():
        raise ValueError("database_url must not be blank")
    if pool_size < 1:
        raise ValueError("pool_size must be >= 1")

    return create_engine(database_url, pool_pre_ping=True, pool_size=pool_size)
