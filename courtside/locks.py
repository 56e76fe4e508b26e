"""
Per-resource serialization for check-then-insert booking flows.

On PostgreSQL a transaction-scoped advisory lock keyed by
``"<resource_type>:<resource_id>"`` is taken, so two requests racing for the
same court/instructor queue up behind each other until the first commits or
rolls back.

pysqlite opens no transaction for SELECTs, so on SQLite the availability read
would run before either writer holds a lock. A no-op write on the resource
row starts the transaction and takes the database write lock up front; the
second request then blocks (up to the busy timeout) until the first finishes.
Other backends use ``SELECT ... FOR UPDATE`` on the resource row.
"""

import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def lock_key(resource_type: str, resource_id: int) -> str:
    return f"{resource_type}:{resource_id}"


def acquire_resource_lock(db: Session, resource_type: str, resource_id: int, model=None) -> None:
    """Block until this transaction holds the lock for the given resource"""
    key = lock_key(resource_type, resource_id)
    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
        logger.debug(f"Advisory lock acquired for {key}")
        return

    if model is None:
        return

    if dialect == "sqlite":
        # Raw SQL so onupdate columns (updated_at) are left alone
        db.execute(
            text(f"UPDATE {model.__tablename__} SET id = id WHERE id = :id"),
            {"id": resource_id},
        )
        logger.debug(f"Write lock acquired for {key}")
        return

    db.query(model).filter(model.id == resource_id).with_for_update().first()
    logger.debug(f"Row lock acquired for {key}")
