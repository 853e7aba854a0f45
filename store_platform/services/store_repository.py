"""SQLModel-backed storage for store records."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from ..database import get_db
from ..db_models import Store, utcnow
from ..models import StoreStatus

logger = logging.getLogger("store_repository")


class StoreRepository:
    """Durable record store. Every status write is conditional on the current status."""

    def insert(self, store: Store) -> bool:
        """Insert a new record. Returns False if the store_id or namespace is taken."""
        try:
            with get_db() as session:
                session.add(store)
        except IntegrityError:
            logger.warning(f"Store id {store.store_id} already taken")
            return False
        return True

    def get(self, store_id: str) -> Store | None:
        with get_db() as session:
            return session.get(Store, store_id)

    def list(self, include_deleted: bool = False) -> list[Store]:
        """Newest first."""
        stmt = select(Store)
        if not include_deleted:
            stmt = stmt.where(Store.status != StoreStatus.DELETED.value)
        stmt = stmt.order_by(Store.created_at.desc())
        with get_db() as session:
            return list(session.exec(stmt).all())

    def list_by_status(self, status: StoreStatus) -> list[Store]:
        stmt = select(Store).where(Store.status == status.value).order_by(Store.created_at)
        with get_db() as session:
            return list(session.exec(stmt).all())

    def transition(
        self,
        store_id: str,
        new_status: StoreStatus,
        allowed_from: Iterable[StoreStatus],
        *,
        message: str | None = None,
        deleted_at: datetime | None = None,
    ) -> bool:
        """
        UPDATE ... SET status = new_status WHERE store_id = :id AND status IN (allowed_from).

        Returns True if a row moved. A stale writer whose precondition no longer
        holds (e.g. the store was deleted meanwhile) changes nothing.
        """
        values: dict = {"status": new_status.value, "updated_at": utcnow()}
        if message is not None:
            values["message"] = message
        if deleted_at is not None:
            values["deleted_at"] = deleted_at
        stmt = (
            update(Store)
            .where(Store.store_id == store_id)
            .where(Store.status.in_([s.value for s in allowed_from]))
            .values(**values)
        )
        with get_db() as session:
            result = session.exec(stmt)
            return result.rowcount > 0

    def update_message(self, store_id: str, message: str) -> bool:
        """Annotate a live record. Never touches status or deleted records."""
        stmt = (
            update(Store)
            .where(Store.store_id == store_id)
            .where(Store.status != StoreStatus.DELETED.value)
            .values(message=message, updated_at=utcnow())
        )
        with get_db() as session:
            result = session.exec(stmt)
            return result.rowcount > 0

    def count_by_status(self) -> dict[str, int]:
        counts = {s.value: 0 for s in StoreStatus}
        stmt = select(Store.status, func.count()).group_by(Store.status)
        with get_db() as session:
            for status, count in session.exec(stmt).all():
                counts[status] = count
        return counts
