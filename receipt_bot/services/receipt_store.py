"""Persistent store for receipt records.

The store is the sole durable owner of receipt bytes. It maps the
``ReceiptRecord`` aggregate onto two tables (``receipts`` and
``line_items``) and offers a deliberately small contract:

* ``create`` inserts a record and returns its id.
* ``update`` replaces store name, total, usage, status and status
  history, and fully replaces the product list (delete then reinsert).
* ``append_status`` performs one read-modify-write on the status and
  its history. Prior entries are never rewritten.
* ``get_by_id`` / ``list_records`` read records back.
* ``cleanup_older_than`` deletes records past a retention window.

No per-row locking is used. The single-flight guard in
``receipt_bot.core.guard`` ensures only one flow mutates records at a
time; if the guard is ever removed this class needs optimistic
versioning on ``receipts``.

Every SQLAlchemy failure is logged once here and re-raised as
``StorageError``; unknown ids raise ``NotFoundError``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from receipt_bot.core.exceptions import NotFoundError, StorageError
from receipt_bot.models.enums import ReceiptStatus
from receipt_bot.models.schemas import LineItem, ReceiptRecord, StatusEntry, TokenUsage
from receipt_bot.models.tables import LineItemRow, Receipt
from receipt_bot.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def _line_item_rows(receipt_id: int, products: List[LineItem]) -> list[LineItemRow]:
    return [
        LineItemRow(
            receipt_id=receipt_id,
            position=position,
            name=item.name,
            price=item.price,
            category=item.category,
            is_shared=item.is_shared,
        )
        for position, item in enumerate(products)
    ]


def _to_record(row: Receipt) -> ReceiptRecord:
    return ReceiptRecord(
        id=row.id,
        source_path=row.source_path or "",
        comments=row.comments or "",
        created_at=row.created_at,
        store=row.store_name,
        products=[
            LineItem(name=li.name, category=li.category, price=li.price, is_shared=li.is_shared)
            for li in sorted(row.line_items, key=lambda li: li.position)
        ],
        total_amount=row.total_amount or 0.0,
        usage=TokenUsage(
            input_tokens=row.input_tokens or 0,
            output_tokens=row.output_tokens or 0,
            total_tokens=row.total_tokens or 0,
        ),
        status=row.status,
        status_history=[StatusEntry.model_validate(entry) for entry in (row.status_history or [])],
    )


class ReceiptStore:
    """Async repository over the receipts and line_items tables."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    yield session
        except NotFoundError as exc:
            logger.warning("[store] %s: %s", action, exc)
            raise
        except SQLAlchemyError as exc:
            logger.exception("[store] %s failed", action)
            raise StorageError(f"{action} failed: {exc}") from exc

    async def create(self, record: ReceiptRecord) -> int:
        """Insert ``record`` and return the id assigned by the database."""
        async with self._transaction("create") as session:
            row = Receipt(
                source_path=record.source_path,
                comments=record.comments,
                created_at=record.created_at,
                store_name=record.store,
                total_amount=record.total_amount,
                input_tokens=record.usage.input_tokens,
                output_tokens=record.usage.output_tokens,
                total_tokens=record.usage.total_tokens,
                status=record.status,
                status_history=[entry.model_dump(mode="json") for entry in record.status_history],
            )
            session.add(row)
            await session.flush()
            if record.products:
                session.add_all(_line_item_rows(row.id, record.products))
            receipt_id = row.id
        record.id = receipt_id
        logger.info("[store] created receipt id=%s status=%s", receipt_id, record.status.value)
        return receipt_id

    async def update(self, receipt_id: int, record: ReceiptRecord) -> None:
        """Replace the mutable fields of a receipt and all of its line items."""
        async with self._transaction("update") as session:
            result = await session.execute(
                update(Receipt)
                .where(Receipt.id == receipt_id)
                .values(
                    comments=record.comments,
                    store_name=record.store,
                    total_amount=record.total_amount,
                    input_tokens=record.usage.input_tokens,
                    output_tokens=record.usage.output_tokens,
                    total_tokens=record.usage.total_tokens,
                    status=record.status,
                    status_history=[entry.model_dump(mode="json") for entry in record.status_history],
                )
            )
            if result.rowcount == 0:
                raise NotFoundError(receipt_id)
            await session.execute(delete(LineItemRow).where(LineItemRow.receipt_id == receipt_id))
            session.add_all(_line_item_rows(receipt_id, record.products))
        logger.debug("[store] updated receipt id=%s products=%d", receipt_id, len(record.products))

    async def append_status(
        self, receipt_id: int, status: ReceiptStatus, details: Optional[str] = None
    ) -> StatusEntry:
        """Append one history entry with a fresh timestamp and set ``status``.

        Returns the entry that was written so callers can mirror it on
        their in-memory copy of the record.
        """
        async with self._transaction("append_status") as session:
            row = await session.get(Receipt, receipt_id)
            if row is None:
                raise NotFoundError(receipt_id)
            entry = StatusEntry(status=status, details=details)
            history = list(row.status_history or [])
            history.append(entry.model_dump(mode="json"))
            # Reassign so the JSON column is flagged dirty
            row.status_history = history
            row.status = status
        logger.info("[store] receipt id=%s -> %s (%s)", receipt_id, status.value, details or "")
        return entry

    async def get_by_id(self, receipt_id: int) -> Optional[ReceiptRecord]:
        async with self._transaction("get_by_id") as session:
            result = await session.execute(
                select(Receipt).options(selectinload(Receipt.line_items)).where(Receipt.id == receipt_id)
            )
            row = result.scalar_one_or_none()
            return _to_record(row) if row is not None else None

    async def list_records(self, limit: int = 50) -> List[ReceiptRecord]:
        """Return the newest records first."""
        async with self._transaction("list_records") as session:
            result = await session.execute(
                select(Receipt)
                .options(selectinload(Receipt.line_items))
                .order_by(Receipt.created_at.desc(), Receipt.id.desc())
                .limit(limit)
            )
            return [_to_record(row) for row in result.scalars().all()]

    async def cleanup_older_than(self, window: timedelta, now: Optional[datetime] = None) -> int:
        """Delete records (and their line items) created before ``now - window``.

        Idempotent; returns the number of receipts removed.
        """
        cutoff = (now or utcnow()) - window
        async with self._transaction("cleanup_older_than") as session:
            old_ids = select(Receipt.id).where(Receipt.created_at < cutoff)
            await session.execute(
                delete(LineItemRow).where(LineItemRow.receipt_id.in_(old_ids)).execution_options(synchronize_session=False)
            )
            result = await session.execute(
                delete(Receipt).where(Receipt.created_at < cutoff).execution_options(synchronize_session=False)
            )
            deleted = result.rowcount or 0
        if deleted:
            logger.info("[store] cleanup removed %d receipts older than %s", deleted, cutoff.isoformat())
        return deleted
