"""Read-only routes for auditing receipt records."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from receipt_bot.api.deps import get_store
from receipt_bot.core.exceptions import NotFoundError
from receipt_bot.models.schemas import ReceiptRecord, ReceiptSummary
from receipt_bot.services.receipt_store import ReceiptStore

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.get("", response_model=List[ReceiptSummary])
async def list_receipts(
    limit: int = Query(50, ge=1, le=500),
    store: ReceiptStore = Depends(get_store),
) -> List[ReceiptSummary]:
    """Newest receipts first, without line items or history."""
    records = await store.list_records(limit=limit)
    return [
        ReceiptSummary(
            id=r.id,
            created_at=r.created_at,
            store=r.store,
            total_amount=r.total_amount,
            status=r.status,
            product_count=len(r.products),
        )
        for r in records
    ]


@router.get("/{receipt_id}", response_model=ReceiptRecord)
async def get_receipt(receipt_id: int, store: ReceiptStore = Depends(get_store)) -> ReceiptRecord:
    """Full record including products and the status history."""
    record = await store.get_by_id(receipt_id)
    if record is None:
        raise NotFoundError(receipt_id)
    return record
