"""FastAPI dependencies for the inspection API."""

from receipt_bot.core.database import AsyncSessionLocal
from receipt_bot.services.receipt_store import ReceiptStore


async def get_store() -> ReceiptStore:
    """Store bound to the application's session factory.

    Tests swap it with ``app.dependency_overrides[get_store]``.
    """
    return ReceiptStore(AsyncSessionLocal)
