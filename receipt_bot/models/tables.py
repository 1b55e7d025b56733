"""SQLAlchemy ORM models for the receipt bot.

Two related tables hold all durable state:

* ``receipts`` – one row per receipt record. The status history is
  serialised into a JSON column as an ordered log.
* ``line_items`` – one row per product, foreign-keyed to a receipt.
  Rows are fully replaced on every update, so ``position`` (the entry
  or detection order) is the only ordering that matters.

Tables are created by ``receipt_bot.core.database.init_db`` at startup.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from receipt_bot.core.database import Base
from receipt_bot.models.enums import ReceiptStatus
from receipt_bot.utils.helpers import utcnow


class Receipt(Base):
    """Receipt record and its processing state."""

    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True, index=True)
    source_path = Column(String, nullable=False, default="")
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    store_name = Column(String, nullable=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    status = Column(Enum(ReceiptStatus), nullable=False, default=ReceiptStatus.RECEIVED)
    status_history = Column(JSON, nullable=False, default=list)

    line_items = relationship(
        "LineItemRow",
        back_populates="receipt",
        order_by="LineItemRow.position",
        cascade="all, delete-orphan",
    )


class LineItemRow(Base):
    """Single product belonging to a receipt."""

    __tablename__ = "line_items"

    id = Column(Integer, primary_key=True, index=True)
    receipt_id = Column(Integer, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    is_shared = Column(Boolean, nullable=False, default=False)

    receipt = relationship("Receipt", back_populates="line_items")
