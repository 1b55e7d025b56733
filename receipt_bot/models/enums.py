"""Enumeration types used throughout the receipt bot.

Enumerations make it easier to constrain the values that can be
stored in the database or produced by the answer classifier. They
also keep the lifecycle state machine exhaustive: every branch in the
controller switches on one of these values rather than on raw text.

When modifying ``ReceiptStatus`` remember that values are persisted
both in the ``receipts.status`` column and inside the serialized
status history.
"""

from enum import Enum


class ReceiptStatus(str, Enum):
    """Lifecycle states of a receipt record."""

    RECEIVED = "RECEIVED"
    PROCESSING = "PROCESSING"
    ANALYZED_AI = "ANALYZED_AI"
    CATEGORIZED = "CATEGORIZED"
    SAVED_TO_SHEETS = "SAVED_TO_SHEETS"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (ReceiptStatus.COMPLETED, ReceiptStatus.ERROR)


class AnswerKind(str, Enum):
    """Closed set of meanings a free-text answer can be classified into."""

    SHARED = "shared"
    PRIVATE = "private"
    MULTI = "multi"
    MANUAL = "manual"
    YES = "yes"
    NO = "no"
    STOP = "stop"
    SHOW = "show"
    UNRECOGNIZED = "unrecognized"
