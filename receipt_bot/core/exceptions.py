"""Error taxonomy shared by the store, the collaborators and the flows.

Flow code decides what to do with an error by its class alone:

* ``NotFoundError`` / ``StorageError`` come from the persistent store and
  are fatal to the receipt currently being processed.
* ``ValidationError`` describes malformed user input during manual entry.
  Non-terminal ones are recovered by re-prompting; terminal ones abort the
  manual flow.
* ``CollaboratorError`` wraps a failed call to an external service
  (transcription, export, image processing). It is never retried.
* ``AnswerTimeoutError`` means a bounded wait on the user ran out of time
  or turns.
"""

from __future__ import annotations

from typing import Optional


class ReceiptBotError(Exception):
    """Base class for all errors raised by the receipt bot."""


class NotFoundError(ReceiptBotError):
    """An operation referenced a receipt id unknown to the store."""

    def __init__(self, receipt_id: int) -> None:
        super().__init__(f"Receipt {receipt_id} not found")
        self.receipt_id = receipt_id


class StorageError(ReceiptBotError):
    """The backing store is unavailable or a write failed."""


class ValidationError(ReceiptBotError):
    """User-entered data is malformed.

    ``terminal`` marks the cases that abort the whole manual flow
    (missing store name, missing purchase type, zero products).
    """

    def __init__(self, message: str, *, reason: str = "invalid", terminal: bool = False) -> None:
        super().__init__(message)
        self.reason = reason
        self.terminal = terminal


class CollaboratorError(ReceiptBotError):
    """A call to an external collaborator failed."""

    def __init__(self, collaborator: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.cause = cause


class AnswerTimeoutError(ReceiptBotError):
    """The user did not give an acceptable answer within the allowed time or turns."""
