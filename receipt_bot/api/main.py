"""Entry point for the read-only inspection API.

Serves receipt records and their status history from the bot's
database for audit and debugging:

```bash
uvicorn receipt_bot.api.main:app
```
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exception_handlers import RequestValidationError

from receipt_bot.api.endpoints.health import router as health_router
from receipt_bot.api.error_handlers import (
    generic_exception_handler,
    not_found_handler,
    storage_error_handler,
    validation_exception_handler,
)
from receipt_bot.api.routes.receipts import router as receipts_router
from receipt_bot.core.config import settings
from receipt_bot.core.database import init_db
from receipt_bot.core.exceptions import NotFoundError, StorageError
from receipt_bot.core.observability import init_sentry

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    version="1.0.0",
    lifespan=lifespan,
)

# Register custom exception handlers
app.add_exception_handler(NotFoundError, not_found_handler)
app.add_exception_handler(StorageError, storage_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include routers
app.include_router(health_router)
app.include_router(receipts_router)
