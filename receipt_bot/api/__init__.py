"""Read-only HTTP surface over stored receipt records.

Import the FastAPI application from ``receipt_bot.api.main``.
"""
