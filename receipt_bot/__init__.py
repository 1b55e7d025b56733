"""Top-level package for the receipt bot.

This package contains everything required to run a conversational
receipt intake service. A user sends a photo of a receipt (or asks
for manual entry) and the bot walks them through a short dialogue,
transcribes the receipt with a vision model, resolves which products
were shared, stores the result with a full status history and
appends the line items to a monthly spreadsheet.

To run the bot locally you can execute:

```bash
python -m receipt_bot.bot.telegram
```

The read-only inspection API is served with:

```bash
uvicorn receipt_bot.api.main:app --reload
```

The default configuration uses a local SQLite database stored in
``receipts.db``. You can override configuration values using
environment variables or a ``.env`` file at the project root.
"""

__all__: list[str] = []  # explicit for linters; populated dynamically elsewhere if needed
