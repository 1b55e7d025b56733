"""Google Sheets export sink.

Each line item becomes one row in the sheet named after the current
month (localized month names, e.g. ``Styczeń``). Rows hold the date,
store, product name, price, category and the shared flag. Shared
products are written at ``COMMON_EXPENSE_PERCENTAGE`` of their price
since only that part of the cost is borne by the user.

The google-api-python-client is synchronous, so every call runs in a
worker thread via ``asyncio.to_thread``. Any failure raises
``CollaboratorError("export", ...)``; the caller stops appending the
remaining rows and nothing already written is rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Union

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from receipt_bot.core.exceptions import CollaboratorError
from receipt_bot.services.translation import Translator

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
HEADER_ROW = ["Date", "Store", "Name", "Price", "Category", "Purchase Type"]
PRICE_COLUMN = 3
CURRENCY_PATTERN = "#,##0.00 zł"

# httplib2 transport errors (DNS, redirects) are not OSErrors
_CLIENT_ERRORS = (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError)


def build_sheets_service(credentials_path: str) -> Any:
    """Create a Sheets v4 client authorised with a service account key file."""
    credentials = service_account.Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def _cell(value: Union[str, float], index: int) -> dict[str, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        cell: dict[str, Any] = {"userEnteredValue": {"numberValue": value}}
    else:
        cell = {"userEnteredValue": {"stringValue": str(value)}}
    if index == PRICE_COLUMN:
        cell["userEnteredFormat"] = {"numberFormat": {"type": "CURRENCY", "pattern": CURRENCY_PATTERN}}
    return cell


class GoogleSheetsExporter:
    """Append receipt line items to a monthly Google Sheets tab."""

    def __init__(
        self,
        spreadsheet_id: str,
        translator: Translator,
        *,
        service: Any = None,
        credentials_path: Optional[str] = None,
        common_expense_percentage: float = 0.5,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if service is None:
            if not credentials_path:
                raise ValueError("credentials_path is required when no Sheets service is given")
            service = build_sheets_service(credentials_path)
        self._service = service
        self.spreadsheet_id = spreadsheet_id
        self.month_names: List[str] = translator.months()
        self.common_expense_percentage = common_expense_percentage
        self._clock = clock or datetime.now

    def current_sheet_title(self) -> str:
        return self.month_names[self._clock().month - 1]

    def _sheet_titles(self) -> dict[str, int]:
        response = self._service.spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        titles: dict[str, int] = {}
        for sheet in response.get("sheets", []):
            props = sheet.get("properties", {})
            if "title" in props:
                titles[props["title"]] = props.get("sheetId", 0)
        return titles

    def build_row(self, store: str, product_name: str, price: float, category: str, is_shared: bool) -> list:
        final_price = round(price * self.common_expense_percentage, 2) if is_shared else price
        return [
            self._clock().date().isoformat(),
            store or "",
            product_name or "",
            final_price,
            category or "",
            str(is_shared).lower(),
        ]

    def _append_sync(self, store: str, product_name: str, price: float, category: str, is_shared: bool) -> None:
        title = self.current_sheet_title()
        sheet_id = self._sheet_titles().get(title)
        if sheet_id is None:
            raise CollaboratorError("export", f"Sheet not found: {title!r}")
        row = self.build_row(store, product_name, price, category, is_shared)
        requests = [
            {
                "appendCells": {
                    "sheetId": sheet_id,
                    "rows": [{"values": [_cell(value, i) for i, value in enumerate(row)]}],
                    "fields": "*",
                }
            }
        ]
        self._service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id, body={"requests": requests}
        ).execute()
        logger.info("Row added to sheet %s: %s", title, product_name)

    async def append(self, store: str, product_name: str, price: float, category: str, is_shared: bool) -> None:
        """Append one product row to the current month's sheet."""
        try:
            await asyncio.to_thread(self._append_sync, store, product_name, price, category, is_shared)
        except _CLIENT_ERRORS as e:
            logger.error("Error while adding row for %s: %s", product_name, e)
            raise CollaboratorError("export", str(e), e) from e

    def _ensure_headers_sync(self) -> List[str]:
        existing = self._sheet_titles()
        missing = [month for month in self.month_names if month not in existing]
        if missing:
            self._service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": month}}} for month in missing]},
            ).execute()
            logger.info("Created missing sheets: %s", ", ".join(missing))
        for month in self.month_names:
            self._service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=f"{month}!A1:F1",
                valueInputOption="RAW",
                body={"values": [HEADER_ROW]},
            ).execute()
        return missing

    async def ensure_headers(self) -> List[str]:
        """Create missing monthly sheets and (re)write their header rows.

        Returns the titles of the sheets that had to be created.
        """
        try:
            return await asyncio.to_thread(self._ensure_headers_sync)
        except _CLIENT_ERRORS as e:
            logger.error("Error while checking/creating monthly sheets: %s", e)
            raise CollaboratorError("export", str(e), e) from e
