"""Thin reader for the Google Sheets v4 values endpoint (API-key auth)."""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote

import requests

API_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}"
DEFAULT_RANGE = "A:Z"


class SheetsError(RuntimeError):
    """Raised when reading the sheet fails."""


def fetch_sheet_rows(
    sheet_id: str,
    api_key: str,
    *,
    value_range: str = DEFAULT_RANGE,
    session: Optional[requests.Session] = None,
    timeout: float = 15.0,
) -> List[List[str]]:
    """Return the sheet as a header-first table of strings."""

    if not sheet_id:
        raise ValueError("sheet_id must be a non-empty string")

    url = API_URL.format(sheet_id=quote(sheet_id, safe=""), range=quote(value_range, safe=":!"))
    params = {"key": api_key, "majorDimension": "ROWS"}

    client = session or requests
    try:
        response = client.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:  # network or transport error
        raise SheetsError(f"Request failed: {exc}") from exc

    if response.status_code // 100 != 2:
        raise SheetsError(
            f"Sheets API error {response.status_code}: {response.text.strip()[:300]}"
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise SheetsError("Response payload is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise SheetsError("Unexpected payload type from Sheets API, expected an object.")

    values = payload.get("values") or []
    return [[str(cell) if cell is not None else "" for cell in row] for row in values]
