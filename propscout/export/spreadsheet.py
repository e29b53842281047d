"""Excel export built on openpyxl.

Each record's nested export object (see
:func:`~propscout.export.formatter.to_nested`) is flattened into dotted
column names (``main.title``, ``location.city``, ...) with list values
joined by ``" | "``.  Row 1 holds the bold column headers; one row per
record follows on a sheet named ``Properties``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font

from propscout.core.models import Property
from propscout.export.formatter import LIST_SEPARATOR, to_nested

__all__ = ["SHEET_TITLE", "flatten", "export_xlsx"]

logger = logging.getLogger(__name__)

SHEET_TITLE = "Properties"

_HEADER_FONT = Font(bold=True)
_COLUMN_WIDTH = 24


def flatten(nested: dict[str, Any], parent: str = "") -> dict[str, Any]:
    """Flatten *nested* into ``{"section.key": value}``.

    Examples:
        >>> flatten({"main": {"id": "p1"}, "features": {"features": ["Pool", "Gym"]}})
        {'main.id': 'p1', 'features.features': 'Pool | Gym'}
    """
    flat: dict[str, Any] = {}
    for key, value in nested.items():
        name = f"{parent}.{key}" if parent else key
        if isinstance(value, dict):
            flat.update(flatten(value, name))
        elif isinstance(value, list):
            flat[name] = LIST_SEPARATOR.join(str(item) for item in value)
        else:
            flat[name] = value
    return flat


def _cell_value(value: Any) -> Any:
    # openpyxl refuses control characters that scraped text sometimes carries.
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def export_xlsx(records: Iterable[Property], base_url: str | None = None) -> bytes:
    """Render *records* as an ``.xlsx`` workbook and return its bytes.

    An empty input yields a workbook with an empty ``Properties`` sheet.
    """
    rows = [flatten(to_nested(record, base_url)) for record in records]

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    if rows:
        headers = list(rows[0])
        for col_idx, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = _HEADER_FONT
            ws.column_dimensions[cell.column_letter].width = _COLUMN_WIDTH
        for row_idx, row in enumerate(rows, 2):
            for col_idx, header in enumerate(headers, 1):
                ws.cell(row=row_idx, column=col_idx, value=_cell_value(row.get(header)))

    buf = BytesIO()
    wb.save(buf)
    logger.debug("Rendered %d record(s) as XLSX", len(rows))
    return buf.getvalue()
