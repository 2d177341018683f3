"""
Tabular export (CSV and XLSX).

Rows are dicts; the column order comes from `columns` or the first row's
keys. None becomes an empty cell.
"""
from __future__ import annotations

from io import BytesIO
from typing import Iterable, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

CSV_MIMETYPE = "text/csv; charset=utf-8"
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FORMATS = {"csv", "xlsx"}


def _resolve_columns(rows: Sequence[dict], columns: Iterable[str] | None) -> list[str]:
    if columns is not None:
        return list(columns)
    return list(rows[0].keys()) if rows else []


def _csv_cell(value) -> str:
    if value is None:
        return ""
    text = str(value)
    if any(ch in text for ch in (",", '"', "\n")):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: Sequence[dict], columns: Iterable[str] | None = None) -> str:
    cols = _resolve_columns(rows, columns)
    if not cols:
        return ""
    lines = [",".join(_csv_cell(c) for c in cols)]
    for row in rows:
        lines.append(",".join(_csv_cell(row.get(c)) for c in cols))
    return "\n".join(lines)


def to_xlsx(rows: Sequence[dict], columns: Iterable[str] | None = None, *, sheet_title: str = "Export") -> bytes:
    cols = _resolve_columns(rows, columns)

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    if cols:
        ws.append(cols)
        for row in rows:
            ws.append([row.get(c) for c in cols])
        ws.freeze_panes = "A2"
        for idx, col in enumerate(cols, start=1):
            width = max([len(str(col))] + [len(str(r.get(col) or "")) for r in rows])
            ws.column_dimensions[get_column_letter(idx)].width = min(width + 2, 60)

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def render_export(rows: Sequence[dict], columns: Sequence[str], fmt: str, *, sheet_title: str = "Export") -> tuple[bytes, str, str]:
    """Returns (body, mimetype, file extension) for fmt in EXPORT_FORMATS."""
    if fmt == "xlsx":
        return to_xlsx(rows, columns, sheet_title=sheet_title), XLSX_MIMETYPE, "xlsx"
    return to_csv(rows, columns).encode("utf-8"), CSV_MIMETYPE, "csv"
