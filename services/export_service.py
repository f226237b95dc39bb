import csv
import io
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font

from shared.datetime_utils import to_iso

# Header used when there is nothing to export, so the file is never blank
EMPTY_EXPORT_HEADERS = [
    "point_number",
    "location",
    "city",
    "coordinates.lat",
    "coordinates.lon",
    "measurement.tube_id",
]

EXPORT_FORMATS = ("json", "csv", "xlsx")


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    media_type: str
    filename: str


def flatten_document(doc: dict, prefix: str = "", out: dict | None = None) -> dict:
    """Flatten nested dicts into dotted keys; ``_id`` is dropped, datetimes go ISO."""
    if out is None:
        out = {}
    for key, value in (doc or {}).items():
        if key == "_id":
            continue
        name = f"{prefix}.{key}" if prefix else key
        if isinstance(value, datetime):
            out[name] = to_iso(value)
        elif isinstance(value, dict):
            flatten_document(value, name, out)
        else:
            out[name] = value
    return out


def measurement_rows(points: Iterable[dict]) -> list[dict]:
    """One row per measurement; a point without measurements is a single row."""
    rows: list[dict] = []
    for point in points:
        measurements = point.get("measurements")
        if not isinstance(measurements, list):
            measurements = []
        base = flatten_document({k: v for k, v in point.items() if k != "measurements"})
        if not measurements:
            rows.append(dict(base))
            continue
        for measurement in measurements:
            rows.append({**base, **flatten_document(measurement, "measurement")})
    return rows


def row_headers(rows: list[dict]) -> list[str]:
    headers: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                headers.append(key)
    return headers or list(EMPTY_EXPORT_HEADERS)


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    return str(value)


def export_json(points: list[dict]) -> ExportFile:
    body = json.dumps(points, indent=2, default=_json_default, ensure_ascii=False)
    return ExportFile(
        content=body.encode("utf-8"),
        media_type="application/json; charset=utf-8",
        filename="data.json",
    )


def export_csv(points: list[dict]) -> ExportFile:
    rows = measurement_rows(points)
    headers = row_headers(rows)

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])

    return ExportFile(
        content=output.getvalue().encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        filename="data.csv",
    )


def export_xlsx(points: list[dict]) -> ExportFile:
    rows = measurement_rows(points)
    headers = row_headers(rows)

    wb = Workbook()
    ws = wb.active
    ws.title = "Export"
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([_cell(row.get(h)) for h in headers])

    output = io.BytesIO()
    wb.save(output)
    return ExportFile(
        content=output.getvalue(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename="data.xlsx",
    )


def build_export(fmt: str, points: list[dict]) -> ExportFile:
    if fmt == "json":
        return export_json(points)
    if fmt == "csv":
        return export_csv(points)
    if fmt == "xlsx":
        return export_xlsx(points)
    raise ValueError(f"Unsupported export format: {fmt}")
