"""Result export and address-list import."""

from __future__ import annotations

import csv
import json
from collections.abc import Sequence
from pathlib import Path
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import ConfigError
from .models import EmailRecord, RunResult, SearchStats

CSV_FIELDS = [
    "id",
    "email",
    "domain",
    "isValid",
    "source",
    "confidence",
    "type",
    "sourceUrl",
]


def write_csv(path: str, records: Sequence[EmailRecord]) -> None:
    """Write records to CSV with stable schema."""
    output_path = Path(path)
    with output_path.open("w", newline="", encoding="utf-8") as file_obj:
        writer = csv.DictWriter(file_obj, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for record in records:
            writer.writerow(record.as_dict())


def write_xlsx(path: str, records: Sequence[EmailRecord], stats: SearchStats) -> None:
    """Write an "Emails" sheet and a "Stats" sheet."""
    workbook = Workbook()
    emails = workbook.active
    emails.title = "Emails"
    emails.append(CSV_FIELDS)
    for record in records:
        row = record.as_dict()
        emails.append([row[field] for field in CSV_FIELDS])
    summary = workbook.create_sheet("Stats")
    for key, value in stats.as_dict().items():
        summary.append([key, value])
    workbook.save(path)


def write_json(path: str, records: Sequence[EmailRecord], stats: SearchStats) -> None:
    payload = {"emails": [record.as_dict() for record in records], "stats": stats.as_dict()}
    Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")


def export_result(path: str, export_format: str, result: RunResult) -> str:
    """Serialize a run result in the requested format and return the path."""
    if export_format == "xlsx":
        write_xlsx(path, result.records, result.stats)
    elif export_format == "json":
        write_json(path, result.records, result.stats)
    else:
        write_csv(path, result.records)
    return path


def _first_cells(rows: list[list[str]], skip_header: bool = True) -> list[str]:
    values = [next((cell.strip() for cell in row if cell and cell.strip()), "") for row in rows]
    values = [value for value in values if value]
    if skip_header and values and "@" not in values[0]:
        values = values[1:]
    return values


def load_addresses(path: str) -> list[str]:
    """Load raw addresses from a .txt, .csv or .xlsx list.

    The first non-empty cell of each row is taken; for spreadsheets a
    leading header row without an ``@`` is dropped. Unreadable list content
    raises ConfigError; a missing file raises OSError.
    """
    suffix = Path(path).suffix.lower()
    try:
        if suffix == ".xlsx":
            return _first_cells(_xlsx_rows(path))
        with Path(path).open(newline="", encoding="utf-8-sig") as file_obj:
            if suffix == ".csv":
                return _first_cells([row for row in csv.reader(file_obj)])
            lines = [[line] for line in file_obj.read().splitlines()]
            return _first_cells(lines, skip_header=False)
    except (InvalidFileException, BadZipFile, UnicodeDecodeError, csv.Error) as exc:
        raise ConfigError(f"Cannot read address list {path}: {exc}") from exc


def _xlsx_rows(path: str) -> list[list[str]]:
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        return [
            ["" if cell is None else str(cell) for cell in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()
