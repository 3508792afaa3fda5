import csv
import json
from pathlib import Path

import pytest
from openpyxl import Workbook, load_workbook

from email_discovery.errors import ConfigError
from email_discovery.io_export import (
    CSV_FIELDS,
    export_result,
    load_addresses,
    write_csv,
)
from email_discovery.models import EmailRecord, RunResult, SearchStats

RECORD = EmailRecord(
    id="0b4c3f0e-0000-5000-8000-000000000000",
    address="info@example.org",
    domain="example.org",
    is_valid=True,
    source="Contact Page",
    confidence=85,
    type="info",
    source_url="https://example.org/contact",
    sighting_scores=(85,),
)
STATS = SearchStats(
    total_found=1, valid_emails=1, invalid_emails=0, domains_scanned=1, pages_scanned=3
)


def test_write_csv_has_stable_header(tmp_path: Path) -> None:
    output = tmp_path / "out.csv"
    write_csv(str(output), [RECORD])
    with output.open(newline="", encoding="utf-8") as file_obj:
        reader = csv.DictReader(file_obj)
        rows = list(reader)
    assert reader.fieldnames == CSV_FIELDS
    assert rows[0]["email"] == "info@example.org"
    assert rows[0]["confidence"] == "85"
    assert rows[0]["sourceUrl"] == "https://example.org/contact"


def test_export_json_includes_stats(tmp_path: Path) -> None:
    output = tmp_path / "out.json"
    export_result(str(output), "json", RunResult(records=(RECORD,), stats=STATS))
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["emails"] == [RECORD.as_dict()]
    assert payload["stats"]["pagesScanned"] == 3


def test_export_xlsx_writes_emails_and_stats_sheets(tmp_path: Path) -> None:
    output = tmp_path / "out.xlsx"
    export_result(str(output), "xlsx", RunResult(records=(RECORD,), stats=STATS))
    workbook = load_workbook(output)
    assert workbook.sheetnames == ["Emails", "Stats"]
    emails = list(workbook["Emails"].iter_rows(values_only=True))
    assert list(emails[0]) == CSV_FIELDS
    assert emails[1][1] == "info@example.org"
    assert emails[1][3] is True
    stats = dict(workbook["Stats"].iter_rows(values_only=True))
    assert stats["totalFound"] == 1


def test_load_addresses_from_txt_keeps_every_line(tmp_path: Path) -> None:
    source = tmp_path / "list.txt"
    source.write_text("not-an-email\n\n info@example.org \n", encoding="utf-8")
    assert load_addresses(str(source)) == ["not-an-email", "info@example.org"]


def test_load_addresses_from_csv_skips_header(tmp_path: Path) -> None:
    source = tmp_path / "list.csv"
    source.write_text(
        "Email,Name\ninfo@example.org,Info\n,\n,sales@example.org\n", encoding="utf-8"
    )
    assert load_addresses(str(source)) == ["info@example.org", "sales@example.org"]


def test_load_addresses_from_xlsx(tmp_path: Path) -> None:
    source = tmp_path / "list.xlsx"
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Email address"])
    sheet.append(["info@example.org"])
    sheet.append([None, "support@example.org"])
    workbook.save(source)
    assert load_addresses(str(source)) == ["info@example.org", "support@example.org"]


def test_load_addresses_rejects_corrupt_spreadsheet(tmp_path: Path) -> None:
    source = tmp_path / "list.xlsx"
    source.write_bytes(b"plain text, not a workbook")
    with pytest.raises(ConfigError):
        load_addresses(str(source))


def test_load_addresses_rejects_non_utf8_text(tmp_path: Path) -> None:
    source = tmp_path / "list.txt"
    source.write_bytes(b"\xff\xfeinfo@example.org\n\x80\x81")
    with pytest.raises(ConfigError):
        load_addresses(str(source))
