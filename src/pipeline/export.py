"""
Export Pipeline - Campaign CSV and dataset JSON

Turns the records emitted during a crawl into the final campaign-tool export.

Key Features:
- Dedupe by lower-cased email, keeping the earliest-emitted record
- Fixed columns EMAIL,FIRSTNAME,LASTNAME,SMS in first-seen order
- Minimal CSV quoting: only fields containing a comma, quote or newline are
  quoted, with internal quotes doubled
- Always writes a file, even with zero rows
"""

import csv
import io
import json
from datetime import datetime as dt
from pathlib import Path
from typing import List, Optional

from ..schemas import EXPORT_COLUMNS, ExportRow, ExtractedContact


CSV_CONTENT_TYPE = "text/csv; charset=utf-8"
CSV_ARTIFACT_NAME = "brevo.csv"


def dedupe_records_for_export(records: List[ExtractedContact]) -> List[ExportRow]:
    """One row per distinct lower-cased email, earliest record wins.
    Records with an empty email are skipped.
    """
    rows: List[ExportRow] = []
    seen: set[str] = set()
    for rec in records:
        email = (rec.email or "").strip().lower()
        if not email or email in seen:
            continue
        seen.add(email)
        rows.append(ExportRow.from_contact(rec))
    removed = len(records) - len(rows)
    if removed > 0:
        print(f"🧹 Dedupe: kept {len(rows)} of {len(records)}")
    return rows


def rows_to_csv(rows: List[ExportRow]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        writer.writerow(row.as_row())
    return buf.getvalue()


def parse_csv(text: str) -> List[dict]:
    """Read an export back into dicts keyed by the export columns."""
    reader = csv.DictReader(io.StringIO(text, newline=""))
    return [dict(r) for r in reader]


class ContactExporter:
    """
    Writes the deduplicated campaign CSV and the raw dataset JSON.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def to_csv(self, records: List[ExtractedContact], filename: Optional[str] = None) -> Path:
        """
        Export deduplicated records to the campaign CSV.

        Args:
            records: Emitted records in emission order
            filename: Output filename (defaults to brevo.csv)

        Returns:
            Path to created CSV file
        """
        csv_path = self.output_dir / (filename or CSV_ARTIFACT_NAME)
        rows = dedupe_records_for_export(records)
        with open(csv_path, "w", newline="", encoding="utf-8") as f:
            f.write(rows_to_csv(rows))
        print(f"💾 CSV exported: {csv_path} ({len(rows)} contacts)")
        return csv_path

    def to_dataset_json(self, records: List[ExtractedContact], filename: Optional[str] = None, pretty: bool = True) -> Path:
        """Every emitted record, undeduplicated, with its source URLs."""
        if filename is None:
            timestamp = dt.now().strftime("%Y%m%d_%H%M%S")
            filename = f"dataset_{timestamp}.json"
        path = self.output_dir / filename
        data = [
            {
                "EMAIL": r.email,
                "FIRSTNAME": r.first_name,
                "LASTNAME": r.last_name,
                "SMS": r.phone,
                "sourceProfile": r.source_profile_url,
                "sourceContact": r.source_contact_url,
            }
            for r in records
        ]
        with open(path, "w", encoding="utf-8") as f:
            if pretty:
                json.dump(data, f, indent=2, ensure_ascii=False)
            else:
                json.dump(data, f, ensure_ascii=False)
        print(f"💾 Dataset JSON exported: {path} ({len(data)} records)")
        return path

    def to_store(self, records: List[ExtractedContact], store) -> int:
        """Put the CSV into a key-value artifact store; returns the row count."""
        rows = dedupe_records_for_export(records)
        store.put(CSV_ARTIFACT_NAME, rows_to_csv(rows).encode("utf-8"), CSV_CONTENT_TYPE)
        return len(rows)

    def get_export_stats(self, records: List[ExtractedContact]) -> dict:
        rows = dedupe_records_for_export(records)
        return {
            "total_records": len(records),
            "exported_rows": len(rows),
            "duplicates_removed": len(records) - len(rows),
            "with_phone": sum(1 for r in rows if r.sms),
        }
