"""CSV serialization helpers."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping
from pathlib import Path

CSV_FIELDS = [
    "url",
    "status",
    "type",
    "provider_name",
    "title",
    "content",
    "error",
]


def write_rows(path: str, rows: Iterable[Mapping[str, str]]) -> int:
    """Write resolution rows with a stable column set; returns the number of rows written.

    Missing columns are left empty and unknown keys are dropped.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with output_path.open("w", newline="", encoding="utf-8") as file_obj:
        writer = csv.DictWriter(file_obj, fieldnames=CSV_FIELDS, restval="", extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
            count += 1
    return count
