from __future__ import annotations

import csv
import io
import math
from pathlib import Path

from .models import DataSet, InvalidInputError


DEMO_DATA: dict[str, int] = {
    "Bender": 50,
    "Fry": 20,
    "Zoidberg": 27,
    "Hermes": 25,
    "Hebert": 20,
    "Lela": 23,
    "Amy": 32,
    "Wormstrom": 50,
    "Scruffy": 15,
    "Someone": 20,
}


def decode_text_bytes(blob: bytes) -> str:
    if blob.startswith(b"\xef\xbb\xbf"):
        return blob.decode("utf-8-sig", errors="replace")
    if blob.startswith((b"\xff\xfe", b"\xfe\xff")):
        return blob.decode("utf-16", errors="replace")
    # Spreadsheet exports on Windows are often UTF-16LE without a BOM.
    null_ratio = blob.count(b"\x00") / max(len(blob), 1)
    if null_ratio > 0.10:
        return blob.decode("utf-16le", errors="replace").replace("\x00", "")
    return blob.decode("utf-8", errors="replace")


def _parse_number(text: str) -> float | int | None:
    cleaned = text.strip()
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError:
        pass
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_csv_dataset(text: str, *, delimiter: str = ",") -> DataSet:
    labels: list[str | int] = []
    values: list[float | int] = []
    single_column: bool | None = None
    header_skipped = False

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    for row in reader:
        line_no = reader.line_num
        cells = [cell.strip() for cell in row]
        if not any(cells):
            continue
        while len(cells) > 1 and not cells[-1]:
            cells.pop()
        if len(cells) > 2:
            raise InvalidInputError(f"line {line_no}: expected 'label,value' but got {len(cells)} columns")

        raw_value = cells[-1]
        value = _parse_number(raw_value)
        if value is None:
            if not values and not header_skipped:
                header_skipped = True
                continue
            raise InvalidInputError(f"line {line_no}: '{raw_value}' is not a number")

        row_is_single = len(cells) == 1
        if single_column is None:
            single_column = row_is_single
        elif single_column != row_is_single:
            raise InvalidInputError(f"line {line_no}: mixed one- and two-column rows")

        labels.append(len(values) if row_is_single else cells[0])
        values.append(value)

    if not values:
        raise InvalidInputError("CSV contains no data rows")
    return DataSet(labels=labels, values=values)


def load_csv_dataset(path: str | Path, *, delimiter: str = ",") -> DataSet:
    file_path = Path(path).expanduser()
    if not file_path.exists():
        raise FileNotFoundError(f"CSV file not found: {file_path}")
    return parse_csv_dataset(decode_text_bytes(file_path.read_bytes()), delimiter=delimiter)
