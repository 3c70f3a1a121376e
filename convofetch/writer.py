"""
Append-only CSV output table.
"""

from pathlib import Path
from typing import Iterable, Sequence

from .models import COLUMNS, FlatRow, Success
from .flatten import flatten_batch

HEADER = ",".join(COLUMNS)


def format_row(row: FlatRow) -> str:
    """Quote every field. Values are expected to be escaped already."""
    return ",".join(f'"{value}"' for value in row.values())


def append_rows(path: Path, rows: Iterable[FlatRow]) -> int:
    """
    Append rows to the output table, writing the header on first creation.

    Errors from the filesystem propagate; lines already written stay intact.

    Returns:
        Number of rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_exists = path.exists()
    written = 0
    with path.open("a", encoding="utf-8", newline="") as f:
        if not file_exists:
            f.write(HEADER + "\n")
        for row in rows:
            f.write(format_row(row) + "\n")
            written += 1
    return written


class TableWriter:
    """Batch sink that flattens successes and appends them to ``path``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, rows: Iterable[FlatRow]) -> int:
        return append_rows(self.path, rows)

    def write_batch(self, batch: Sequence[Success]) -> int:
        return self.append(flatten_batch(batch))
