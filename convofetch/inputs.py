from pathlib import Path
from typing import List


class InputError(Exception):
    """Raised when the identifier table cannot be read."""
    pass


def parse_identifiers(lines: List[str]) -> List[str]:
    """First column of every line after the header, trimmed; blanks dropped.

    Order and duplicates are preserved.
    """
    ids = []
    for line in lines[1:]:
        value = line.split(",")[0].strip()
        if value:
            ids.append(value)
    return ids


def read_identifiers(path: Path) -> List[str]:
    path = Path(path)
    if not path.exists():
        raise InputError(f"Input file not found: {path}")
    try:
        # utf-8-sig drops the BOM spreadsheet exports tend to add
        with path.open("r", encoding="utf-8-sig") as f:
            lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise InputError(f"Could not read input file {path}: {e}") from e
    return parse_identifiers(lines)
