"""Work-item intake — commit identifiers from a tabular (CSV) export."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_COLUMN = "Commit ID"


class IntakeError(RuntimeError):
    """Raised when the input file cannot be read. Fatal to the whole run."""


def read_commit_ids(path: Path | str, column: str = DEFAULT_COLUMN) -> list[str]:
    """Read commit identifiers from *column* of a CSV file, in row order.

    Blank cells are skipped. Duplicates are preserved here; the reconciler
    decides what to do with them.
    """
    path = Path(path)
    try:
        with path.open(newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            if reader.fieldnames is None or column not in reader.fieldnames:
                raise IntakeError(
                    f"{path}: column {column!r} not found "
                    f"(columns: {', '.join(reader.fieldnames or []) or 'none'})"
                )
            commit_ids: list[str] = []
            for row in reader:
                value = (row.get(column) or "").strip()
                if value:
                    commit_ids.append(value)
    except OSError as exc:
        raise IntakeError(f"cannot read {path}: {exc}") from exc
    except csv.Error as exc:
        raise IntakeError(f"{path}: malformed CSV: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise IntakeError(f"{path}: not valid UTF-8: {exc}") from exc

    logger.info("Loaded %d commit ids from %s", len(commit_ids), path)
    return commit_ids
