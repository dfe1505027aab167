"""
Export of result records to JSON or CSV.

The format is chosen from the file suffix. Records are written in the
order they are given (completion order from the result sink).
"""

import csv
import json
from pathlib import Path
from typing import Iterable, Union

import structlog

from ..core.models import EXPORT_FIELDS, ExportRecord
from ..errors import ExportError

logger = structlog.get_logger(__name__)


def export_records(records: Iterable[ExportRecord], path: Union[str, Path]) -> Path:
    """
    Write records to ``path``.

    Args:
        records: Records in the order they should appear
        path: Target file ending in .json or .csv

    Returns:
        The written path

    Raises:
        ExportError: On an unknown suffix or any I/O failure
    """
    output_path = Path(path).expanduser()
    suffix = output_path.suffix.lower()
    rows = [record.to_dict() for record in records]

    if suffix not in (".json", ".csv"):
        raise ExportError(
            f"Unknown export format {suffix or '(none)'}. Supported: .json, .csv",
            {"path": str(output_path)},
        )

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if suffix == ".json":
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(rows, f, indent=2)
        else:
            with open(output_path, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=EXPORT_FIELDS)
                writer.writeheader()
                writer.writerows(rows)
    except OSError as e:
        raise ExportError(
            f"Cannot write export {output_path}: {e.strerror or e}",
            {"path": str(output_path)},
        ) from e

    logger.info("results_exported", path=str(output_path), records=len(rows), format=suffix[1:])
    return output_path
