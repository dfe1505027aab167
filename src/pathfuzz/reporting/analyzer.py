"""
Analyze mode - Aggregate counts over a previously exported file.

No network activity happens here. The input is whatever ``export_records``
wrote (JSON list or CSV with a header row); files produced by older
exporters without an ``origin`` column are counted under ``unknown``.
"""

import csv
import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import structlog

from ..errors import AnalyzeError

logger = structlog.get_logger(__name__)

_TRUE = {"true", "1", "yes"}


@dataclass
class AnalysisSummary:
    """Aggregate view of an export file"""
    path: str
    total: int = 0
    by_status: Counter = field(default_factory=Counter)   # None = no status (error)
    by_origin: Counter = field(default_factory=Counter)
    by_outcome: Counter = field(default_factory=Counter)
    reflected: int = 0
    error_detected: int = 0
    anomalous: int = 0
    average_elapsed: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "total": self.total,
            "by_status": {("error" if k is None else str(k)): v for k, v in sorted(
                self.by_status.items(), key=lambda kv: (kv[0] is None, kv[0] or 0)
            )},
            "by_origin": dict(self.by_origin),
            "by_outcome": dict(self.by_outcome),
            "reflected": self.reflected,
            "error_detected": self.error_detected,
            "anomalous": self.anomalous,
            "average_elapsed": self.average_elapsed,
        }


def analyze_export(path: Union[str, Path]) -> AnalysisSummary:
    """
    Recompute per-status, per-origin and per-outcome counts.

    Args:
        path: JSON or CSV file written by the exporter

    Returns:
        AnalysisSummary

    Raises:
        AnalyzeError: If the file is unreadable or malformed
    """
    path = Path(path).expanduser()
    suffix = path.suffix.lower()

    try:
        if suffix == ".json":
            rows = _read_json(path)
        elif suffix == ".csv":
            rows = _read_csv(path)
        else:
            raise AnalyzeError(f"Unknown file format {suffix or '(none)'}. Supported: .json, .csv")
    except (OSError, UnicodeDecodeError) as e:
        raise AnalyzeError(f"Cannot read {path}: {getattr(e, 'strerror', None) or e}") from e

    summary = AnalysisSummary(path=str(path))
    elapsed_values: List[float] = []

    for index, row in enumerate(rows, start=1):
        if not isinstance(row, Mapping) or "url" not in row or "status" not in row:
            raise AnalyzeError(f"Record {index} in {path} lacks 'url' or 'status'")

        summary.total += 1
        summary.by_status[_status(row["status"], index)] += 1
        summary.by_origin[str(row.get("origin") or "unknown")] += 1
        if row.get("outcome"):
            summary.by_outcome[str(row["outcome"])] += 1
        summary.reflected += _flag(row.get("reflected"))
        summary.error_detected += _flag(row.get("error_detected"))
        summary.anomalous += _flag(row.get("anomalous"))

        elapsed = row.get("elapsed")
        if elapsed not in (None, ""):
            try:
                elapsed_values.append(float(elapsed))
            except (TypeError, ValueError) as e:
                raise AnalyzeError(f"Record {index} has a non-numeric elapsed value {elapsed!r}") from e

    if elapsed_values:
        summary.average_elapsed = round(sum(elapsed_values) / len(elapsed_values), 4)

    logger.info("export_analyzed", path=str(path), records=summary.total)
    return summary


def _read_json(path: Path) -> List[Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise AnalyzeError(f"Malformed JSON in {path}: {e}") from e
    if not isinstance(data, list):
        raise AnalyzeError(f"Top level of {path} must be a list, got {type(data).__name__}")
    return data


def _read_csv(path: Path) -> List[Dict[str, str]]:
    with open(path, "r", encoding="utf-8", newline="") as f:
        try:
            reader = csv.DictReader(f)
            if not reader.fieldnames:
                return []
            return list(reader)
        except csv.Error as e:
            raise AnalyzeError(f"Malformed CSV in {path}: {e}") from e


def _status(value: Any, index: int) -> Optional[int]:
    if value in (None, "", 0, "0"):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise AnalyzeError(f"Record {index} has an invalid status {value!r}") from e


def _flag(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    return int(str(value).strip().lower() in _TRUE)
