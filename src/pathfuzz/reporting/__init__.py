"""
Reporting module - Export of results and post-hoc analysis.

- export_records: write ExportRecords as JSON or CSV
- analyze_export: recompute aggregate counts from an exported file
"""

from .analyzer import AnalysisSummary, analyze_export
from .exporter import export_records


__all__ = [
    "export_records",
    "analyze_export",
    "AnalysisSummary",
]
