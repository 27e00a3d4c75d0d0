"""JSON report renderer."""

from __future__ import annotations

import json

from my_ready import __version__
from my_ready.models import ScanReport
from my_ready.remediation import trim_statement


def render(report: ScanReport) -> str:
    """Render a ScanReport as a JSON string."""
    data = {
        "meta": {
            "tool": "my-ready",
            "version": __version__,
            "timestamp": report.timestamp.isoformat(),
            "schema": report.schema,
            "host": report.host,
            "port": report.port,
            "server_version": report.server_version,
        },
        "summary": {
            "tables_scanned": report.tables_scanned,
            "columns_scanned": report.columns_scanned,
            "affected_columns": report.affected_columns,
            "total_affected_rows": report.total_affected_rows,
            "failures": len(report.failures),
            "cancelled": report.cancelled,
        },
        "results": [],
        "failures": [
            {"table": f.table, "column": f.column, "error": f.error} for f in report.failures
        ],
    }

    for result in report.results:
        data["results"].append(
            {
                "table": result.table,
                "column": result.column,
                "collation": result.collation,
                "total_rows": result.total_rows,
                "trailing_space_count": result.trailing_space_count,
                "samples": [
                    {
                        "row_id": s.row_id,
                        "value": s.value,
                        "char_length": s.char_length,
                        "byte_length": s.byte_length,
                    }
                    for s in result.samples
                ],
                "remediation": trim_statement(report.schema, result.table, result.column),
            }
        )

    return json.dumps(data, indent=2, default=str)
