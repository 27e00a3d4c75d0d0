"""Plain-text report renderer for terminal output."""

from __future__ import annotations

from my_ready.models import ScanReport
from my_ready.remediation import trim_statements


def render(report: ScanReport) -> str:
    """Render a ScanReport as a human-readable summary with trim statements."""
    lines = [
        "=== MySQL Trailing Space Scan ===",
        "",
        f"Schema: {report.schema}",
    ]
    if report.host:
        lines.append(f"Host: {report.host}:{report.port}")
    if report.server_version:
        lines.append(f"Server: MySQL {report.server_version}")
    lines.append(
        f"Scanned {report.columns_scanned} string columns in {report.tables_scanned} tables"
    )
    lines.append("")

    if report.cancelled:
        lines.append("Scan was cancelled; results below are partial.")
        lines.append("")

    if report.results:
        lines.append(
            f"Found {report.total_affected_rows} rows with trailing spaces "
            f"across {report.affected_columns} columns"
        )
        lines.append("")
        lines.append("Affected columns:")
        for r in report.results:
            coll = f" [{r.collation}]" if r.collation else ""
            lines.append(
                f"  - {r.object_name}{coll}: {r.trailing_space_count} / {r.total_rows} rows"
            )
            for s in r.samples:
                note = " multi-byte" if s.multibyte else ""
                lines.append(
                    f"      ID {s.row_id}: {s.value!r} "
                    f"(chars: {s.char_length}, bytes: {s.byte_length}){note}"
                )
        lines.append("")
        lines.append("Action required:")
        lines.append("These values compare differently under NO PAD collations.")
        lines.append("Consider running UPDATE statements to trim them:")
        lines.append("")
        lines.extend(f"  {stmt}" for stmt in trim_statements(report))
        lines.append("")
    elif not report.failures and not report.cancelled:
        lines.append("No trailing spaces detected in any string columns.")
        lines.append("Schema is ready for NO PAD collations.")
        lines.append("")

    if report.failures:
        lines.append(f"{len(report.failures)} column(s) could not be scanned:")
        for f in report.failures:
            lines.append(f"  - {f.object_name}: {f.error}")
        lines.append("")

    return "\n".join(lines)
