"""Text output for the AKW push and status commands."""

from __future__ import annotations

from collections.abc import Sequence

from barebone.akw_pusher import MappingStatus, PushReport


def format_status_table(items: Sequence[MappingStatus]) -> str:
    """A fixed-width table of per-mapping file, dirty and never-pushed counts."""
    label_w = max([len(i.label) for i in items] + [15])
    dir_w = max([len(str(i.local_dir)) for i in items] + [20])

    def row(label: str, local_dir: str, files: object, dirty: object, never: object) -> str:
        return (
            f"{label:<{label_w}}  {local_dir:<{dir_w}}  "
            f"{files!s:>5}  {dirty!s:>5}  {never!s:>11}"
        )

    lines = [
        row("label", "local_dir", "files", "dirty", "never_pushed"),
        "-" * (label_w + dir_w + 5 + 5 + 11 + 8),
    ]
    lines.extend(
        row(s.label, str(s.local_dir), s.file_count, s.dirty_count, s.never_pushed)
        for s in items
    )
    return "\n".join(lines)


def format_push_report(report: PushReport) -> str:
    """The summary printed after a push cycle, with any failures listed."""
    lines = [
        f"Push complete: {report.created} created, {report.updated} updated, "
        f"{report.failed} failed"
    ]
    if report.failure_messages:
        lines.append("Failures:")
        lines.extend(f"  - {msg}" for msg in report.failure_messages)
    return "\n".join(lines)