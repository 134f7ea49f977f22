"""Run report output."""

from __future__ import annotations

import json
from pathlib import Path

from theme_qa.models.results import RunReport


def build_summary(report: RunReport) -> str:
    """Human-readable one-paragraph summary of a run."""
    page = f"page {report.page.id}" if report.page else "no page"
    parts = []
    if report.success:
        parts.append(f"Theme '{report.theme}' passed on {page}:")
    else:
        where = f" in {report.failed_phase}" if report.failed_phase else ""
        parts.append(f"Theme '{report.theme}' failed{where} ({report.error_kind}): {report.error}.")

    parts.append(f"{len(report.screenshots)} screenshot(s), {len(report.issues)} issue(s) flagged.")

    cleanup = report.phases.get("cleanup")
    if cleanup is not None:
        if cleanup.skipped:
            parts.append(f"Cleanup skipped, {page} preserved.")
        elif cleanup.deleted:
            parts.append(f"Cleanup deleted {page}.")
        else:
            parts.append(cleanup.summary + ".")
    elif report.cleanup_error:
        parts.append(f"Cleanup failed: {report.cleanup_error}.")
    elif report.page:
        parts.append(f"Cleanup did not run; {page} may remain.")

    if report.cleanup_error and cleanup is not None:
        parts.append(f"Cleanup error: {report.cleanup_error}.")

    errors = [i for i in report.issues if i.severity == "error"]
    if errors:
        parts.append("Errors: " + "; ".join(f"{i.viewport} {i.kind}" for i in errors[:5]))
    return " ".join(parts)


def write_json_report(report: RunReport, output_path: str | Path) -> Path:
    """Write a machine-readable JSON report."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report.model_dump(), f, indent=2, default=str)
    return output_path
