"""
Reduce per-cell results into the run report.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

import pandas as pd

from ..models import ExecutionResult, OrchestrationReport

SUCCESS_MESSAGE = "All executions started successfully"

REPORT_COLUMNS = [
    'env',
    'platform',
    'success',
    'job_id',
    'execution_name',
    'execution_id',
    'started_at',
    'error',
]


def _is_job_not_found(error: Optional[str]) -> bool:
    text = (error or '').lower()
    return 'microsoft.app/jobs' in text and ('not found' in text or 'resourcenotfound' in text)


def looks_like_missing_job(results: Sequence[ExecutionResult]) -> bool:
    """True if every result failed with a "job not found" style error."""
    if not results:
        return False
    return all(not r.success and _is_job_not_found(r.error) for r in results)


def missing_job_hints(job_id: Optional[str]) -> List[str]:
    name = job_id or "<job>"
    return [
        "All executions failed because the runner job was not found.",
        f'Create a Container Apps Job named "{name}" in the resource group, then re-run.',
        "Also ensure the job template container name matches the override name "
        "(RUNNER_CONTAINER_NAME, default \"test-executor\").",
    ]


def build_report(
    results: Sequence[ExecutionResult],
    job_id: Optional[str] = None,
    duration_seconds: Optional[float] = None,
) -> OrchestrationReport:
    """
    Summarize ordered results.

    Args:
        results: One result per matrix cell, in matrix order
        job_id: Target job name, used in the missing-job hint
        duration_seconds: Wall time of the run

    Returns:
        OrchestrationReport; success is True only if nothing failed
    """
    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful

    hints = missing_job_hints(job_id) if looks_like_missing_job(results) else []

    return OrchestrationReport(
        success=failed == 0,
        message=SUCCESS_MESSAGE if failed == 0 else f"{failed} execution(s) failed to start",
        total=len(results),
        successful=successful,
        failed=failed,
        results=list(results),
        timestamp=datetime.now(timezone.utc),
        hints=hints,
        duration_seconds=duration_seconds,
    )


def summary_lines(report: OrchestrationReport) -> List[str]:
    """Human-readable summary, one string per line."""
    lines = [
        "=" * 60,
        "Job Execution Start Summary",
        "=" * 60,
        f"Total: {report.total}",
        f"✓ Successful: {report.successful}",
        f"✗ Failed: {report.failed}",
    ]

    if report.failed:
        lines.append("Failed Executions:")
        for r in report.failures:
            lines.append(f"  - {r.cell.label}: {r.error}")

    if report.hints:
        lines.append("")
        lines.append(f"⚠️  {report.hints[0]}")
        lines.extend(report.hints[1:])

    if report.duration_seconds is not None:
        lines.append(f"Execution Time: {report.duration_seconds:.2f}s")

    lines.append(report.message)
    return lines


def report_to_frame(report: OrchestrationReport) -> pd.DataFrame:
    """One row per matrix cell, in matrix order."""
    rows = [
        {
            'env': r.cell.environment,
            'platform': r.cell.platform,
            'success': r.success,
            'job_id': r.job_id,
            'execution_name': r.execution_name,
            'execution_id': r.execution_id,
            'started_at': r.started_at.isoformat() if r.started_at else None,
            'error': r.error,
        }
        for r in report.results
    ]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)
