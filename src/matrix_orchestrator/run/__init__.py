"""Scheduling, reporting and the orchestration entry point."""

from .orchestrator import Orchestrator
from .scheduler import run_with_concurrency_limit
from .report import build_report, summary_lines, report_to_frame
from .matrix_input import parse_custom_matrix, custom_matrix_from_env, load_custom_matrix

__all__ = [
    'Orchestrator',
    'run_with_concurrency_limit',
    'build_report',
    'summary_lines',
    'report_to_frame',
    'parse_custom_matrix',
    'custom_matrix_from_env',
    'load_custom_matrix',
]
