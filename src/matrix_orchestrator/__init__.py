"""
Matrix Orchestrator - start ephemeral job executions for a test matrix.

This package provides tools for:
- Resolving the test matrix (environments x platforms) and runner settings
- Building per-cell execution requests with injected environment variables
- Starting Container Apps Job executions under a concurrency limit
- Summarizing per-cell outcomes into a single run report
"""

__version__ = "1.0.0"
