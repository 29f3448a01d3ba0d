"""Execution requests, control-plane clients and per-cell dispatch."""

from .request_builder import (
    RunIdFactory,
    extract_image_tag,
    format_memory,
    build_execution_env,
    build_execution_request,
)
from .client import StartClient, ContainerAppsStartClient, DryRunStartClient
from .dispatcher import ExecutionDispatcher

__all__ = [
    'RunIdFactory',
    'extract_image_tag',
    'format_memory',
    'build_execution_env',
    'build_execution_request',
    'StartClient',
    'ContainerAppsStartClient',
    'DryRunStartClient',
    'ExecutionDispatcher',
]
