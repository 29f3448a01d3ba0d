"""
Start one execution per matrix cell and normalize the outcome.

dispatch() never raises for a failed cell: a missing image, a rejected start
or any other client exception becomes an ExecutionResult with success=False.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..models import ExecutionResult, MatrixCell, ResourceConfig
from .client import StartClient
from .request_builder import RunIdFactory, build_execution_request

logger = logging.getLogger(__name__)


class ExecutionDispatcher:
    """
    Issues start requests through a shared client.

    Args:
        client: Control-plane client, shared by all concurrent dispatches
        run_ids: RUN_ID source (default: a fresh RunIdFactory)
        serialize_calls: Hold a lock around each client call, for transports
            that are not safe for concurrent use
    """

    def __init__(
        self,
        client: StartClient,
        run_ids: Optional[Callable[[], str]] = None,
        serialize_calls: bool = False,
    ):
        self.client = client
        self.run_ids = run_ids or RunIdFactory()
        self._lock = asyncio.Lock() if serialize_calls else None

    async def _start(self, job_id, request):
        if self._lock is None:
            return await self.client.start_execution(job_id, request)
        async with self._lock:
            return await self.client.start_execution(job_id, request)

    async def dispatch(
        self,
        job_id: str,
        cell: MatrixCell,
        resource_config: ResourceConfig,
        logger: logging.Logger = logger,
    ) -> ExecutionResult:
        """
        Start the execution for one cell.

        Returns:
            ExecutionResult; success=False with `error` set if anything failed
        """
        logger.info(f"Starting job execution: {job_id} for {cell.label}")

        try:
            request = build_execution_request(
                job_id,
                cell,
                resource_config,
                run_ids=self.run_ids,
                logger=logger,
            )
            handle = await self._start(job_id, request)
        except Exception as err:
            message = str(err) or type(err).__name__
            logger.error(f"✗ Failed to start execution for {cell.label} (job={job_id}): {message}")
            return ExecutionResult(
                job_id=job_id,
                execution_name="unknown",
                cell=cell,
                success=False,
                error=message,
            )

        logger.info(f"✓ Execution started: {handle.name} ({cell.label}, RUN_ID={request.run_id})")
        return ExecutionResult(
            job_id=job_id,
            execution_name=handle.name,
            cell=cell,
            success=True,
            execution_id=handle.id,
            started_at=datetime.now(timezone.utc),
        )
