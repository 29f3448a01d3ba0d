"""
Run orchestrator - starts one job execution per matrix cell.

Flow:
    1. Resolve the matrix (custom, or environments x platforms from config)
    2. Resolve resources, job name and concurrency limit
    3. Start executions through the dispatcher, at most N in flight
    4. Summarize into an OrchestrationReport

Any configuration error is raised before the first start request. Failures
of individual cells only show up in the report. Started executions are not
awaited; they run independently after this returns.

Usage:
    orchestrator = Orchestrator(ConfigResolver(), ExecutionDispatcher(client))
    report = asyncio.run(orchestrator.run())
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..config.resolver import ConfigResolver
from ..jobs.dispatcher import ExecutionDispatcher
from ..models import MatrixCell, OrchestrationReport, ResourceConfig
from .report import build_report, summary_lines
from .scheduler import run_with_concurrency_limit

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Coordinates config resolution, dispatch and reporting for one run.

    Args:
        resolver: Resolves matrix, resources, job name and concurrency
        dispatcher: Starts executions; its client is shared by all workers
    """

    def __init__(self, resolver: ConfigResolver, dispatcher: ExecutionDispatcher):
        self.resolver = resolver
        self.dispatcher = dispatcher

    def resolve_matrix(self, custom_matrix: Optional[Sequence[MatrixCell]] = None) -> List[MatrixCell]:
        if custom_matrix:
            return list(custom_matrix)
        return self.resolver.resolve_matrix()

    async def run(
        self,
        custom_matrix: Optional[Sequence[MatrixCell]] = None,
        logger: logging.Logger = logger,
    ) -> OrchestrationReport:
        """
        Start executions for the whole matrix.

        Args:
            custom_matrix: Cells to run verbatim; None or empty means resolve
                the matrix from configuration
            logger: Destination for progress output

        Returns:
            OrchestrationReport with one result per cell, in matrix order

        Raises:
            ConfigError: If the job name is missing or passthrough is malformed
        """
        start_time = time.perf_counter()

        logger.info("=" * 60)
        logger.info("Test Execution Started (Container Apps Jobs)")
        logger.info(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
        logger.info("=" * 60)

        try:
            using_custom = bool(custom_matrix)
            matrix = self.resolve_matrix(custom_matrix)

            logger.info("Using custom configuration:" if using_custom
                        else "Using default configuration from settings")
            logger.info(f"Test Matrix: {len(matrix)} configurations")
            for cell in matrix:
                logger.info(f"  - {cell.label}")

            resource_config = self.resolver.resolve_resource_config()
            job_id = self.resolver.resolve_job_id()
            concurrency_limit = self.resolver.resolve_concurrency_limit()
        except Exception as err:
            logger.error(f"Fatal error in orchestration: {err}")
            raise

        self._log_settings(logger, job_id, resource_config, concurrency_limit)

        logger.info("--- Job Execution Start Phase ---")

        async def start_cell(cell: MatrixCell):
            return await self.dispatcher.dispatch(job_id, cell, resource_config, logger=logger)

        results = await run_with_concurrency_limit(matrix, concurrency_limit, start_cell)

        report = build_report(
            results,
            job_id=job_id,
            duration_seconds=time.perf_counter() - start_time,
        )

        for line in summary_lines(report):
            logger.info(line)
        logger.info("=" * 60)
        logger.info("✓ Orchestration completed. Executions running independently.")
        logger.info("=" * 60)

        return report

    @staticmethod
    def _log_settings(
        logger: logging.Logger,
        job_id: str,
        resource_config: ResourceConfig,
        concurrency_limit: int,
    ) -> None:
        logger.info(f"Runner Job (Container Apps Job): {job_id}")
        logger.info(f"Image override: {resource_config.image or '(missing - starts will fail)'}")
        logger.info(f"Container: {resource_config.container_name}")
        logger.info(f"Resources: {resource_config.cpu_units} CPU, {resource_config.memory_gib}GB RAM")
        logger.info(f"Concurrency limit: {concurrency_limit}")

        if resource_config.passthrough_env:
            logger.info(f"Runner env passthrough: {', '.join(resource_config.passthrough_env)}")
        else:
            logger.info("Runner env passthrough: (none)")

        network = resource_config.network
        if network is not None and network.enabled:
            logger.info(f"Network intent: enabled (VNet={network.vnet_name})")
            if network.subnet_name:
                logger.info(f"Subnet: {network.subnet_name}")
            if network.subnet_resource_id:
                logger.info(f"SubnetResourceId: {network.subnet_resource_id}")
            if network.internal_only:
                logger.info("Internal only: yes")
        else:
            logger.info("Network intent: not specified (handled by Container Apps Environment)")
