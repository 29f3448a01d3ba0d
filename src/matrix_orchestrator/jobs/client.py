"""
Control-plane clients that start job executions.

One client instance is shared by every worker of a run, so implementations
must tolerate concurrent start_execution() calls. Each call is a single
attempt; failures are raised and handled by the dispatcher.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Collection, List

from ..errors import DispatchError
from ..models import AzureContext, ExecutionHandle, ExecutionRequest, MatrixCell

logger = logging.getLogger(__name__)


class StartClient(ABC):
    """
    Abstract base class for "start execution" clients.

    Subclasses must implement start_execution().
    """

    @abstractmethod
    async def start_execution(self, job_id: str, request: ExecutionRequest) -> ExecutionHandle:
        """
        Start one execution of a job.

        Args:
            job_id: Name of the job to start an execution of
            request: Container override for this execution

        Returns:
            Handle with the execution name and id
        """
        pass

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> 'StartClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class ContainerAppsStartClient(StartClient):
    """
    Starts executions of an Azure Container Apps Job.

    The job's execution template is overridden with a single container built
    from the request. That container name must exist in the job template.
    begin_start only waits for the start operation, not for the run itself.
    """

    def __init__(self, context: AzureContext, credential: Any = None):
        try:
            from azure.mgmt.appcontainers.aio import ContainerAppsAPIClient
        except ImportError:
            raise ImportError(
                "azure-mgmt-appcontainers is not installed. "
                "Install with: pip install 'matrix-orchestrator[azure]'"
            )

        self._owns_credential = credential is None
        if credential is None:
            from azure.identity.aio import DefaultAzureCredential
            credential = DefaultAzureCredential()

        self.context = context
        self._credential = credential
        self._client = ContainerAppsAPIClient(credential, context.subscription_id)

    @staticmethod
    def build_template(request: ExecutionRequest) -> Any:
        from azure.mgmt.appcontainers.models import (
            ContainerResources,
            EnvironmentVar,
            JobExecutionContainer,
            JobExecutionTemplate,
        )

        container = JobExecutionContainer(
            name=request.container_name,
            image=request.image,
            resources=ContainerResources(cpu=request.cpu_units, memory=request.memory),
            env=[EnvironmentVar(name=var.name, value=var.value) for var in request.env],
        )
        return JobExecutionTemplate(containers=[container])

    async def start_execution(self, job_id: str, request: ExecutionRequest) -> ExecutionHandle:
        from azure.core.exceptions import AzureError

        try:
            poller = await self._client.jobs.begin_start(
                self.context.resource_group,
                job_id,
                template=self.build_template(request),
            )
            execution = await poller.result()
        except AzureError as err:
            raise DispatchError(str(err)) from err

        return ExecutionHandle(name=execution.name or "unknown", id=execution.id)

    async def close(self) -> None:
        await self._client.close()
        if self._owns_credential:
            await self._credential.close()


class DryRunStartClient(StartClient):
    """
    Client that starts nothing.

    Logs each request and returns a synthetic handle named
    "<job>-dryrun-<n>". Cells listed in `fail_cells` raise DispatchError
    instead, and `delay` seconds are slept before answering.
    """

    def __init__(
        self,
        fail_cells: Collection[MatrixCell] = (),
        delay: float = 0.0,
        error_message: str = "dry run: simulated start failure",
    ):
        self.fail_cells = set(fail_cells)
        self.delay = delay
        self.error_message = error_message
        self.requests: List[ExecutionRequest] = []
        self._counter = 0

    async def start_execution(self, job_id: str, request: ExecutionRequest) -> ExecutionHandle:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        if request.cell in self.fail_cells:
            raise DispatchError(self.error_message)

        self._counter += 1
        name = f"{job_id}-dryrun-{self._counter}"
        logger.info(
            f"Dry run - not starting {job_id} for {request.cell.label} "
            f"(image={request.image}, cpu={request.cpu_units}, memory={request.memory}, "
            f"env={', '.join(var.name for var in request.env)})"
        )
        return ExecutionHandle(name=name, id=f"dryrun/{job_id}/{name}")
