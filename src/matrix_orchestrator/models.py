"""
Data model for one orchestration run.

Everything here is created fresh for a run and discarded at its end.
MatrixCell, ExecutionRequest and ExecutionResult are frozen; ResourceConfig is
resolved once and only read afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class MatrixCell:
    """One (environment, platform) pair - a single unit of work."""
    environment: str
    platform: str

    @property
    def label(self) -> str:
        return f"{self.environment}/{self.platform}"


@dataclass(frozen=True)
class NetworkIntent:
    """
    Network placement the executions are expected to run in.

    Descriptive only: VNet integration is a property of the Container Apps
    Environment, so this is logged for operators and never sent to the backend.
    """
    enabled: bool
    vnet_name: str
    subnet_resource_id: Optional[str] = None
    subnet_name: Optional[str] = None
    internal_only: bool = False


@dataclass
class ResourceConfig:
    """Runner container settings shared by every cell of a run."""
    image: Optional[str] = None
    cpu_units: float = 1.0
    memory_gib: float = 2.0
    container_name: str = "test-executor"
    network: Optional[NetworkIntent] = None
    passthrough_env: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: str


@dataclass(frozen=True)
class ExecutionRequest:
    """Everything needed to start one execution of the runner job."""
    job_id: str
    cell: MatrixCell
    container_name: str
    image: str
    cpu_units: float
    memory: str                  # backend size string, e.g. "1.5Gi"
    env: Tuple[EnvVar, ...]
    run_id: str

    def env_dict(self) -> Dict[str, str]:
        return {var.name: var.value for var in self.env}


@dataclass(frozen=True)
class ExecutionHandle:
    """Identifiers the control plane returns for a started execution."""
    name: str
    id: Optional[str] = None


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of starting the execution for one matrix cell."""
    job_id: str
    execution_name: str
    cell: MatrixCell
    success: bool
    execution_id: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None


@dataclass
class OrchestrationReport:
    """Summary of a whole run. `results` is in matrix order."""
    success: bool
    message: str
    total: int
    successful: int
    failed: int
    results: List[ExecutionResult]
    timestamp: datetime
    hints: List[str] = field(default_factory=list)
    duration_seconds: Optional[float] = None

    @property
    def failures(self) -> List[ExecutionResult]:
        return [r for r in self.results if not r.success]


@dataclass(frozen=True)
class AzureContext:
    """Subscription and resource group the runner job lives in."""
    subscription_id: str
    resource_group: str
    location: str = "westeurope"


# Variable names the orchestrator sets on every execution. Passthrough
# configuration can never override these.
RESERVED_ENV_NAMES = frozenset({"ENV", "ENV_LABEL", "PLATFORM", "RUN_ID", "BUILD_NUMBER"})
