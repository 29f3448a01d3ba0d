"""
Build the start request for one matrix cell.

Injected variables, in order:
    ENV, ENV_LABEL  -> cell environment (ENV_LABEL is an alias the runner reads)
    PLATFORM        -> cell platform
    RUN_ID          -> short token, unique within the run
    BUILD_NUMBER    -> tag of the runner image, when one can be derived
followed by the passthrough map minus any reserved names.
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional, Set

from ..errors import RequestBuildError
from ..models import (
    RESERVED_ENV_NAMES,
    EnvVar,
    ExecutionRequest,
    MatrixCell,
    ResourceConfig,
)

logger = logging.getLogger(__name__)

MIN_MEMORY_GIB = 0.25


class RunIdFactory:
    """
    Issues RUN_ID tokens (first 8 hex digits of a UUID4).

    Tokens already handed out by this factory are never repeated, so one
    factory per run keeps RUN_IDs unique within that run.
    """

    def __init__(self, token_source: Optional[Callable[[], str]] = None):
        self._token_source = token_source or (lambda: uuid.uuid4().hex[:8])
        self._issued: Set[str] = set()

    def __call__(self) -> str:
        token = self._token_source()
        while token in self._issued:
            token = self._token_source()
        self._issued.add(token)
        return token


def extract_image_tag(image: Optional[str]) -> Optional[str]:
    """
    Extract the tag from an image reference.

    Examples:
        "repo:v1"                   -> "v1"
        "myregistry:5000/repo:v2"   -> "v2"
        "repo@sha256:abcd"          -> None (digest, no tag)
        "repo"                      -> None

    The ':' separating the tag must come after the last '/', otherwise it is
    a registry port.
    """
    value = (image or '').strip()
    if not value or '@' in value:
        return None

    last_slash = value.rfind('/')
    last_colon = value.rfind(':')
    if last_colon > last_slash:
        return value[last_colon + 1:].strip() or None
    return None


def format_memory(memory_gib: float) -> str:
    """
    Convert GiB into the Container Apps size string.

    Values below MIN_MEMORY_GIB are raised to it; whole numbers drop the
    trailing ".0" (2.0 -> "2Gi", 1.5 -> "1.5Gi").
    """
    gib = max(MIN_MEMORY_GIB, float(memory_gib))
    text = str(int(gib)) if gib.is_integer() else repr(gib)
    return f"{text}Gi"


def require_image(image: Optional[str]) -> str:
    value = (image or '').strip()
    if not value:
        raise RequestBuildError(
            "Missing runner image. Set CONTAINER_IMAGE (or config key Container:Image). "
            "The execution template override requires an image."
        )
    return value


def build_execution_env(
    cell: MatrixCell,
    passthrough_env: Optional[Dict[str, str]],
    image: str,
    run_id: str,
    logger: logging.Logger = logger,
) -> List[EnvVar]:
    """
    Build the ordered variable list for one execution.

    Args:
        cell: Matrix cell the execution is for
        passthrough_env: Static variables forwarded to every execution
        image: Runner image reference (BUILD_NUMBER source)
        run_id: Token for RUN_ID
        logger: Where to send warnings about skipped variables

    Returns:
        List of EnvVar with unique names
    """
    env = [
        EnvVar("ENV", cell.environment),
        EnvVar("ENV_LABEL", cell.environment),
        EnvVar("PLATFORM", cell.platform),
        EnvVar("RUN_ID", run_id),
    ]

    build_number = extract_image_tag(image)
    if build_number:
        env.append(EnvVar("BUILD_NUMBER", build_number))
    else:
        logger.warning(
            "BUILD_NUMBER not injected: could not derive tag from runner image "
            "(missing tag or digest image)."
        )

    for name, value in (passthrough_env or {}).items():
        if name in RESERVED_ENV_NAMES:
            logger.warning(f"runner env ignored reserved key '{name}'")
            continue
        env.append(EnvVar(name, str(value)))

    return env


def build_execution_request(
    job_id: str,
    cell: MatrixCell,
    resource_config: ResourceConfig,
    run_ids: Optional[Callable[[], str]] = None,
    logger: logging.Logger = logger,
) -> ExecutionRequest:
    """
    Build the full start request for one cell.

    Raises:
        RequestBuildError: If no runner image is configured
    """
    image = require_image(resource_config.image)
    run_id = (run_ids or RunIdFactory())()

    env = build_execution_env(
        cell,
        resource_config.passthrough_env,
        image,
        run_id,
        logger=logger,
    )

    return ExecutionRequest(
        job_id=job_id,
        cell=cell,
        container_name=resource_config.container_name,
        image=image,
        cpu_units=resource_config.cpu_units,
        memory=format_memory(resource_config.memory_gib),
        env=tuple(env),
        run_id=run_id,
    )
