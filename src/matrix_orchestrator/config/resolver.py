"""
Configuration resolution with fallback precedence.

Every setting is resolved through the same ordered chain:
    1. Primary source (YAML file or Azure App Configuration), if any
    2. Raw process environment
    3. Literal default

A primary source that raises is logged and skipped. A value that is blank or
does not parse counts as absent and the next level is tried. Only two
conditions are fatal: no job id anywhere, and a malformed passthrough payload.

Usage:
    resolver = ConfigResolver(YamlConfigProvider('orchestrator.yaml'))
    matrix = resolver.resolve_matrix()
    resources = resolver.resolve_resource_config()
    job_id = resolver.resolve_job_id()
    limit = resolver.resolve_concurrency_limit()
"""

import json
import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import ConfigError
from ..models import (
    RESERVED_ENV_NAMES,
    AzureContext,
    MatrixCell,
    NetworkIntent,
    ResourceConfig,
)
from .providers import ConfigProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Setting:
    """Name of a setting in the primary source and in the environment."""
    key: str
    env_var: str


ENVIRONMENTS = Setting("TestMatrix:Environments", "TEST_ENVIRONMENTS")
PLATFORMS = Setting("TestMatrix:Platforms", "TEST_PLATFORMS")
IMAGE = Setting("Container:Image", "CONTAINER_IMAGE")
CPU = Setting("Container:CPU", "CONTAINER_CPU")
MEMORY_GB = Setting("Container:MemoryGB", "CONTAINER_MEMORY_GB")
CONTAINER_NAME = Setting("Container:Name", "RUNNER_CONTAINER_NAME")
JOB_NAME = Setting("ContainerApps:JobName", "CONTAINERAPPS_JOB_NAME")
CONCURRENCY_LIMIT = Setting("Orchestration:ConcurrencyLimit", "ORCH_CONCURRENCY_LIMIT")
NETWORK_ENABLED = Setting("Network:Enabled", "NETWORK_ENABLED")
NETWORK_VNET_NAME = Setting("Network:VnetName", "NETWORK_VNET_NAME")
NETWORK_SUBNET_ID = Setting("Network:SubnetResourceId", "NETWORK_SUBNET_RESOURCE_ID")
NETWORK_SUBNET_NAME = Setting("Network:SubnetName", "NETWORK_SUBNET_NAME")
NETWORK_INTERNAL_ONLY = Setting("Network:InternalOnly", "NETWORK_INTERNAL_ONLY")
PASSTHROUGH = Setting("Runner:EnvPassthrough", "RUNNER_ENV_PASSTHROUGH")

ENDPOINT_VAR = "APP_CONFIG_ENDPOINT"

DEFAULT_ENVIRONMENTS = "prod,stage,qa"
DEFAULT_PLATFORMS = "web,mobile"
DEFAULT_CPU = 1.0
DEFAULT_MEMORY_GB = 2.0
DEFAULT_CONTAINER_NAME = "test-executor"
DEFAULT_VNET_NAME = "automation-resources-vnet"
DEFAULT_CONCURRENCY = 10
CONCURRENCY_BOUNDS = (1, 25)

ENV_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*", re.ASCII)

_INT_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)
_FLOAT_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)

_TRUE_VALUES = {"true", "1", "yes", "y"}
_FALSE_VALUES = {"false", "0", "no", "n"}


# ============================================================================
# Parsers (return None for "treat as absent")
# ============================================================================

def _parse_text(raw: str) -> Optional[str]:
    value = raw.strip()
    return value or None


def _parse_list(raw: str) -> Optional[List[str]]:
    items = [item.strip() for item in raw.split(',')]
    items = [item for item in items if item]
    return items or None


def _parse_float(raw: str) -> Optional[float]:
    raw = raw.strip()
    if not _FLOAT_PATTERN.fullmatch(raw):
        return None
    value = float(raw)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _parse_int(raw: str) -> Optional[int]:
    raw = raw.strip()
    if not _INT_PATTERN.fullmatch(raw):
        return None
    return int(raw)


def _parse_bool(raw: str) -> Optional[bool]:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None


def parse_bool(value: Optional[str], default: bool) -> bool:
    """
    Parse a permissive boolean.

    "true"/"1"/"yes"/"y" -> True, "false"/"0"/"no"/"n" -> False (any case);
    None or anything else -> default.
    """
    if value is None:
        return default
    parsed = _parse_bool(str(value))
    return default if parsed is None else parsed


def clamp(value: int, bounds: Tuple[int, int] = CONCURRENCY_BOUNDS) -> int:
    low, high = bounds
    return max(low, min(high, value))


def is_valid_env_name(name: str) -> bool:
    return bool(ENV_NAME_PATTERN.fullmatch(name))


def _split_list(raw: str) -> List[str]:
    return _parse_list(raw) or []


# ============================================================================
# Resolver
# ============================================================================

class ConfigResolver:
    """
    Resolves everything one orchestration pass needs.

    Args:
        primary: Primary configuration source (None = environment only)
        environ: Environment mapping used for fallbacks (default: os.environ)
        endpoint: The orchestrator's own App Configuration endpoint
            (default: APP_CONFIG_ENDPOINT from environ)
    """

    def __init__(
        self,
        primary: Optional[ConfigProvider] = None,
        environ: Optional[Mapping[str, str]] = None,
        endpoint: Optional[str] = None,
    ):
        self.primary = primary
        self.environ = os.environ if environ is None else environ
        if endpoint is None:
            endpoint = self.environ.get(ENDPOINT_VAR, '')
        self.endpoint = endpoint.strip() or None

    def _lookups(self, setting: Setting) -> List[Tuple[str, Callable[[], Optional[str]]]]:
        lookups = []
        if self.primary is not None:
            primary = self.primary
            lookups.append((primary.describe(), lambda: primary.get(setting.key)))
        lookups.append((f"${setting.env_var}", lambda: self.environ.get(setting.env_var)))
        return lookups

    def _resolve(self, setting: Setting, parse: Callable[[str], Any]) -> Any:
        """
        Try each source in order and return the first parsed value.

        Returns:
            The parsed value, or None if no source supplied a usable one
        """
        for source, lookup in self._lookups(setting):
            try:
                raw = lookup()
            except Exception as err:
                logger.warning(
                    f"Failed to read {setting.key} from {source}, falling back: {err}"
                )
                continue

            if raw is None:
                continue

            value = parse(str(raw))
            if value is None:
                if str(raw).strip():
                    logger.warning(f"Ignoring invalid value for {setting.key} from {source}: {raw!r}")
                continue

            logger.debug(f"{setting.key} resolved from {source}")
            return value

        return None

    # ------------------------------------------------------------------------
    # Matrix
    # ------------------------------------------------------------------------

    def resolve_matrix(self) -> List[MatrixCell]:
        """
        Build the environments x platforms cross product.

        Environments are iterated in the outer loop, so
        environments=[qa, prod], platforms=[web] gives [(qa, web), (prod, web)].
        """
        environments = self._resolve(ENVIRONMENTS, _parse_list) or _split_list(DEFAULT_ENVIRONMENTS)
        platforms = self._resolve(PLATFORMS, _parse_list) or _split_list(DEFAULT_PLATFORMS)

        return [
            MatrixCell(environment=env, platform=platform)
            for env in environments
            for platform in platforms
        ]

    # ------------------------------------------------------------------------
    # Runner container
    # ------------------------------------------------------------------------

    def resolve_resource_config(self) -> ResourceConfig:
        """
        Resolve image, CPU, memory, container name, network intent and the
        passthrough env map.

        Raises:
            ConfigError: If the passthrough payload is malformed
        """
        image = self._resolve(IMAGE, _parse_text)
        cpu = self._resolve(CPU, _parse_float)
        memory = self._resolve(MEMORY_GB, _parse_float)
        container_name = self._resolve(CONTAINER_NAME, _parse_text)

        network = self.resolve_network_intent()
        passthrough = self.resolve_passthrough_env()

        return ResourceConfig(
            image=image,
            cpu_units=DEFAULT_CPU if cpu is None else cpu,
            memory_gib=DEFAULT_MEMORY_GB if memory is None else memory,
            container_name=container_name or DEFAULT_CONTAINER_NAME,
            network=network if network.enabled else None,
            passthrough_env=passthrough or None,
        )

    def resolve_network_intent(self) -> NetworkIntent:
        enabled = self._resolve(NETWORK_ENABLED, _parse_bool)
        internal_only = self._resolve(NETWORK_INTERNAL_ONLY, _parse_bool)

        return NetworkIntent(
            enabled=True if enabled is None else enabled,
            vnet_name=self._resolve(NETWORK_VNET_NAME, _parse_text) or DEFAULT_VNET_NAME,
            subnet_resource_id=self._resolve(NETWORK_SUBNET_ID, _parse_text),
            subnet_name=self._resolve(NETWORK_SUBNET_NAME, _parse_text),
            internal_only=False if internal_only is None else internal_only,
        )

    # ------------------------------------------------------------------------
    # Job + concurrency
    # ------------------------------------------------------------------------

    def resolve_job_id(self) -> str:
        """
        Name of the Container Apps Job to start executions of.

        Raises:
            ConfigError: If neither the primary source nor the environment has it
        """
        job_id = self._resolve(JOB_NAME, _parse_text)
        if not job_id:
            raise ConfigError(
                f"Missing {JOB_NAME.env_var} (or config key {JOB_NAME.key})"
            )
        return job_id

    def resolve_concurrency_limit(self, default: int = DEFAULT_CONCURRENCY) -> int:
        """
        Maximum number of start requests in flight at once.

        Non-numeric values are treated as absent. The result is clamped into
        CONCURRENCY_BOUNDS whichever level it came from.
        """
        limit = self._resolve(CONCURRENCY_LIMIT, _parse_int)
        return clamp(default if limit is None else limit)

    # ------------------------------------------------------------------------
    # Passthrough env
    # ------------------------------------------------------------------------

    def resolve_passthrough_env(self) -> Dict[str, str]:
        """
        Parse the runner env passthrough JSON object.

        Example:
            RUNNER_ENV_PASSTHROUGH='{"PW_WORKERS":"5","SUITE":"smoke"}'

        Keys that are not valid variable names or that are reserved for the
        orchestrator are dropped with a warning. When the orchestrator has an
        App Configuration endpoint, APP_CONFIG_ENDPOINT is injected (or
        overridden) so the runner reads the same configuration store.

        Raises:
            ConfigError: If the payload is not valid JSON or not an object
        """
        raw = self._resolve(PASSTHROUGH, _parse_text)

        parsed: Dict[str, Any] = {}
        if raw:
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                raise ConfigError(
                    f'{PASSTHROUGH.env_var} must be a valid JSON object. '
                    f'Example: {{"PW_WORKERS":"5","SUITE":"smoke"}}'
                )
            if not isinstance(payload, dict):
                raise ConfigError(f"{PASSTHROUGH.env_var} must be a JSON object (key/value map).")
            parsed = payload

        env: Dict[str, str] = {}
        for key, value in parsed.items():
            if not is_valid_env_name(key):
                logger.warning(f"{PASSTHROUGH.env_var}: ignoring invalid env var key '{key}'")
                continue
            if key in RESERVED_ENV_NAMES:
                logger.warning(f"{PASSTHROUGH.env_var}: '{key}' is reserved and will be ignored")
                continue
            if value is None:
                env[key] = ""
            elif isinstance(value, str):
                env[key] = value
            else:
                env[key] = json.dumps(value)

        if self.endpoint:
            current = env.get(ENDPOINT_VAR)
            if not current:
                logger.warning(
                    f"{PASSTHROUGH.env_var}: {ENDPOINT_VAR} missing -> injecting orchestrator endpoint"
                )
                env[ENDPOINT_VAR] = self.endpoint
            elif current != self.endpoint:
                logger.warning(
                    f"{PASSTHROUGH.env_var}: {ENDPOINT_VAR} differs from orchestrator endpoint "
                    f"-> overriding to orchestrator endpoint"
                )
                env[ENDPOINT_VAR] = self.endpoint

        return env


def resolve_azure_context(environ: Optional[Mapping[str, str]] = None) -> AzureContext:
    """
    Build the Azure subscription/resource-group context from the environment.

    Raises:
        ConfigError: If AZURE_SUBSCRIPTION_ID or RESOURCE_GROUP_NAME is missing
    """
    environ = os.environ if environ is None else environ

    def require(name: str) -> str:
        value = (environ.get(name) or '').strip()
        if not value:
            raise ConfigError(f"Missing required environment variable: {name}")
        return value

    return AzureContext(
        subscription_id=require("AZURE_SUBSCRIPTION_ID"),
        resource_group=require("RESOURCE_GROUP_NAME"),
        location=(environ.get("AZURE_LOCATION") or '').strip() or "westeurope",
    )
