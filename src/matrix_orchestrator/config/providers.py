"""
Primary configuration sources.

A provider answers `get(key)` with a string or None when the key is absent.
Providers may raise on transport problems; the resolver treats any exception
as "source unavailable" and falls through to the environment.

Keys are hierarchical and colon-separated, e.g. "TestMatrix:Environments".
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)


class ConfigProvider(ABC):
    """
    Abstract base class for key-value configuration sources.

    Subclasses must implement the get() method.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Look up a single setting.

        Args:
            key: Colon-separated setting name (e.g. "Container:Image")

        Returns:
            The setting value, or None if the source has no such key
        """
        pass

    def describe(self) -> str:
        return type(self).__name__


def _stringify(value: Any) -> Optional[str]:
    """Convert a YAML value into the string form the resolver expects."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


class YamlConfigProvider(ConfigProvider):
    """
    Reads settings from a local YAML file.

    Example file:
        TestMatrix:
          Environments: [qa, prod]
          Platforms: web,mobile
        Container:
          Image: myregistry.azurecr.io/runner:1.4.2
          MemoryGB: 1.5
        Runner:
          EnvPassthrough:
            PW_WORKERS: "5"

    "TestMatrix:Environments" resolves to data["TestMatrix"]["Environments"];
    a top-level key spelled "TestMatrix:Environments" also matches.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Config file not found: {self.path}")

        with open(self.path, 'r') as f:
            data = yaml.safe_load(f)

        self._data: Dict[str, Any] = data if isinstance(data, dict) else {}

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'YamlConfigProvider':
        return cls(path)

    def get(self, key: str) -> Optional[str]:
        if key in self._data:
            return _stringify(self._data[key])

        node: Any = self._data
        for part in key.split(':'):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return _stringify(node)

    def describe(self) -> str:
        return f"YAML file {self.path}"


class AppConfigProvider(ConfigProvider):
    """
    Reads settings from Azure App Configuration.

    Authentication uses DefaultAzureCredential (managed identity, workload
    identity or environment credentials) unless a credential is passed in.
    """

    def __init__(self, endpoint: str, credential: Any = None, label: Optional[str] = None):
        try:
            from azure.appconfiguration import AzureAppConfigurationClient
        except ImportError:
            raise ImportError(
                "azure-appconfiguration is not installed. "
                "Install with: pip install 'matrix-orchestrator[azure]'"
            )

        if credential is None:
            from azure.identity import DefaultAzureCredential
            credential = DefaultAzureCredential()

        self.endpoint = endpoint
        self.label = label
        self._client = AzureAppConfigurationClient(endpoint, credential)

    def get(self, key: str) -> Optional[str]:
        from azure.core.exceptions import ResourceNotFoundError

        try:
            setting = self._client.get_configuration_setting(key=key, label=self.label)
        except ResourceNotFoundError:
            return None
        return setting.value

    def describe(self) -> str:
        return f"App Configuration {self.endpoint}"
