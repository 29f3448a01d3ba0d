"""Configuration sources and resolution."""

from .providers import ConfigProvider, YamlConfigProvider, AppConfigProvider
from .resolver import ConfigResolver, parse_bool, resolve_azure_context

__all__ = [
    'ConfigProvider',
    'YamlConfigProvider',
    'AppConfigProvider',
    'ConfigResolver',
    'parse_bool',
    'resolve_azure_context',
]
