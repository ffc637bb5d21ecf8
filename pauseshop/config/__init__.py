"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    BackendConfig,
    ContainerPattern,
    DetectorConfig,
    ExtractionPatterns,
    GlobalConfig,
    ProviderConfig,
    ServerEnvironment,
    amazon_patterns,
    default_providers,
    google_patterns,
)

__all__ = [
    "BackendConfig",
    "ConfigLocator",
    "ConfigRepository",
    "ContainerPattern",
    "DetectorConfig",
    "ExtractionPatterns",
    "GlobalConfig",
    "ProviderConfig",
    "ServerEnvironment",
    "amazon_patterns",
    "default_providers",
    "google_patterns",
]
