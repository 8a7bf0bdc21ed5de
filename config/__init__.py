"""Configuration and Azure client wiring for the VNet integration tests."""

from .azure_config import (
    AzureConfigurationProperties,
    AzureSettings,
    ConfigurationError,
    bind_azure_settings,
    bind_configuration,
    load_properties,
)
from .azure_client import (
    AZURE,
    AZURE_CHINA,
    AZURE_US_GOVERNMENT,
    AzureEnvironment,
    AzureProfile,
    AzureResourceManager,
    build_resource_manager,
)

__all__ = [
    "AzureConfigurationProperties",
    "AzureSettings",
    "ConfigurationError",
    "bind_azure_settings",
    "bind_configuration",
    "load_properties",
    "AZURE",
    "AZURE_CHINA",
    "AZURE_US_GOVERNMENT",
    "AzureEnvironment",
    "AzureProfile",
    "AzureResourceManager",
    "build_resource_manager",
]
