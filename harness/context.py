"""
Harness context, harness/context.py

Built once at process entry and passed to test code explicitly:

  properties        : network layout the tests expect (azure.config.*)
  settings          : tenant + subscription (azure.tenant, azure.subscription)
  resource_manager  : authenticated ARM handle scoped to the subscription

Nothing here is cached at module level. Call build_context() again to get a
fresh context, e.g. after changing the environment in a test.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from config.azure_client import AZURE, AzureEnvironment, AzureResourceManager, build_resource_manager
from config.azure_config import (
    AzureConfigurationProperties,
    AzureSettings,
    bind_azure_settings,
    bind_configuration,
    load_properties,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HarnessContext:
    properties:       AzureConfigurationProperties
    settings:         AzureSettings
    resource_manager: AzureResourceManager

    def close(self) -> None:
        self.resource_manager.close()


def build_context(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    credential=None,
    environment: AzureEnvironment = AZURE,
) -> HarnessContext:
    """
    Load configuration once, bind it, and authenticate.

    Configuration errors are raised before any credential is created.
    """
    source = load_properties(path, environ)

    properties = bind_configuration(source)
    settings = bind_azure_settings(source)

    resource_manager = build_resource_manager(
        settings.tenant_id,
        settings.subscription_id,
        environment=environment,
        credential=credential,
    )
    logger.info("Harness context ready: %r", resource_manager)
    return HarnessContext(properties=properties, settings=settings, resource_manager=resource_manager)
