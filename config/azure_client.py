"""
Authenticated Azure Resource Manager handle for the integration tests.

Auth: DefaultAzureCredential pinned to the profile's authority host. The
chain (environment → workload identity → managed identity → Azure CLI …)
is resolved by azure-identity on first token request, so a missing
identity shows up either in check_credentials() or on the first ARM call.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from azure.identity import AzureAuthorityHosts, DefaultAzureCredential
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient

from config.azure_config import ConfigurationError

logger = logging.getLogger(__name__)
logging.getLogger("azure").setLevel(logging.WARNING)


@dataclass(frozen=True)
class AzureEnvironment:
    name:                      str
    active_directory_endpoint: str
    resource_manager_endpoint: str

    @property
    def management_scope(self) -> str:
        return self.resource_manager_endpoint.rstrip("/") + "/.default"


AZURE = AzureEnvironment(
    name="AzureCloud",
    active_directory_endpoint=AzureAuthorityHosts.AZURE_PUBLIC_CLOUD,
    resource_manager_endpoint="https://management.azure.com/",
)
AZURE_CHINA = AzureEnvironment(
    name="AzureChinaCloud",
    active_directory_endpoint=AzureAuthorityHosts.AZURE_CHINA,
    resource_manager_endpoint="https://management.chinacloudapi.cn/",
)
AZURE_US_GOVERNMENT = AzureEnvironment(
    name="AzureUSGovernment",
    active_directory_endpoint=AzureAuthorityHosts.AZURE_GOVERNMENT,
    resource_manager_endpoint="https://management.usgovcloudapi.net/",
)


def _mask(value: str, show_chars: int = 4) -> str:
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...{value[-show_chars:]}"


@dataclass(frozen=True)
class AzureProfile:
    tenant_id:       str
    subscription_id: str
    environment:     AzureEnvironment = AZURE

    @property
    def authority_host(self) -> str:
        return self.environment.active_directory_endpoint


class AzureResourceManager:
    """
    Subscription-scoped access to Azure Resource Manager.

    Management clients are created once, on first access, under a lock and
    reused afterwards; the handle can be shared between threads.
    """

    def __init__(self, credential, profile: AzureProfile) -> None:
        self._credential = credential
        self._profile    = profile
        self._lock       = threading.Lock()
        self._resources: Optional[ResourceManagementClient] = None
        self._network:   Optional[NetworkManagementClient]  = None

    @property
    def credential(self):
        return self._credential

    @property
    def profile(self) -> AzureProfile:
        return self._profile

    @property
    def tenant_id(self) -> str:
        return self._profile.tenant_id

    @property
    def subscription_id(self) -> str:
        return self._profile.subscription_id

    def _client_kwargs(self) -> dict:
        env = self._profile.environment
        return {
            "base_url": env.resource_manager_endpoint,
            "credential_scopes": [env.management_scope],
        }

    @property
    def resources(self) -> ResourceManagementClient:
        with self._lock:
            if self._resources is None:
                self._resources = ResourceManagementClient(
                    self._credential, self.subscription_id, **self._client_kwargs()
                )
            return self._resources

    @property
    def network(self) -> NetworkManagementClient:
        with self._lock:
            if self._network is None:
                self._network = NetworkManagementClient(
                    self._credential, self.subscription_id, **self._client_kwargs()
                )
            return self._network

    def check_credentials(self) -> None:
        """
        Request a management-scope token now instead of on the first ARM call.
        ClientAuthenticationError from the credential chain propagates.
        """
        self._credential.get_token(self._profile.environment.management_scope)
        logger.info("Azure credential resolved for tenant %s", _mask(self.tenant_id))

    def close(self) -> None:
        with self._lock:
            clients = (self._resources, self._network)
            self._resources = None
            self._network   = None
        for client in clients:
            if client is not None:
                client.close()
        close = getattr(self._credential, "close", None)
        if close is not None:
            close()

    def __repr__(self) -> str:
        return (
            f"AzureResourceManager(environment={self._profile.environment.name!r}, "
            f"subscription={_mask(self.subscription_id)!r})"
        )


def build_resource_manager(
    tenant: str,
    subscription: str,
    environment: AzureEnvironment = AZURE,
    credential=None,
) -> AzureResourceManager:
    """
    Authenticate against Azure Resource Manager for one subscription.

    Builds the profile from tenant + subscription + environment, derives
    the authority host from it and creates a DefaultAzureCredential for that
    authority unless `credential` is given.
    """
    missing = [name for name, value in (("azure.tenant", tenant), ("azure.subscription", subscription))
               if not value or not value.strip()]
    if missing:
        raise ConfigurationError(f"Missing Azure configuration: {missing}")

    profile = AzureProfile(tenant_id=tenant, subscription_id=subscription, environment=environment)
    if credential is None:
        credential = DefaultAzureCredential(authority=profile.authority_host)

    logger.info(
        "Azure Resource Manager: %s tenant=%s subscription=%s",
        environment.name, _mask(tenant), _mask(subscription),
    )
    return AzureResourceManager(credential, profile)
