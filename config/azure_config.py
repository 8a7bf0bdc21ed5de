"""
Integration-test configuration.
Values come from an application.properties file and the environment.

Keys consumed:
  azure.config.resourceGroupName      → resource_group_name
  azure.config.vnetName               → vnet_name
  azure.config.vnetAddressSpace       → vnet_address_space
  azure.config.subnets.<name>         → subnets[<name>]
  azure.config.importantIpAddress     → important_ip_address
  azure.tenant / azure.subscription   → AzureSettings (required)

The file uses .env syntax with dotted keys (python-dotenv's parser, no
`${VAR}` expansion): `key=value` only, `#` starts a comment, and values
containing ` #` or surrounding whitespace must be quoted. Lines the parser
rejects (e.g. `key: value`) raise ConfigurationError.

Environment variables override the file using relaxed names:
  azure.config.vnetName  → AZURE_CONFIG_VNETNAME
  azure.config.subnets.app → AZURE_CONFIG_SUBNETS_APP
Subnet names from the environment match file keys case-insensitively, so
AZURE_CONFIG_SUBNETS_SUBNET1 replaces azure.config.subnets.Subnet1. A new
subnet introduced only through the environment is named in lower case.

Missing azure.config.* keys bind to empty values. Missing tenant or
subscription raise ConfigurationError before any Azure client exists.
"""
from __future__ import annotations

import ipaddress
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from dotenv.parser import parse_stream

logger = logging.getLogger(__name__)

CONFIG_PREFIX       = "azure.config"
SUBNETS_PREFIX      = f"{CONFIG_PREFIX}.subnets"
TENANT_KEY          = "azure.tenant"
SUBSCRIPTION_KEY    = "azure.subscription"

# camelCase key → dataclass field
_SCALAR_FIELDS = {
    "resourceGroupName":  "resource_group_name",
    "vnetName":           "vnet_name",
    "vnetAddressSpace":   "vnet_address_space",
    "importantIpAddress": "important_ip_address",
}


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _canonical(name: str) -> str:
    """Relaxed-binding form of a property name: vnet-name == vnetName == VNETNAME."""
    return name.replace("-", "").replace("_", "").lower()


def _env_name(key: str) -> str:
    return key.replace(".", "_").replace("-", "").upper()


def _is_subnet_entry(dotted: str) -> bool:
    """True for azure.config.subnets.<name>, whose value is a leaf whatever its type."""
    prefix = CONFIG_PREFIX + "."
    if not dotted.startswith(prefix):
        return False
    head, _, rest = dotted[len(prefix):].partition(".")
    return _canonical(head) == "subnets" and bool(rest)


def _flatten(source: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested mappings into dotted keys, leaving leaf values untouched.
    Subnet entries are never descended into, so a mapping there stays a
    (malformed) value instead of turning into a new subnet name.
    """
    flat: Dict[str, Any] = {}
    for key, value in source.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and not _is_subnet_entry(dotted):
            nested = _flatten(value, dotted)
            if nested:
                flat.update(nested)
            else:
                flat[dotted] = value
        else:
            flat[dotted] = value
    return flat


def load_properties(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Load dotted configuration keys from a .env-syntax file and the environment.

    Values are taken as python-dotenv parses them, without `${VAR}`
    expansion. Environment variables take precedence over the file.
    """
    environ = os.environ if environ is None else environ
    properties: Dict[str, str] = {}

    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
        with open(path, encoding="utf-8") as stream:
            for binding in parse_stream(stream):
                if binding.error:
                    raise ConfigurationError(
                        f"{path}:{binding.original.line}: cannot parse "
                        f"{binding.original.string.strip()!r} (expected key=value)"
                    )
                if binding.key is None:
                    continue
                properties[binding.key] = "" if binding.value is None else binding.value
        logger.debug("Loaded %d properties from %s", len(properties), path)

    keys = [TENANT_KEY, SUBSCRIPTION_KEY]
    keys.extend(f"{CONFIG_PREFIX}.{name}" for name in _SCALAR_FIELDS)
    for key in keys:
        env_var = _env_name(key)
        if env_var in environ:
            properties[key] = environ[env_var]

    subnet_keys = {key.lower(): key for key in properties
                   if key.startswith(SUBNETS_PREFIX + ".")}
    subnet_env_prefix = _env_name(SUBNETS_PREFIX) + "_"
    for env_var, value in environ.items():
        if env_var.startswith(subnet_env_prefix) and len(env_var) > len(subnet_env_prefix):
            name = env_var[len(subnet_env_prefix):].lower()
            key = f"{SUBNETS_PREFIX}.{name}"
            properties[subnet_keys.get(key, key)] = value

    return properties


@dataclass(frozen=True)
class AzureConfigurationProperties:
    # ── Terraform-provisioned network under test ────────────────────────────
    resource_group_name:  str = ""
    vnet_name:            str = ""
    vnet_address_space:   str = ""
    subnets:              Dict[str, str] = field(default_factory=dict)
    important_ip_address: str = ""

    def check_addresses(self) -> None:
        """
        Strict address check, opt-in. Binding itself never validates.

        The address space and every subnet must be CIDR networks, subnets
        must sit inside the address space without overlapping each other,
        and the important IP must be a plain address.
        """
        problems: List[str] = []

        vnet = None
        try:
            vnet = ipaddress.ip_network(self.vnet_address_space)
        except ValueError:
            problems.append(f"vnetAddressSpace is not a CIDR network: {self.vnet_address_space!r}")

        parsed = {}
        for name, cidr in sorted(self.subnets.items()):
            try:
                subnet = ipaddress.ip_network(cidr)
            except ValueError:
                problems.append(f"subnet {name!r} is not a CIDR network: {cidr!r}")
                continue
            if vnet is not None and (subnet.version != vnet.version or not subnet.subnet_of(vnet)):
                problems.append(f"subnet {name!r} ({cidr}) is outside {vnet}")
            for other_name, other in parsed.items():
                if subnet.version == other.version and subnet.overlaps(other):
                    problems.append(f"subnets {other_name!r} and {name!r} overlap")
            parsed[name] = subnet

        try:
            ipaddress.ip_address(self.important_ip_address)
        except ValueError:
            problems.append(f"importantIpAddress is not an IP address: {self.important_ip_address!r}")

        if problems:
            raise ConfigurationError("Invalid network configuration: " + "; ".join(problems))


@dataclass(frozen=True)
class AzureSettings:
    tenant_id:       str
    subscription_id: str


def bind_configuration(source: Mapping[str, Any]) -> AzureConfigurationProperties:
    """
    Bind every azure.config.* entry of `source` onto AzureConfigurationProperties.

    `source` may hold dotted keys (as loaded from a properties file) or
    nested mappings (as loaded from a YAML document). Values are copied
    verbatim.
    """
    flat = _flatten(source)
    scalar_lookup = {_canonical(name): attr for name, attr in _SCALAR_FIELDS.items()}

    values: Dict[str, Any] = {}
    subnets: Dict[str, str] = {}
    prefix = CONFIG_PREFIX + "."
    for key, value in flat.items():
        if not key.startswith(prefix):
            continue
        name = key[len(prefix):]
        head, _, rest = name.partition(".")

        if _canonical(head) == "subnets":
            if not rest:
                # An empty mapping flattens to the bare key; anything else is malformed.
                if isinstance(value, Mapping) and not value:
                    continue
                raise ConfigurationError(
                    f"{SUBNETS_PREFIX} must be a mapping of subnet name to CIDR, got {value!r}"
                )
            if not isinstance(value, str):
                raise ConfigurationError(
                    f"{SUBNETS_PREFIX}.{rest} must be a string, got {type(value).__name__}"
                )
            subnets[rest] = value
            continue

        attr = scalar_lookup.get(_canonical(name))
        if attr is None:
            logger.debug("Ignoring unknown configuration key %s", key)
            continue
        if not isinstance(value, str):
            raise ConfigurationError(f"{key} must be a string, got {type(value).__name__}")
        values[attr] = value

    properties = AzureConfigurationProperties(subnets=subnets, **values)
    logger.info(
        "Bound %s: resource group=%s vnet=%s subnets=%d",
        CONFIG_PREFIX, properties.resource_group_name or "-",
        properties.vnet_name or "-", len(properties.subnets),
    )
    return properties


def bind_azure_settings(source: Mapping[str, Any]) -> AzureSettings:
    """Read azure.tenant and azure.subscription; both must be non-blank strings."""
    flat = _flatten(source)
    missing = []
    values = {}
    for key in (TENANT_KEY, SUBSCRIPTION_KEY):
        value = flat.get(key)
        if not isinstance(value, str) or not value.strip():
            missing.append(key)
        else:
            values[key] = value
    if missing:
        raise ConfigurationError(
            f"Missing Azure configuration: {missing}. "
            "Set them in application.properties or as "
            f"{', '.join(_env_name(k) for k in missing)}."
        )
    return AzureSettings(tenant_id=values[TENANT_KEY], subscription_id=values[SUBSCRIPTION_KEY])
