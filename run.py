#!/usr/bin/env python3
"""
Bind the integration-test configuration and authenticate against Azure.

Usage:
  python run.py                                  # env vars + .env only
  python run.py --config application.properties  # plus a key=value file
  python run.py --check-addresses --check-auth   # strict checks
"""
import argparse
import logging
import sys

# Load .env before anything else
from dotenv import load_dotenv
load_dotenv(override=False)  # override=False: real env vars take precedence

from azure.core.exceptions import ClientAuthenticationError

from config.azure_config import ConfigurationError
from harness.context import HarnessContext, build_context

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

for lib in ("azure", "urllib3"):
    logging.getLogger(lib).setLevel(logging.WARNING)


def print_summary(ctx: HarnessContext) -> None:
    props = ctx.properties
    print("Azure integration-test configuration")
    print(f"   Resource group : {props.resource_group_name}")
    print(f"   VNet           : {props.vnet_name} ({props.vnet_address_space})")
    for name, cidr in sorted(props.subnets.items()):
        print(f"   Subnet         : {name} = {cidr}")
    print(f"   Important IP   : {props.important_ip_address}")
    print(f"   ARM            : {ctx.resource_manager!r}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Azure VNet integration-test harness")
    parser.add_argument("--config", metavar="PATH",
                        help="application.properties file (.env syntax, dotted keys)")
    parser.add_argument("--check-addresses", action="store_true",
                        help="Validate address space, subnets and important IP")
    parser.add_argument("--check-auth", action="store_true",
                        help="Request a management token now")
    args = parser.parse_args(argv)

    try:
        ctx = build_context(args.config)
        print_summary(ctx)
        if args.check_addresses:
            ctx.properties.check_addresses()
            print("   Addresses OK")
        if args.check_auth:
            ctx.resource_manager.check_credentials()
            print("   Credential OK")
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except ClientAuthenticationError as e:
        logger.error("Azure authentication failed: %s", e.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
