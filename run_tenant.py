#!/usr/bin/env python3
"""
Multi-tenant startup script.

This script runs the storefront API for a specific tenant or lists the
available tenants.

Usage:
    # List available tenants
    python run_tenant.py --list

    # Run for a specific tenant
    python run_tenant.py zuckers

    # Run with custom port
    python run_tenant.py zuckers --port 8001

    # Run with reload for development
    python run_tenant.py zuckers --reload
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv


def load_manager(config_path: str):
    """Load the tenant manager from a JSON file, or exit if it is missing."""
    from storefront.tenant import TenantManager

    if not Path(config_path).exists():
        print(f"Error: Tenant config not found: {config_path}")
        sys.exit(1)
    return TenantManager.from_json(config_path)


def list_tenants(manager) -> None:
    """Print available tenants with their fee settings."""
    print("\nAvailable tenants:")
    print("-" * 50)

    for slug in manager.list_tenants():
        tenant = manager.get_tenant(slug)
        fees = tenant.fee_config
        default_marker = " (default)" if slug == manager.default_tenant else ""
        print(f"  {slug}{default_marker}")
        print(f"    Name:         {tenant.name}")
        print(f"    Port:         {tenant.port}")
        print(f"    Tax rate:     {fees.tax_rate:.4f}")
        print(f"    Platform fee: {fees.platform_fee_rate:.4f}")
        print(f"    Zones:        {len(fees.delivery_zones)}")
        print()


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Run the storefront API for a specific tenant"
    )
    parser.add_argument(
        "tenant",
        nargs="?",
        help="Tenant slug to run (e.g., 'zuckers')",
    )
    parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List available tenants",
    )
    parser.add_argument(
        "--config",
        "-c",
        default="tenants.json",
        help="Path to tenant configuration file (default: tenants.json)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="Port to run on (overrides tenant config)",
    )
    parser.add_argument(
        "--reload",
        "-r",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    manager = load_manager(args.config)

    if args.list:
        list_tenants(manager)
        return

    tenant_slug = args.tenant or manager.default_tenant
    if not tenant_slug:
        print("Error: No tenant specified and no default configured")
        print("Use --list to see available tenants")
        sys.exit(1)
    if not manager.get_tenant(tenant_slug):
        print(f"Error: Unknown tenant '{tenant_slug}'")
        print("Use --list to see available tenants")
        sys.exit(1)

    from storefront.app_factory import run_tenant
    from storefront.logging_config import setup_logging
    from storefront.tenant import set_tenant_manager

    setup_logging()
    set_tenant_manager(manager)

    run_tenant(
        tenant_slug,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
