"""Marketplace management CLI.

Creates and drops the database schema and runs the periodic maintenance
passes that an external scheduler would otherwise trigger over HTTP.

Usage:
    python src/manage.py setup-db              # Create all tables
    python src/manage.py drop-db               # Drop all tables
    python src/manage.py sweep-carts           # Expire idle carts, unstick checkouts
    python src/manage.py archive-past-units    # Archive inventory units whose date has passed
"""

import argparse
import sys


def setup_database():
    """Create the database schema for the marketplace domain."""
    from marketplace.domain import marketplace
    from marketplace.utils.db import setup_db

    print("Initializing marketplace domain...")
    marketplace.init()
    print("Creating marketplace database schema...")
    setup_db(marketplace)
    print("Done.")


def drop_database():
    """Drop the database schema for the marketplace domain."""
    from marketplace.domain import marketplace
    from marketplace.utils.db import drop_db

    print("Initializing marketplace domain...")
    marketplace.init()
    print("Dropping marketplace database schema...")
    drop_db(marketplace)
    print("Done.")


def sweep_carts(idle_minutes=None, stuck_minutes=None):
    """Run one cart maintenance pass and report what changed."""
    from marketplace.cart.sweep import SweepCarts
    from marketplace.domain import marketplace
    from marketplace.utils.logging import configure_logging

    configure_logging()
    marketplace.init()
    with marketplace.domain_context():
        result = marketplace.process(
            SweepCarts(idle_minutes=idle_minutes, stuck_minutes=stuck_minutes),
            asynchronous=False,
        )
    print(f"Expired {result['expired']} idle cart(s), released {result['released']} stuck checkout(s).")


def archive_past_units():
    """Archive published inventory units dated before today."""
    from marketplace.domain import marketplace
    from marketplace.inventory.expiry import ArchivePastInventoryUnits
    from marketplace.utils.logging import configure_logging

    configure_logging()
    marketplace.init()
    with marketplace.domain_context():
        archived = marketplace.process(ArchivePastInventoryUnits(), asynchronous=False)
    print(f"Archived {archived} inventory unit(s).")


def main():
    parser = argparse.ArgumentParser(description="Marketplace management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sweep_parser = subparsers.add_parser("sweep-carts", help="Expire idle carts and release stuck checkouts")
    sweep_parser.add_argument("--idle-minutes", type=int, help="Idle window (default: CART_IDLE_MINUTES)")
    sweep_parser.add_argument("--stuck-minutes", type=int, help="Stuck checkout window (default: STUCK_CHECKOUT_MINUTES)")

    subparsers.add_parser("archive-past-units", help="Archive inventory units whose date has passed")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep-carts":
        sweep_carts(args.idle_minutes, args.stuck_minutes)
    elif args.command == "archive-past-units":
        archive_past_units()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
