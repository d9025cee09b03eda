"""Storefront database management CLI.

Usage:
    python -m storefront.manage setup-db   # Create all tables
    python -m storefront.manage drop-db    # Drop all tables
    python -m storefront.manage detect     # Report how checkout units of work will run
"""

import argparse
import sys


def setup_database():
    from storefront.domain import storefront
    from storefront.utils.db import setup_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Creating storefront database schema...")
    for table in setup_db(storefront):
        print(f"  {table}")
    print("Done.")


def drop_database():
    from storefront.domain import storefront
    from storefront.utils.db import drop_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Dropping storefront database schema...")
    drop_db(storefront)
    print("Done.")


def detect():
    from storefront.checkout.unit_of_work import detect_transaction_support
    from storefront.config import CheckoutSettings
    from storefront.domain import storefront

    storefront.init()
    capability = detect_transaction_support(storefront, CheckoutSettings.from_env())
    print(f"Checkout mode: {capability.value}")


def main():
    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("detect", help="Report whether checkout runs transactionally")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "detect":
        detect()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
