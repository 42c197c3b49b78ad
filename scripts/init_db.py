#!/usr/bin/env python3
"""
Initialize the SellerFlow database.
Creates the seller account and payout tables.
"""

import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from sellerflow.config import settings
from sellerflow.database import init_db


def main():
    print("Initializing database...")
    print(f"  DATABASE_URL: {settings.DATABASE_URL[:40]}...")
    print(f"  Environment: {settings.ENVIRONMENT}")

    init_db()

    print("Database initialized successfully.")
    print("Tables created: seller_accounts, amazon_payouts.")


if __name__ == "__main__":
    main()
