#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the database and storage are usable.
Usage: python scripts/check_connections.py [--init]
"""
import sys
from pathlib import Path
sys.path.insert(0, '.')

from marketplace.core.config import get_settings
from marketplace.db.session import check_db_connection, init_db


def main():
    settings = get_settings()
    print("=" * 50)
    print("OPPORTUNITY MARKETPLACE - CONNECTION CHECK")
    print("=" * 50)

    # Database
    print("\n[1] Checking database...")
    print(f"    URL: {settings.database_url.split('@')[-1]}")
    if check_db_connection():
        print("    ✅ Database: CONNECTED")
        if "--init" in sys.argv:
            init_db()
            print("    ✅ Schema: CREATED")
    else:
        print("    ❌ Database: FAILED")

    # Storage
    print("\n[2] Checking file storage...")
    storage = Path(settings.storage_dir)
    try:
        storage.mkdir(parents=True, exist_ok=True)
        print(f"    ✅ Storage: {storage.resolve()} (served at {settings.storage_public_url})")
    except OSError as e:
        print(f"    ❌ Storage: {e}")

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
