#!/usr/bin/env python3
"""
Remove accounts that never confirmed (never signed in) and are older than
UNCONFIRMED_ACCOUNT_TTL_HOURS (24 by default), with their profiles.

Meant for cron, e.g. hourly:
    0 * * * * cd /srv/marketplace && python scripts/cleanup_unconfirmed.py
"""
import sys
sys.path.insert(0, '.')

from marketplace.core.logging import setup_logging
from marketplace.db.session import get_db_session
from marketplace.services.account_service import cleanup_unconfirmed_accounts


def main() -> int:
    setup_logging()
    with get_db_session() as db:
        removed = cleanup_unconfirmed_accounts(db)
    print(f"✅ Removed {removed} unconfirmed account(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
