#!/usr/bin/env python3
"""
Approve (or revoke approval of) a professor / organization account.

Approval is granted out-of-band after checking the uploaded verification
document. Unapproved accounts cannot post opportunities or review
applications.

Usage:
    python scripts/approve_professor.py 42
    python scripts/approve_professor.py 42 --revoke
"""
import argparse
import sys
sys.path.insert(0, '.')

from marketplace.core.errors import NotFound
from marketplace.core.logging import setup_logging
from marketplace.db.session import get_db_session
from marketplace.services.account_service import approve_professor


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Approve a professor/organization profile")
    parser.add_argument("professor_id", type=int)
    parser.add_argument("--revoke", action="store_true", help="Withdraw approval instead")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        with get_db_session() as db:
            approve_professor(db, args.professor_id, approved=not args.revoke)
    except NotFound as e:
        print(f"❌ {e}")
        return 1

    state = "revoked" if args.revoke else "granted"
    print(f"✅ Approval {state} for professor {args.professor_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
