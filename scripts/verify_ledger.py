"""
Ledger consistency check.

Replays every account's movements from zero against the configured
database and reports accounts whose stored balance disagrees.
Exit code 1 when any account is inconsistent or the database is unreachable.
"""

import asyncio
import sys
from dotenv import load_dotenv

# Load env vars before settings are imported
load_dotenv("backend/.env")

from sqlalchemy import select

from backend.app.core.tenancy import TenantContext
from backend.app.core.dependencies import build_services
from backend.app.db.session import AsyncSessionLocal, engine
from backend.app.models.account import Account


async def check_ledger() -> int:
    services = build_services()
    broken = 0
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Account.organization_id, Account.id).order_by(Account.organization_id, Account.id))
        rows = result.all()
        print(f"Replaying {len(rows)} accounts")
        for organization_id, account_id in rows:
            report = await services.movements.verify(db, TenantContext(organization_id=organization_id), account_id)
            if not report.is_consistent:
                broken += 1
                print(
                    f"❌ org={organization_id} account={account_id} stored={report.stored_balance} "
                    f"replayed={report.replayed_balance} first_broken={report.first_broken_movement_id}"
                )
    await engine.dispose()
    if broken:
        print(f"❌ {broken} inconsistent account(s)")
        return 1
    print("✅ All balances match their movements")
    return 0


async def main() -> int:
    try:
        return await check_ledger()
    except OSError as e:
        print(f"❌ Connection Failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
