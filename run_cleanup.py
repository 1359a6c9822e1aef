import asyncio
import logging
import sys
from typing import Optional

from roomchat.database import AsyncSessionLocal, engine
from roomchat.errors import StoreFailure
from roomchat.gateway import PersistenceGateway
from roomchat.scheduler import RetentionScheduler
from roomchat.settings import settings

# Only the age-based permanent-room sweep runs offline. Purging inactive
# temporary rooms needs the live room directory: POST /api/admin/cleanup/temporary

async def run_cleanup_script(gateway: PersistenceGateway, days: Optional[int] = None) -> int:
    scheduler = RetentionScheduler(gateway, coordinator=None, config=settings.retention_config())
    try:
        result = await scheduler.run_permanent_sweep(max_age_days=days)
    except StoreFailure as e:
        print(f"Cleanup failed: {e}")
        return 1
    print(f"Permanent rooms: deleted {result.deleted_messages} messages")
    return 0

async def main(days: Optional[int] = None) -> int:
    async with PersistenceGateway(AsyncSessionLocal, engine) as gateway:
        await gateway.create_tables()
        return await run_cleanup_script(gateway, days)

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    try:
        days = int(sys.argv[1]) if len(sys.argv) > 1 else None
    except ValueError:
        days = 0
    if days is not None and days < 1:
        print("usage: python run_cleanup.py [days]")
        sys.exit(2)
    sys.exit(asyncio.run(main(days)))
