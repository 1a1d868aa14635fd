"""Run one scheduled scan, for hosts that drive scans from cron."""

import asyncio
import json

from taskrules.core.logging import setup_logging
from taskrules.services import get_services
from taskrules.storage.redis_client import close_redis_pool, init_redis_pool


async def main() -> None:
    setup_logging("scan")
    await init_redis_pool()
    try:
        report = await get_services().scanner.run_scheduled_scan()
        print(json.dumps(report.to_dict(), indent=2))
    finally:
        await close_redis_pool()


if __name__ == "__main__":
    asyncio.run(main())
