import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from .coordinator import RoomCoordinator
from .errors import StoreFailure
from .gateway import PersistenceGateway
from .schemas import CleanupResult
from .settings import RetentionConfig
from .validation import PERMANENT_ROOMS, is_permanent_room

logger = logging.getLogger(__name__)


def seconds_until_hour(now: datetime, hour: int) -> float:
    """Seconds from ``now`` to the next ``hour``:00 local boundary (strictly in the future)."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


def seconds_until_next_hour(now: datetime) -> float:
    target = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return (target - now).total_seconds()


class RetentionScheduler:
    def __init__(
        self,
        gateway: PersistenceGateway,
        coordinator: Optional[RoomCoordinator],
        config: Optional[RetentionConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.coordinator = coordinator
        self.config = config or RetentionConfig()
        self.clock = clock
        self._shutdown_event: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task] = []

    async def run_permanent_sweep(self, max_age_days: Optional[int] = None) -> CleanupResult:
        days = self.config.permanent_max_age_days if max_age_days is None else max_age_days
        max_age = timedelta(days=days)
        deleted = 0
        rooms = sorted(PERMANENT_ROOMS, key=int)
        for room in rooms:
            deleted += await self.gateway.purge_older_than(max_age, room=room)
        logger.info(f"Permanent room sweep: deleted {deleted} messages older than {days} days")
        return CleanupResult(deleted_messages=deleted, rooms=rooms)

    async def run_temporary_sweep(self) -> CleanupResult:
        # Rooms that become active after this snapshot may still be purged
        active = set(self.coordinator.active_rooms())
        summaries = await self.gateway.list_rooms_with_message_counts()
        deleted = 0
        purged = []
        for summary in summaries:
            if is_permanent_room(summary.room) or summary.room in active:
                continue
            deleted += await self.gateway.purge_all_messages(summary.room)
            purged.append(summary.room)
        logger.info(f"Temporary room sweep: deleted {deleted} messages from {len(purged)} inactive rooms")
        return CleanupResult(deleted_messages=deleted, rooms=purged)

    async def run_reaper(self) -> int:
        evicted = await self.coordinator.reap_orphans()
        if evicted:
            logger.info(f"Reaper evicted {len(evicted)} orphaned sessions")
        return len(evicted)

    def start(self) -> None:
        """Schedule the three loops on the running event loop."""
        if self._tasks:
            return
        self._shutdown_event = asyncio.Event()
        hour = self.config.permanent_sweep_hour
        self._tasks = [
            asyncio.create_task(
                self._loop("permanent sweep", lambda: seconds_until_hour(self.clock(), hour), self.run_permanent_sweep)
            ),
            asyncio.create_task(
                self._loop("temporary sweep", lambda: seconds_until_next_hour(self.clock()), self.run_temporary_sweep)
            ),
            asyncio.create_task(
                self._loop("reaper", lambda: self.config.reaper_interval_seconds, self.run_reaper)
            ),
        ]
        logger.info(
            f"Retention scheduled: permanent sweep daily at {hour:02d}:00, "
            f"temporary sweep hourly, reaper every {self.config.reaper_interval_seconds}s"
        )

    async def stop(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._shutdown_event = None

    async def _loop(self, name: str, delay: Callable[[], float], job: Callable[[], Awaitable]) -> None:
        shutdown = self._shutdown_event
        while not shutdown.is_set():
            try:
                # Wait for the next boundary or the shutdown signal
                await asyncio.wait_for(shutdown.wait(), timeout=delay())
                break
            except asyncio.TimeoutError:
                pass

            try:
                await job()
            except StoreFailure as e:
                logger.error(f"Retention {name} failed: {e}")
            except Exception:
                # Keep the loop alive
                logger.exception(f"Retention {name} crashed")
