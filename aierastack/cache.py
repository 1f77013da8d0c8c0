"""Stale-while-revalidate coordination between the store and the fetch pipeline."""
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Set, Tuple

from aierastack.errors import RepositoryNotFoundError, UpstreamError
from aierastack.fetcher import RepoFetcher
from aierastack.records import CachedRepoData
from aierastack.signals import RepoIdentity
from aierastack.store import RepoStore
from common.logging import LoggingManager

logger = LoggingManager.get_logger('app.cache')

Scheduler = Callable[[Callable[[], None]], None]


class CacheStatus(str, Enum):
    MISS = "miss"
    FRESH = "fresh"
    STALE = "stale"


def classify(record: Optional[CachedRepoData], now: datetime, max_age: timedelta) -> CacheStatus:
    """A record exactly ``max_age`` old is still fresh."""
    if record is None:
        return CacheStatus.MISS
    fetched_at = record.fetched_at
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    if now - fetched_at <= max_age:
        return CacheStatus.FRESH
    return CacheStatus.STALE


class RepoCache:
    """Serves stored records and keeps them fresh.

    Misses are fetched synchronously. Stale hits are answered from the store
    immediately and refreshed afterwards through the caller's scheduler.
    """

    def __init__(self,
                 store: RepoStore,
                 fetcher: RepoFetcher,
                 max_age: timedelta = timedelta(hours=24),
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.store = store
        self.fetcher = fetcher
        self.max_age = max_age
        self.clock = clock
        self._in_flight: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def close(self) -> None:
        self.fetcher.close()

    def refresh(self, identity: RepoIdentity) -> CachedRepoData:
        """Fetch, score and store ``identity`` unconditionally.

        Raises:
            RepositoryNotFoundError, UpstreamError: from the fetch pipeline.
            StoreError: the record could not be written.
        """
        record = self.fetcher.fetch(identity)
        self.store.upsert(record)
        return record

    def get_or_refresh(self, identity: RepoIdentity, schedule: Optional[Scheduler] = None) -> Optional[CachedRepoData]:
        """Stored record for ``identity``, fetching it on a miss.

        Returns None when the repository does not exist or cannot be fetched.
        StoreError propagates.
        """
        existing = self.store.get_by_key(identity)
        status = classify(existing, self.clock(), self.max_age)
        logger.debug(f"Cache {status.value} for {identity.full_name}")

        if status is CacheStatus.MISS:
            try:
                return self.refresh(identity)
            except RepositoryNotFoundError:
                logger.info(f"Repository not found: {identity.full_name}")
                return None
            except UpstreamError as e:
                logger.error(f"Could not fetch {identity.full_name}: {e}")
                return None

        if status is CacheStatus.STALE:
            self._schedule_refresh(identity, schedule)
        return existing

    def _schedule_refresh(self, identity: RepoIdentity, schedule: Optional[Scheduler]) -> None:
        with self._lock:
            if identity.key in self._in_flight:
                logger.debug(f"Refresh for {identity.full_name} already in progress")
                return
            self._in_flight.add(identity.key)

        def task() -> None:
            self._background_refresh(identity)

        if schedule is None:
            task()
        else:
            try:
                schedule(task)
            except Exception:
                self._release(identity)
                raise

    def _background_refresh(self, identity: RepoIdentity) -> None:
        try:
            self.refresh(identity)
            logger.info(f"Refreshed stale record for {identity.full_name}")
        except Exception as e:
            # Runs after the response was sent; nobody is left to report to
            logger.error(f"Background refresh for {identity.full_name} failed: {e}", exc_info=True)
        finally:
            self._release(identity)

    def _release(self, identity: RepoIdentity) -> None:
        with self._lock:
            self._in_flight.discard(identity.key)
