# hatsu/sync.py
"""
Synchronization scheduler.

Each cycle:
1. Loads every local actor, ordered by id
2. Acquires each actor's feed on a bounded worker pool
3. Diffs it against the actor's last committed snapshot
4. Hands new (and, when tracking, changed) items to the publisher
5. Commits the new snapshot as the very last step

An actor failing never stops the others. A failed or cancelled actor keeps
its old snapshot, so items are re-detected on the next cycle rather than
missed; the publisher tolerates the duplicates.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from .activitypub.actor import Actor
from .config import Config
from .errors import CycleCancelled, HatsuError, NotFoundError
from .feeds.acquire import acquire
from .feeds.diff import ChangeKind, diff
from .feeds.fetch import Fetch
from .feeds.model import CanonicalFeedItem
from .store import ActorStore

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, actor: Actor, item: CanonicalFeedItem, kind: ChangeKind): ...


@dataclass
class ActorSyncResult:
    """Outcome of one actor's synchronization."""
    actor_id: str
    status: str  # "synced", "baseline", "failed", "cancelled"
    new_items: int = 0
    changed_items: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in ("synced", "baseline")


@dataclass
class CycleReport:
    """Result of one synchronization cycle, one entry per actor in id order."""
    results: List[ActorSyncResult] = field(default_factory=list)
    execution_time: float = 0.0

    @property
    def succeeded(self) -> List[ActorSyncResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[ActorSyncResult]:
        return [r for r in self.results if r.status == "failed"]

    @property
    def new_items(self) -> int:
        return sum(r.new_items for r in self.results)


class Scheduler:
    """
    Runs synchronization cycles over all local actors.

    Args:
        config: Bridge configuration (worker count, interval, change tracking)
        store: Actor, feed descriptor and snapshot storage
        publisher: Receives every item that must become an activity
        fetch: URL-to-bytes callable used for feed acquisition
    """

    def __init__(self, config: Config, store: ActorStore, publisher: Publisher, fetch: Fetch):
        self.config = config
        self.store = store
        self.publisher = publisher
        self.fetch = fetch
        self._cancel_events: Dict[str, threading.Event] = {}
        self._events_lock = threading.Lock()
        self._shutdown = threading.Event()

    def cancel(self, actor_id: str) -> None:
        """Cancel one actor's in-flight (or upcoming) sync in the current cycle."""
        with self._events_lock:
            self._cancel_events.setdefault(actor_id, threading.Event()).set()

    def shutdown(self) -> None:
        """Cancel every actor of the current cycle and stop run_forever()."""
        self._shutdown.set()
        with self._events_lock:
            for event in self._cancel_events.values():
                event.set()

    def _check_cancelled(self, actor_id: str) -> None:
        with self._events_lock:
            event = self._cancel_events.get(actor_id)
        if self._shutdown.is_set() or (event is not None and event.is_set()):
            raise CycleCancelled(f"Sync of {actor_id} cancelled")

    def run_cycle(self) -> CycleReport:
        """Synchronize every local actor once."""
        start_time = time.time()
        actors = self.store.list(local=True)
        with self._events_lock:
            for actor in actors:
                self._cancel_events.setdefault(actor.id, threading.Event())

        logger.info(f"Sync cycle started for {len(actors)} actors")
        try:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                futures = [pool.submit(self._sync_actor_safe, actor) for actor in actors]
                results = [f.result() for f in futures]
        finally:
            with self._events_lock:
                self._cancel_events.clear()

        report = CycleReport(results=results, execution_time=time.time() - start_time)
        logger.info(
            f"Sync cycle finished in {report.execution_time:.2f}s: "
            f"{len(report.succeeded)} ok, {len(report.failed)} failed, "
            f"{report.new_items} new items"
        )
        return report

    def run_forever(self, stop: Optional[threading.Event] = None) -> None:
        """Run cycles every sync_interval seconds until stopped."""
        stop = stop or self._shutdown
        while not stop.is_set() and not self._shutdown.is_set():
            self.run_cycle()
            stop.wait(self.config.sync_interval)

    def _sync_actor_safe(self, actor: Actor) -> ActorSyncResult:
        try:
            return self.sync_actor(actor)
        except CycleCancelled as e:
            logger.info(str(e))
            return ActorSyncResult(actor_id=actor.id, status="cancelled", error=str(e))
        except HatsuError as e:
            logger.error(f"Sync of {actor.id} failed: {e}")
            return ActorSyncResult(actor_id=actor.id, status="failed", error=str(e))
        except Exception as e:
            logger.exception(f"Sync of {actor.id} failed unexpectedly")
            return ActorSyncResult(actor_id=actor.id, status="failed", error=str(e))

    def sync_actor(self, actor: Actor) -> ActorSyncResult:
        """
        Synchronize one actor. Errors propagate to the caller.

        The snapshot is only committed after every item was published.
        """
        with self.store.lock(actor.id):
            self._check_cancelled(actor.id)

            # delete() takes the same lock, so the actor stays put until commit
            if actor.id not in self.store:
                raise NotFoundError("Actor", actor.id)

            descriptor = self.store.get_feed(actor.id)
            if descriptor is None or descriptor.is_empty:
                raise NotFoundError("Feed Url", actor.preferred_username)

            current = acquire(descriptor, actor.preferred_username, self.fetch)
            self._check_cancelled(actor.id)

            previous = self.store.load_snapshot(actor.id)
            if previous is None:
                self.store.save_snapshot(actor.id, current)
                self.store.touch(actor.id)
                logger.info(f"Baseline snapshot of {len(current.items)} items for {actor.id}")
                return ActorSyncResult(actor_id=actor.id, status="baseline")

            new_count = changed_count = 0
            for item, kind in diff(previous, current, track_changes=self.config.track_changes):
                if kind is ChangeKind.UNCHANGED:
                    continue
                self._check_cancelled(actor.id)
                self.publisher.publish(actor, item, kind)
                if kind is ChangeKind.NEW:
                    new_count += 1
                else:
                    changed_count += 1

            self._check_cancelled(actor.id)
            self.store.save_snapshot(actor.id, current)
            self.store.touch(actor.id)

        return ActorSyncResult(
            actor_id=actor.id,
            status="synced",
            new_items=new_count,
            changed_items=changed_count,
        )
