"""
Catalog sync broadcaster.

Delivery contract:
- broadcast(scope, snapshot) reaches every subscriber registered for that
  scope plus every subscriber registered for GLOBAL_SCOPE. Broadcasting to
  GLOBAL_SCOPE itself reaches only GLOBAL_SCOPE subscribers.
- Each subscriber has its own FIFO queue and worker thread, so for one scope
  a subscriber sees emissions in the order broadcast() was called. Nothing is
  guaranteed across scopes.
- There is no persistent queue. A subscriber that is not registered when an
  emission happens never sees it and must re-fetch from the store.
- Every emission carries a complete snapshot, never a diff, so applying the
  same event twice is a no-op for the receiver.
- Delivery is fire-and-forget for the emitter: subscriber exceptions are
  logged and counted, never raised back into broadcast().
"""

import itertools
import logging
import queue
import threading
from typing import Callable, Dict, List, Optional

from ..models import CatalogSnapshot, SyncEvent

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "GLOBAL"

_STOP = object()

_subscription_ids = itertools.count(1)


class Subscription:
    """
    One registered listener. Owns a queue and, in asynchronous mode, a
    daemon worker thread draining it.
    """

    def __init__(self, scope: str, callback: Callable[[SyncEvent], None], name: Optional[str] = None, asynchronous: bool = True):
        self.scope = scope
        self.callback = callback
        self.name = name or f"subscriber-{next(_subscription_ids)}"
        self.delivered = 0
        self.failures = 0
        self.active = True
        self._queue = queue.Queue()
        self._thread = None
        if asynchronous:
            self._thread = threading.Thread(
                target=self._run, name=f"menusync-{self.name}", daemon=True
            )
            self._thread.start()

    def _deliver(self, event: SyncEvent) -> None:
        try:
            self.callback(event)
            self.delivered += 1
        except Exception:
            self.failures += 1
            logger.warning(
                f"Subscriber {self.name} failed on {event.scope} event #{event.sequence}",
                exc_info=True
            )

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                return
            if isinstance(event, threading.Event):
                event.set()
                continue
            self._deliver(event)

    def enqueue(self, event: SyncEvent) -> None:
        if self._thread is None:
            self._deliver(event)
        else:
            self._queue.put(event)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until everything enqueued so far has been delivered."""
        if self._thread is None or not self._thread.is_alive():
            return True
        marker = threading.Event()
        self._queue.put(marker)
        return marker.wait(timeout)

    def stop(self) -> None:
        self.active = False
        if self._thread is not None:
            self._queue.put(_STOP)


class SyncBroadcaster:
    """
    Publish/subscribe hub for catalog snapshots keyed by scope.

    Scopes are branch ids or GLOBAL_SCOPE. One broadcaster is created per
    process by the caller and passed to the importer and edit controller;
    there is no module-level instance.
    """

    def __init__(self, asynchronous: bool = True):
        """
        Args:
            asynchronous: Deliver on per-subscriber worker threads (default).
                When False, broadcast() delivers inline before returning.
        """
        self.asynchronous = asynchronous
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.Lock()

    def subscribe(self, scope: str, callback: Callable[[SyncEvent], None], name: Optional[str] = None) -> Subscription:
        """
        Register a callback for a scope.

        Args:
            scope: Branch id, or GLOBAL_SCOPE to receive every emission
            callback: Called with each SyncEvent
            name: Label used in logs

        Returns:
            Subscription handle; pass it to unsubscribe()
        """
        subscription = Subscription(scope, callback, name=name, asynchronous=self.asynchronous)
        with self._lock:
            self._subscriptions.setdefault(scope, []).append(subscription)
        logger.debug(f"{subscription.name} subscribed to {scope}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscriptions.get(subscription.scope, [])
            if subscription in listeners:
                listeners.remove(subscription)
        subscription.stop()

    def subscribers(self, scope: str) -> List[Subscription]:
        """Subscriptions an emission to `scope` is delivered to."""
        with self._lock:
            return self._targets(scope)

    def _targets(self, scope: str) -> List[Subscription]:
        targets = list(self._subscriptions.get(scope, []))
        if scope != GLOBAL_SCOPE:
            targets.extend(self._subscriptions.get(GLOBAL_SCOPE, []))
        return targets

    def broadcast(self, scope: str, snapshot: CatalogSnapshot) -> SyncEvent:
        """
        Emit a complete catalog snapshot to a scope.

        Never raises because of a subscriber; returns as soon as the event
        is queued for every target (asynchronous mode).

        Returns:
            The emitted SyncEvent
        """
        # Sequence assignment and enqueueing happen under one lock so that
        # per-subscriber queues receive a scope's events in sequence order
        with self._lock:
            sequence = self._sequences.get(scope, 0) + 1
            self._sequences[scope] = sequence
            event = SyncEvent(scope=scope, payload=snapshot, sequence=sequence)
            targets = self._targets(scope)
            if self.asynchronous:
                for subscription in targets:
                    subscription.enqueue(event)

        if not self.asynchronous:
            for subscription in targets:
                subscription.enqueue(event)

        logger.info(
            f"Broadcast {scope} #{sequence}: {len(snapshot.items)} items to {len(targets)} subscribers"
        )
        return event

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every subscriber to drain its queue.

        Returns:
            False if any subscriber did not drain within the timeout
        """
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
        return all([s.flush(timeout) for s in subscriptions])

    def close(self) -> None:
        """Stop every worker. Undelivered events are dropped."""
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.stop()


class ScopeReceiver:
    """
    Receiver-side helper that applies each scope's snapshot at most once.

    Drops events whose sequence is not newer than the last one applied for
    their scope, and events whose snapshot checksum matches what is already
    held.
    """

    def __init__(self, apply: Callable[[CatalogSnapshot], None]):
        self.apply = apply
        self.last_sequence: Dict[str, int] = {}
        self.last_checksum: Dict[Optional[str], str] = {}
        self._lock = threading.Lock()

    def __call__(self, event: SyncEvent) -> None:
        with self._lock:
            if event.sequence <= self.last_sequence.get(event.scope, 0):
                return
            self.last_sequence[event.scope] = event.sequence
            checksum = event.payload.checksum()
            branch = event.payload.branch_id
            if self.last_checksum.get(branch) == checksum:
                return
            self.last_checksum[branch] = checksum
        self.apply(event.payload)
