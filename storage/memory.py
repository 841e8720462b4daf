"""
Purpose: Document store shared by every trigger handler.
What it does:
- Keeps events, driver assignments, rides, users and operator alerts as
  immutable snapshots keyed by collection + id
- Plain reads/writes for uncontended records
- Optimistic transactions: reads record versions, commit is a compare-and-swap
  that fails with TransactionConflict if anything read has changed
- Named locks (e.g. one per event) to serialise the driver-selection step
- Push subscriptions: every committed change is delivered to live listeners

Rule: No dispatch rules here. Storage only.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

EVENTS = "events"
ASSIGNMENTS = "assignments"
RIDES = "rides"
USERS = "users"
ALERTS = "alerts"

T = TypeVar("T")


class NotFoundError(LookupError):
    """Raised when a referenced event, driver, rider or ride record is missing."""
    pass


class TransactionConflict(Exception):
    """Raised at commit when data read by the transaction changed underneath it."""
    pass


@dataclass(frozen=True)
class Change:
    """
    One committed write. `before` is None for creations.
    """
    collection: str
    key: str
    before: Any
    after: Any


def assignment_key(event_id: str, driver_id: str) -> str:
    return f"{event_id}/{driver_id}"


class _Reader:
    """
    Typed read helpers shared by the store and its transactions.
    Subclasses only provide _read (single document) and _scan (whole collection).
    """

    def _read(self, collection: str, key: str) -> Any:
        raise NotImplementedError

    def _scan(self, collection: str) -> List[Any]:
        raise NotImplementedError

    def get_event(self, event_id: str):
        return self._read(EVENTS, event_id)

    def get_user(self, user_id: str):
        return self._read(USERS, user_id)

    def get_ride(self, ride_id: str):
        return self._read(RIDES, ride_id)

    def get_alert(self, alert_id: str):
        return self._read(ALERTS, alert_id)

    def get_assignment(self, event_id: str, driver_id: str):
        return self._read(ASSIGNMENTS, assignment_key(event_id, driver_id))

    def events(self, status=None) -> List[Any]:
        events = self._scan(EVENTS)
        if status is not None:
            events = [event for event in events if event.status == status]
        return sorted(events, key=lambda event: event.id)

    def assignments_for_event(self, event_id: str, active_only: bool = False) -> List[Any]:
        assignments = [a for a in self._scan(ASSIGNMENTS) if a.event_id == event_id]
        if active_only:
            assignments = [a for a in assignments if a.is_active]
        return sorted(assignments, key=lambda a: a.driver_id)

    def rides_for_event(self, event_id: str, statuses: Optional[Iterable] = None) -> List[Any]:
        rides = [ride for ride in self._scan(RIDES) if ride.event_id == event_id]
        return _filter_statuses(rides, statuses)

    def rides_for_driver(self, event_id: str, driver_id: str, statuses: Optional[Iterable] = None) -> List[Any]:
        rides = [
            ride for ride in self._scan(RIDES)
            if ride.event_id == event_id and ride.driver_id == driver_id
        ]
        return _filter_statuses(rides, statuses)

    def rides_for_rider(self, rider_id: str, statuses: Optional[Iterable] = None) -> List[Any]:
        rides = [ride for ride in self._scan(RIDES) if ride.rider_id == rider_id]
        return _filter_statuses(rides, statuses)

    def alerts_for_organization(self, organization_id: str, unread_only: bool = False) -> List[Any]:
        alerts = [alert for alert in self._scan(ALERTS) if alert.organization_id == organization_id]
        if unread_only:
            alerts = [alert for alert in alerts if not alert.is_read]
        return sorted(alerts, key=lambda alert: (alert.created_at, alert.id))


def _filter_statuses(rides: List[Any], statuses: Optional[Iterable]) -> List[Any]:
    if statuses is not None:
        wanted = set(statuses)
        rides = [ride for ride in rides if ride.status in wanted]
    return sorted(rides, key=lambda ride: (ride.requested_at, ride.id))


class _Writer:
    """
    Typed write helpers. Subclasses provide put().
    """

    def put(self, collection: str, key: str, document: Any) -> None:
        raise NotImplementedError

    def save_event(self, event) -> None:
        self.put(EVENTS, event.id, event)

    def save_user(self, user) -> None:
        self.put(USERS, user.id, user)

    def save_ride(self, ride) -> None:
        self.put(RIDES, ride.id, ride)

    def save_alert(self, alert) -> None:
        self.put(ALERTS, alert.id, alert)

    def save_assignment(self, assignment) -> None:
        self.put(ASSIGNMENTS, assignment_key(assignment.event_id, assignment.driver_id), assignment)


class Subscription:
    """
    Handle for a live listener. cancel() is final: no callback runs afterwards.
    """

    def __init__(self, store: InMemoryStore, callback: Callable[[Change], None], collection: Optional[str] = None):
        self._store = store
        self.callback = callback
        self.collection = collection
        self.active = True

    def cancel(self) -> None:
        self._store._unsubscribe(self)

    def matches(self, change: Change) -> bool:
        return self.collection is None or self.collection == change.collection

    def deliver(self, change: Change) -> None:
        if not self.active:
            return
        try:
            self.callback(change)
        except Exception:
            # listener failures never fail the write that triggered them
            logger.exception(f"Subscriber failed while handling {change.collection}/{change.key}")


class Transaction(_Reader, _Writer):
    """
    Optimistic read-modify-write unit.

    Reads remember the version they saw (per document, and per collection for
    scans). Writes are buffered and applied atomically on commit, which fails
    with TransactionConflict if any remembered version moved.
    """

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._document_reads: Dict[Tuple[str, str], int] = {}
        self._collection_reads: Dict[str, int] = {}
        self._writes: Dict[Tuple[str, str], Any] = {}
        self.committed = False

    def _read(self, collection: str, key: str) -> Any:
        if (collection, key) in self._writes:
            return self._writes[(collection, key)]
        with self._store._lock:
            self._document_reads.setdefault((collection, key), self._store._document_version(collection, key))
            return self._store._documents[collection].get(key)

    def _scan(self, collection: str) -> List[Any]:
        with self._store._lock:
            self._collection_reads.setdefault(collection, self._store._collection_versions[collection])
            documents = dict(self._store._documents[collection])
        for (written_collection, key), document in self._writes.items():
            if written_collection == collection:
                documents[key] = document
        return list(documents.values())

    def put(self, collection: str, key: str, document: Any) -> None:
        self._writes[(collection, key)] = document

    def commit(self) -> List[Change]:
        store = self._store
        with store._lock:
            for (collection, key), version in self._document_reads.items():
                if store._document_version(collection, key) != version:
                    raise TransactionConflict(f"{collection}/{key} changed during transaction")
            for collection, version in self._collection_reads.items():
                if store._collection_versions[collection] != version:
                    raise TransactionConflict(f"{collection} changed during transaction")
            changes = [store._apply(collection, key, document) for (collection, key), document in self._writes.items()]
        self.committed = True
        store._publish(changes)
        return changes


class InMemoryStore(_Reader, _Writer):
    """
    Thread-safe in-memory document store.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._documents: Dict[str, Dict[str, Any]] = defaultdict(dict)
        self._document_versions: Dict[Tuple[str, str], int] = {}
        self._collection_versions: Dict[str, int] = defaultdict(int)
        self._named_locks: Dict[str, threading.RLock] = {}
        self._subscriptions: List[Subscription] = []

    # --- Reads ---

    def _read(self, collection: str, key: str) -> Any:
        with self._lock:
            return self._documents[collection].get(key)

    def _scan(self, collection: str) -> List[Any]:
        with self._lock:
            return list(self._documents[collection].values())

    # --- Writes ---

    def put(self, collection: str, key: str, document: Any) -> None:
        with self._lock:
            change = self._apply(collection, key, document)
        self._publish([change])

    def _apply(self, collection: str, key: str, document: Any) -> Change:
        before = self._documents[collection].get(key)
        self._documents[collection][key] = document
        self._document_versions[(collection, key)] = self._document_version(collection, key) + 1
        self._collection_versions[collection] += 1
        return Change(collection=collection, key=key, before=before, after=document)

    def _document_version(self, collection: str, key: str) -> int:
        return self._document_versions.get((collection, key), 0)

    # --- Concurrency ---

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Buffered transaction; commits when the block exits without an exception.
        """
        txn = Transaction(self)
        yield txn
        txn.commit()

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """
        Named re-entrant lock, e.g. lock(f"event_{event_id}").
        """
        with self._lock:
            named_lock = self._named_locks.setdefault(name, threading.RLock())
        with named_lock:
            yield

    # --- Subscriptions ---

    def subscribe(self, callback: Callable[[Change], None], collection: Optional[str] = None) -> Subscription:
        subscription = Subscription(self, callback, collection)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _publish(self, changes: List[Change]) -> None:
        # delivered outside the store lock so listeners may read or write freely
        with self._lock:
            subscriptions = list(self._subscriptions)
        for change in changes:
            for subscription in subscriptions:
                if subscription.matches(change):
                    subscription.deliver(change)


def run_in_transaction(store: InMemoryStore, fn: Callable[[Transaction], T], max_attempts: int = 3) -> T:
    """
    Run fn(txn) and commit, retrying with fresh reads on conflict.
    Re-raises TransactionConflict once max_attempts is exhausted.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            with store.transaction() as txn:
                result = fn(txn)
            return result
        except TransactionConflict as error:
            logger.warning(f"Transaction attempt {attempt}/{max_attempts} conflicted: {error}")
            if attempt == max_attempts:
                raise
    raise TransactionConflict("max_attempts must be >= 1")
